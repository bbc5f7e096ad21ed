"""Tests for the Completeness Gate and the non-destructive Merge Strategy."""

from catalog_enricher.pipeline.completeness import is_complete, missing_fields
from catalog_enricher.utils.merge_strategy import MergeStrategy, is_empty, utc_timestamp

ENRICHABLE = ["benchmark_name", "benchmark_score", "benchmark_details"]

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _benchmark(**overrides):
    record = {
        "benchmark_id": "bench_1",
        "model_id": "model_1",
        "benchmark_name": "MMLU",
        "benchmark_score": "86.4",
        "benchmark_details": "5-shot",
        "createdAt": "2024-12-01T00:00:00.000Z",
        "updatedAt": "2024-12-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


def _strategy():
    return MergeStrategy(clock=lambda: "2025-01-15T12:00:00.000Z")


# ─── is_empty ─────────────────────────────────────────────────────────────────


class TestIsEmpty:
    def test_none_and_blank_are_empty(self):
        assert is_empty(None)
        assert is_empty("")
        assert is_empty("   ")

    def test_text_is_not_empty(self):
        assert not is_empty("0")
        assert not is_empty("None")


# ─── Completeness Gate ────────────────────────────────────────────────────────


class TestCompletenessGate:
    """A record is complete iff every enrichable field is non-empty."""

    def test_fully_populated_record_is_complete(self):
        assert is_complete(_benchmark(), ENRICHABLE)

    def test_missing_key_is_incomplete(self):
        record = _benchmark()
        del record["benchmark_details"]
        assert not is_complete(record, ENRICHABLE)
        assert missing_fields(record, ENRICHABLE) == ["benchmark_details"]

    def test_blank_and_none_values_are_incomplete(self):
        assert not is_complete(_benchmark(benchmark_score=""), ENRICHABLE)
        assert not is_complete(_benchmark(benchmark_score=None), ENRICHABLE)
        assert not is_complete(_benchmark(benchmark_score="  "), ENRICHABLE)

    def test_non_enrichable_fields_are_ignored(self):
        """Empty timestamps or extra columns do not make a record incomplete."""
        assert is_complete(_benchmark(updatedAt="", notes=""), ENRICHABLE)


# ─── Merge Strategy ───────────────────────────────────────────────────────────


class TestMergeStrategy:
    def test_fills_only_empty_fields(self):
        original = _benchmark(benchmark_score="")
        merged, filled = _strategy().merge_with_report(
            original, {"benchmark_name": "HellaSwag", "benchmark_score": "86.4"}
        )
        assert merged["benchmark_name"] == "MMLU"
        assert merged["benchmark_score"] == "86.4"
        assert filled == ["benchmark_score"]

    def test_never_changes_non_empty_fields(self):
        original = _benchmark()
        partial = {key: "generated" for key in ENRICHABLE}
        merged = _strategy().merge(original, partial)
        for key in ENRICHABLE:
            assert merged[key] == original[key]

    def test_absent_fields_are_added(self):
        original = _benchmark()
        del original["benchmark_details"]
        merged = _strategy().merge(original, {"benchmark_details": "0-shot"})
        assert merged["benchmark_details"] == "0-shot"

    def test_empty_generated_values_do_not_fill(self):
        merged, filled = _strategy().merge_with_report(_benchmark(benchmark_score=""), {"benchmark_score": ""})
        assert merged["benchmark_score"] == ""
        assert filled == []

    def test_updated_at_bumped_even_when_nothing_changes(self):
        merged, filled = _strategy().merge_with_report(_benchmark(), {})
        assert filled == []
        assert merged["updatedAt"] == "2025-01-15T12:00:00.000Z"

    def test_created_at_is_protected(self):
        merged = _strategy().merge(_benchmark(createdAt=""), {"createdAt": "1999-01-01T00:00:00.000Z"})
        assert merged["createdAt"] == ""

    def test_original_is_not_mutated(self):
        original = _benchmark(benchmark_score="")
        _strategy().merge(original, {"benchmark_score": "86.4"})
        assert original["benchmark_score"] == ""
        assert original["updatedAt"] == "2024-12-01T00:00:00.000Z"


class TestUtcTimestamp:
    def test_format(self):
        stamp = utc_timestamp()
        assert stamp.endswith("Z")
        assert len(stamp) == len("2025-01-15T12:00:00.000Z")
