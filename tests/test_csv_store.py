"""Tests for the CSV and in-memory Record Stores."""

from catalog_enricher.store import CsvRecordStore, InMemoryRecordStore
from catalog_enricher.store.base import Table

# ─── CsvRecordStore ───────────────────────────────────────────────────────────


class TestCsvRecordStore:
    def test_missing_file_loads_empty(self, tmp_path):
        store = CsvRecordStore(tmp_path)
        table = store.load("Benchmarks.csv")
        assert table.records == []
        assert table.columns == []
        assert not store.exists("Benchmarks.csv")

    def test_load_keeps_order_and_empty_cells(self, tmp_path):
        (tmp_path / "Benchmarks.csv").write_text(
            "benchmark_id,model_id,benchmark_score\nbench_2,model_1,\nbench_1,model_1,86.4\n"
        )
        table = CsvRecordStore(tmp_path).load("Benchmarks.csv")
        assert table.columns == ["benchmark_id", "model_id", "benchmark_score"]
        assert [r["benchmark_id"] for r in table.records] == ["bench_2", "bench_1"]
        assert table.records[0]["benchmark_score"] == ""

    def test_blank_lines_are_skipped(self, tmp_path):
        (tmp_path / "Models.csv").write_text("model_id,platform_id\nmodel_1,plat_1\n,\n\nmodel_2,plat_1\n")
        table = CsvRecordStore(tmp_path).load("Models.csv")
        assert [r["model_id"] for r in table.records] == ["model_1", "model_2"]

    def test_save_then_load(self, tmp_path):
        store = CsvRecordStore(tmp_path / "data")
        records = [
            {"benchmark_id": "bench_1", "benchmark_details": 'Quote "this", and a comma', "benchmark_score": None},
        ]
        store.save("Benchmarks.csv", records, ["benchmark_id", "benchmark_score", "benchmark_details"])

        table = store.load("Benchmarks.csv")
        assert table.columns == ["benchmark_id", "benchmark_score", "benchmark_details"]
        assert table.records == [
            {"benchmark_id": "bench_1", "benchmark_score": "", "benchmark_details": 'Quote "this", and a comma'}
        ]

    def test_save_appends_unlisted_fields_to_header(self, tmp_path):
        store = CsvRecordStore(tmp_path)
        store.save("Pricing.csv", [{"pricing_id": "p1", "legacy_note": "x"}], ["pricing_id"])
        header = (tmp_path / "Pricing.csv").read_text().splitlines()[0]
        assert header == "pricing_id,legacy_note"

    def test_empty_table_keeps_header(self, tmp_path):
        store = CsvRecordStore(tmp_path)
        store.save("Models.csv", [], ["model_id", "platform_id"])
        assert store.exists("Models.csv")
        table = store.load("Models.csv")
        assert table.records == []
        assert table.columns == ["model_id", "platform_id"]

    def test_path_for(self, tmp_path):
        assert CsvRecordStore(tmp_path).path_for("API.csv") == tmp_path / "API.csv"


# ─── InMemoryRecordStore ──────────────────────────────────────────────────────


class TestInMemoryRecordStore:
    def test_loads_are_copies(self):
        store = InMemoryRecordStore({"Models.csv": [{"model_id": "model_1"}]})
        table = store.load("Models.csv")
        table.records[0]["model_id"] = "changed"
        assert store.records("Models.csv") == [{"model_id": "model_1"}]

    def test_exists_only_for_known_tables(self):
        store = InMemoryRecordStore({"Models.csv": []})
        assert store.exists("Models.csv")
        assert not store.exists("Benchmarks.csv")
        store.save("Benchmarks.csv", [], ["benchmark_id"])
        assert store.exists("Benchmarks.csv")
        assert store.save_count == {"Benchmarks.csv": 1}

    def test_no_file_backing(self):
        assert InMemoryRecordStore().path_for("Models.csv") is None


class TestTableIndex:
    def test_index_skips_blank_keys(self):
        table = Table(name="Models.csv", records=[{"model_id": "m1"}, {"model_id": ""}, {"model_id": "m2"}])
        assert sorted(table.index_by("model_id")) == ["m1", "m2"]
        assert len(table) == 3
