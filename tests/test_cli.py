"""Tests for the enrich.py command line."""

import csv

import pytest

import enrich
from catalog_enricher import config
from catalog_enricher.llm import llm_client

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _write_csv(path, rows):
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


def _read_csv(path):
    with open(path, newline="") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "OPENAI_API_KEY",
        "ENRICH_DATA_DIR",
        "ENRICH_BACKUP_DIR",
        "ENRICH_REQUEST_DELAY",
        "ENRICH_ENTITIES_CONFIG",
        "ENRICH_PRIMARY_MODEL",
        "ENRICH_FALLBACK_MODEL",
        "ENRICH_REPORT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    # .env in the repository root must not leak into tests
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)
    return monkeypatch


# ─── Argument handling ────────────────────────────────────────────────────────


class TestArguments:
    def test_table_selection_is_required(self, clean_env):
        with pytest.raises(SystemExit):
            enrich.main([])

    def test_table_and_all_are_exclusive(self, clean_env):
        with pytest.raises(SystemExit):
            enrich.main(["--table", "Models", "--all"])

    def test_list_needs_no_credentials(self, clean_env, capsys):
        assert enrich.main(["--list"]) == 0
        out = capsys.readouterr().out
        assert "Benchmarks.csv" in out
        assert out.index("Platforms") < out.index("Benchmarks")

    def test_negative_delay(self, clean_env):
        assert enrich.main(["--table", "Models", "--delay", "-1"]) == 1


# ─── Runs ─────────────────────────────────────────────────────────────────────


class TestRuns:
    def test_missing_api_key(self, clean_env, tmp_path):
        assert enrich.main(["--table", "Benchmarks", "--data-dir", str(tmp_path)]) == 1

    def test_unknown_table(self, clean_env, tmp_path):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        assert enrich.main(["--table", "Spaceships", "--data-dir", str(tmp_path)]) == 1

    def test_missing_parent_table(self, clean_env, tmp_path):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        _write_csv(tmp_path / "Benchmarks.csv", [{"benchmark_id": "bench_1", "model_id": "model_1"}])
        assert enrich.main(["--table", "Benchmarks", "--data-dir", str(tmp_path)]) == 1

    def test_enriches_csv_tables(self, clean_env, tmp_path, fake_completion):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        completion = fake_completion({"benchmark_score": "86.4"})
        clean_env.setattr(llm_client, "completion", completion)

        _write_csv(tmp_path / "Platforms.csv", [{"platform_id": "plat_1", "platform_name": "Mistral AI"}])
        _write_csv(tmp_path / "Models.csv", [{"model_id": "model_1", "platform_id": "plat_1"}])
        _write_csv(
            tmp_path / "Benchmarks.csv",
            [{"benchmark_id": "bench_1", "model_id": "model_1", "benchmark_name": "MMLU", "benchmark_score": ""}],
        )

        code = enrich.main(
            [
                "--table",
                "benchmarks",
                "--data-dir",
                str(tmp_path),
                "--backup-dir",
                str(tmp_path / "backups"),
                "--delay",
                "0",
            ]
        )

        assert code == 0
        assert len(completion.calls) == 1
        rows = _read_csv(tmp_path / "Benchmarks.csv")
        assert rows[0]["benchmark_score"] == "86.4"
        assert rows[0]["benchmark_name"] == "MMLU"
        assert len(list((tmp_path / "backups").glob("Benchmarks_backup_*.csv"))) == 1
        relations = _read_csv(tmp_path / "model_benchmarks.csv")
        assert [(r["model_id"], r["benchmark_id"]) for r in relations] == [("model_1", "bench_1")]


# ─── Platform import ──────────────────────────────────────────────────────────


class TestImportPlatforms:
    def _list(self, tmp_path):
        path = tmp_path / "AI_Platform_List.txt"
        path.write_text("Platform Name\tURL\nPerplexity\tperplexity.ai\nMistral AI\thttps://mistral.ai\n")
        return path

    def test_imports_without_credentials(self, clean_env, tmp_path, capsys):
        _write_csv(tmp_path / "Platforms.csv", [{"platform_id": "plat_1", "platform_name": "Mistral AI"}])
        code = enrich.main(
            [
                "--import-platforms",
                str(self._list(tmp_path)),
                "--skip-url-check",
                "--data-dir",
                str(tmp_path),
                "--backup-dir",
                str(tmp_path / "backups"),
                "--report-dir",
                str(tmp_path / "reports"),
            ]
        )

        assert code == 0
        platforms = _read_csv(tmp_path / "Platforms.csv")
        assert [p["platform_name"] for p in platforms] == ["Mistral AI", "Perplexity"]
        assert platforms[1]["platform_url"] == "https://perplexity.ai"
        companies = _read_csv(tmp_path / "Companies.csv")
        assert [(c["company_id"], c["company_name"]) for c in companies] == [(platforms[1]["company_id"], "Perplexity")]
        assert len(list((tmp_path / "reports").glob("platform_validation_*.json"))) == 1
        assert len(list((tmp_path / "backups").glob("Platforms_backup_*.csv"))) == 1
        out = capsys.readouterr().out
        assert "Duplicates: 1" in out

    def test_dry_run(self, clean_env, tmp_path):
        code = enrich.main(
            [
                "--import-platforms",
                str(self._list(tmp_path)),
                "--skip-url-check",
                "--dry-run",
                "--data-dir",
                str(tmp_path / "data"),
                "--report-dir",
                str(tmp_path / "reports"),
            ]
        )
        assert code == 0
        assert not (tmp_path / "data" / "Platforms.csv").exists()
        assert len(list((tmp_path / "reports").glob("platform_validation_*.json"))) == 1

    def test_missing_list(self, clean_env, tmp_path):
        code = enrich.main(["--import-platforms", str(tmp_path / "nope.txt"), "--data-dir", str(tmp_path)])
        assert code == 1

    def test_import_and_table_are_exclusive(self, clean_env, tmp_path):
        with pytest.raises(SystemExit):
            enrich.main(["--import-platforms", str(tmp_path / "list.txt"), "--all"])
