"""Shared fixtures for catalog enricher tests.

No test touches the network: the generation service is replaced by a
scripted fake completion function, and sleeps are recorded instead of
performed.
"""

import json
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add the repository root to path so tests can import the package and enrich.py
sys.path.insert(0, str(Path(__file__).parent.parent))

FIXED_NOW = "2025-01-15T12:00:00.000Z"


class FakeCompletion:
    """
    Scripted stand-in for litellm.completion.

    Each script entry is either a string (returned as the message content),
    a dict (returned as JSON text) or an exception (raised). The last entry
    repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script) or ["{}"]
        self.calls = []

    @property
    def models(self):
        return [call["model"] for call in self.calls]

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        index = min(len(self.calls) - 1, len(self.script) - 1)
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        text = json.dumps(item) if isinstance(item, dict) else item
        message = SimpleNamespace(content=text)
        return SimpleNamespace(
            id=f"fake-{len(self.calls)}",
            choices=[SimpleNamespace(message=message, finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        )


@pytest.fixture
def fake_completion():
    """Factory: fake_completion(*script) -> FakeCompletion."""
    return FakeCompletion


@pytest.fixture
def sleeps():
    """List that records every requested sleep duration."""
    return []


@pytest.fixture
def make_client(sleeps):
    """Factory for an LLMClient wired to a FakeCompletion."""
    from catalog_enricher.llm.llm_client import LLMClient

    def _make(completion, **overrides):
        options = dict(completion_fn=completion, sleep=sleeps.append)
        options.update(overrides)
        return LLMClient(**options)

    return _make


@pytest.fixture
def registry():
    """The bundled entity registry."""
    from catalog_enricher.schemas.registry import get_registry

    return get_registry()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def pipeline_logger():
    from catalog_enricher.utils.logger import PipelineLogger

    return PipelineLogger(name="catalog_enricher_tests", log_level="DEBUG")


@pytest.fixture
def make_processor(registry, make_client, fixed_clock, pipeline_logger, sleeps, tmp_path):
    """
    Factory for a TableProcessor over an in-memory store.

    Usage:
        processor, completion = make_processor("Benchmarks", store, {"benchmark_score": "86.4"})
    """
    from catalog_enricher.pipeline.orchestrator import Enricher
    from catalog_enricher.pipeline.table_processor import TableProcessor
    from catalog_enricher.utils.backup import BackupManager
    from catalog_enricher.utils.rate_limiter import RateLimiter

    def _make(name, store, *script, delay=0.0):
        completion = FakeCompletion(*script)
        spec = registry[name]
        processor = TableProcessor(
            spec=spec,
            registry=registry,
            store=store,
            enricher=Enricher(spec, make_client(completion)),
            backup_manager=BackupManager(tmp_path / "backups"),
            rate_limiter=RateLimiter(delay, sleep=sleeps.append),
            logger=pipeline_logger,
            clock=fixed_clock,
        )
        return processor, completion

    return _make
