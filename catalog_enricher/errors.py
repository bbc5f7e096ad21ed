"""
Exception hierarchy for the enrichment pipeline.

Only ConfigurationError is allowed to reach process exit. Everything raised
while enriching a single record is caught at the table loop boundary.
"""

from typing import List, Optional


class EnrichmentError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(EnrichmentError):
    """Missing credential, missing upstream table, or invalid entity registry."""


class GenerationError(EnrichmentError):
    """A single generation attempt failed (transport, empty reply, unparseable JSON)."""

    def __init__(self, message: str, model: Optional[str] = None, raw_text: Optional[str] = None):
        super().__init__(message)
        self.model = model
        self.raw_text = raw_text


class EnrichmentExhaustedError(EnrichmentError):
    """Every attempt failed; carries the per-attempt error history."""

    def __init__(self, attempts: int, history: Optional[List[str]] = None):
        self.attempts = attempts
        self.history = history or []
        last = self.history[-1] if self.history else "unknown error"
        super().__init__(f"Failed to get response after {attempts} attempts. Last error: {last}")
