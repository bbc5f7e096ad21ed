"""Incremental LLM enrichment of a relational CSV catalog."""

__version__ = "0.1.0"
