"""
Enrichment Orchestrator.

Turns one incomplete record plus its related records into a prompt, asks
the generation service for the entity's enrichable fields and coerces the
parsed reply into string field values ready for merging. Nothing is
written here; failures surface as exceptions for the table loop to catch.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

from ..constants import EMPTY_SENTINELS
from ..schemas.entity import EntitySpec
from ..store.base import Record
from ..llm.llm_client import LLMClient
from ..llm.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)


def coerce_value(value: Any) -> Optional[str]:
    """
    Convert one parsed JSON value to a field string.

    None, blank strings and "null" / "n/a" mean "no answer" and return None.
    Booleans become "true"/"false", lists are joined with ", ", and objects
    are kept as JSON text.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        parts = [coerce_value(item) for item in value]
        joined = ", ".join(part for part in parts if part)
        return joined or None
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)

    text = str(value).strip()
    if not text or text.lower() in EMPTY_SENTINELS:
        return None
    return text


def coerce_output(data: Mapping[str, Any], spec: EntitySpec) -> Dict[str, str]:
    """Keep only enrichable fields that carry an answer, as strings."""
    allowed = set(spec.enrichable)
    partial: Dict[str, str] = {}
    for key, value in data.items():
        if key not in allowed:
            logger.debug(f"Ignoring field {key!r} not enrichable on {spec.name}")
            continue
        coerced = coerce_value(value)
        if coerced is not None:
            partial[key] = coerced
    return partial


class Enricher:
    """Enrichment for the records of one entity."""

    def __init__(self, spec: EntitySpec, client: LLMClient, builder: Optional[PromptBuilder] = None):
        self.spec = spec
        self.client = client
        self.builder = builder or PromptBuilder(spec)
        self.last_response = None

    def enrich(self, record: Record, context: Dict[str, Record]) -> Dict[str, str]:
        """
        Generate values for the entity's enrichable fields.

        Args:
            record: Record to enrich (not modified)
            context: table name -> related record used in the prompt

        Returns:
            Partial record: field -> generated value

        Raises:
            EnrichmentExhaustedError: Every generation attempt failed
        """
        prompt = self.builder.build(record, context)
        data, response = self.client.generate_json(
            prompt,
            system_prompt=self.builder.system_prompt,
            prompt_version=self.builder.prompt_version,
        )
        self.last_response = response
        return coerce_output(data, self.spec)
