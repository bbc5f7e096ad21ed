"""
Builds the per-record enrichment prompt.

Entity declarations write prompt text with `{Table.field}` placeholders,
resolved against the record itself (`{self.field}`) and its context
records (parents, grandparents and looked-up siblings). Missing values
render as "Unknown", and every value is sanitized before insertion.
"""

import re
from typing import Dict, Mapping, Optional

from ..constants import UNKNOWN_PLACEHOLDER
from ..schemas.entity import EntitySpec
from ..store.base import Record
from ..utils.merge_strategy import is_empty
from .prompt_loader import PromptInfo, load_prompt

PLACEHOLDER_RE = re.compile(r"\{(\w+)\.(\w+)\}")
SELF = "self"

RECORD_PROMPT = "enrichment_record"
SYSTEM_PROMPT = "enrichment_system"

# Chat-template tokens and role prefixes a cell value must not carry into a prompt
MARKER_RE = re.compile(r"<\|.*?\|>|\[/?INST\]|<</?SYS>>|\b(?:Human|Assistant):|```", re.IGNORECASE)
MAX_VALUE_LENGTH = 300


def clean_value(value) -> str:
    """
    One catalog cell as it may appear inside a prompt line.

    Cells are inserted into quoted, single-line slots of the record template
    ('the AI model "{Models.model_family}"'), so a cell is flattened to one
    line, its double quotes become single quotes and braces become
    parentheses (a cell can never open a template slot of its own). Chat
    markers are dropped and long cells (pasted descriptions) are cut.

    Examples:
        >>> clean_value('Claude "Opus"\\n3')
        "Claude 'Opus' 3"
        >>> clean_value("{field_list}")
        '(field_list)'
    """
    text = str(value)
    text = MARKER_RE.sub(" ", text)
    text = text.replace('"', "'").replace("{", "(").replace("}", ")")
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > MAX_VALUE_LENGTH:
        text = text[:MAX_VALUE_LENGTH].rstrip() + "..."
    return text


def render_placeholders(text: str, record: Record, context: Mapping[str, Record]) -> str:
    """Replace `{Table.field}` / `{self.field}` placeholders in `text`."""

    def _resolve(match: "re.Match[str]") -> str:
        table, field_name = match.group(1), match.group(2)
        source: Optional[Mapping] = record if table == SELF else context.get(table)
        value = source.get(field_name) if source else None
        if is_empty(value):
            return UNKNOWN_PLACEHOLDER
        return clean_value(value)

    return PLACEHOLDER_RE.sub(_resolve, text)


class PromptBuilder:
    """Renders the system and user prompts for one entity."""

    def __init__(self, spec: EntitySpec, template: Optional[PromptInfo] = None, system: Optional[PromptInfo] = None):
        self.spec = spec
        self.template = template or load_prompt(RECORD_PROMPT)
        self.system = system or load_prompt(SYSTEM_PROMPT)

    @property
    def system_prompt(self) -> str:
        return self.system.content

    @property
    def prompt_version(self) -> str:
        return self.template.version

    def field_list(self) -> str:
        lines = []
        for field_name in self.spec.enrichable:
            hint = self.spec.field_hints.get(field_name)
            lines.append(f"- {field_name}: {hint}" if hint else f"- {field_name}")
        return "\n".join(lines)

    def context_section(self, record: Record, context: Mapping[str, Record]) -> str:
        if not self.spec.prompt_context:
            return ""
        lines = [render_placeholders(line, record, context) for line in self.spec.prompt_context]
        return "Additional context:\n" + "\n".join(lines) + "\n"

    def build(self, record: Record, context: Dict[str, Record]) -> str:
        """
        Render the user prompt for `record`.

        Args:
            record: The record being enriched
            context: table name -> related record
        """
        subject = self.spec.prompt_subject or f"information about this {self.spec.label}"
        prompt = self.template.content
        prompt = prompt.replace("{subject}", render_placeholders(subject, record, context))
        prompt = prompt.replace("{field_list}", self.field_list())
        prompt = prompt.replace("{context_section}", self.context_section(record, context))
        return re.sub(r"\n{3,}", "\n\n", prompt).strip()
