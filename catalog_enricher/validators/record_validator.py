"""
Record Validator - observational checks on merged records.

Checks run after a merge and never change the record or block the save.
They exist so a human reviewing the run log can spot generated values that
drifted from the expected vocabulary:

- Required fields still empty after enrichment
- Enumerated fields outside their allowed values
- Boolean-ish fields that are not yes/no/true/false
- URLs that do not parse
- Dates that are not YYYY-MM-DD
- Numbers outside their bounds
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..schemas.entity import ValidationRules
from ..store.base import Record
from ..utils.logger import PipelineLogger
from ..utils.merge_strategy import is_empty
from ..utils.url_helpers import is_valid_url
from .bounds_validator import FIELD_BOUNDS, check_bounds

logger = logging.getLogger(__name__)

BOOLEAN_VALUES = {"true", "false", "yes", "no"}
DATE_FORMAT = "%Y-%m-%d"


@dataclass
class ValidationViolation:
    """A specific rule violation."""

    field: str
    value: Optional[str]
    message: str


@dataclass
class ValidationResult:
    """Result of validating one record."""

    record_id: Optional[str] = None
    warnings: List[ValidationViolation] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.warnings

    def add_warning(self, field_name: str, value: Optional[str], message: str) -> None:
        self.warnings.append(ValidationViolation(field=field_name, value=value, message=message))


def _is_date(value: str) -> bool:
    try:
        datetime.strptime(value.strip(), DATE_FORMAT)
    except ValueError:
        return False
    return True


class RecordValidator:
    """Applies an entity's ValidationRules to single records."""

    def __init__(self, rules: ValidationRules, primary_key: Optional[str] = None):
        self.rules = rules
        self.primary_key = primary_key

    def validate(self, record: Record) -> ValidationResult:
        """
        Validate one record.

        Args:
            record: Merged record

        Returns:
            ValidationResult listing every violation found
        """
        rules = self.rules
        result = ValidationResult(record_id=record.get(self.primary_key) if self.primary_key else None)

        for field_name in rules.required:
            if is_empty(record.get(field_name)):
                result.add_warning(field_name, record.get(field_name), "required field is empty")

        for field_name, allowed in rules.enums.items():
            value = record.get(field_name)
            if not is_empty(value) and value.strip() not in allowed:
                result.add_warning(field_name, value, f"not one of {', '.join(allowed)}")

        for field_name, tokens in rules.enum_contains.items():
            value = record.get(field_name)
            if not is_empty(value) and not any(token.lower() in value.lower() for token in tokens):
                result.add_warning(field_name, value, f"does not mention any of {', '.join(tokens)}")

        for field_name in rules.booleans:
            value = record.get(field_name)
            if not is_empty(value) and value.strip().lower() not in BOOLEAN_VALUES:
                result.add_warning(field_name, value, "not a yes/no value")

        for field_name in rules.urls:
            value = record.get(field_name)
            if not is_empty(value) and not is_valid_url(value.strip()):
                result.add_warning(field_name, value, "not a valid URL")

        for field_name in rules.dates:
            value = record.get(field_name)
            if not is_empty(value) and not _is_date(value):
                result.add_warning(field_name, value, "not a YYYY-MM-DD date")

        bounded = list(rules.ranges) + [name for name in FIELD_BOUNDS if name in record and name not in rules.ranges]
        for field_name in bounded:
            problem = check_bounds(field_name, record.get(field_name), rules.ranges)
            if problem:
                result.add_warning(field_name, record.get(field_name), problem)

        return result

    def log_result(self, result: ValidationResult, table: str, log: Optional[PipelineLogger] = None) -> None:
        """Log each violation as a warning (tracked for the run summary when `log` is a PipelineLogger)."""
        log = log or logger
        for violation in result.warnings:
            log.warning(
                f"{table} {result.record_id or 'record'}: {violation.field} {violation.message} "
                f"(value={violation.value!r})"
            )
