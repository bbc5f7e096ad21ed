"""Validators for loaded and merged records."""

from .bounds_validator import FIELD_BOUNDS, check_bounds, get_bounds, parse_numeric
from .record_validator import RecordValidator, ValidationResult, ValidationViolation
from .referential_validator import ReferentialResult, ReferentialValidator, parent_allowed, stub_count

__all__ = [
    "FIELD_BOUNDS",
    "check_bounds",
    "get_bounds",
    "parse_numeric",
    "RecordValidator",
    "ValidationResult",
    "ValidationViolation",
    "ReferentialResult",
    "ReferentialValidator",
    "parent_allowed",
    "stub_count",
]
