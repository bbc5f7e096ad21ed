"""Entity declarations and the YAML-backed registry."""

from .entity import (
    ContextLookup,
    DeriveFrom,
    CountRule,
    EntitySpec,
    ForeignKey,
    ParentFilter,
    ReconcileRule,
    StubPolicy,
    ValidationRules,
)
from .registry import clear_cache, get_entity, get_registry, list_entities, processing_order

__all__ = [
    "ContextLookup",
    "DeriveFrom",
    "CountRule",
    "EntitySpec",
    "ForeignKey",
    "ParentFilter",
    "ReconcileRule",
    "StubPolicy",
    "ValidationRules",
    "clear_cache",
    "get_entity",
    "get_registry",
    "list_entities",
    "processing_order",
]
