"""Entity Registry: typed table declarations loaded from YAML.

Usage:
    from catalog_enricher.schemas.registry import get_entity, processing_order

    spec = get_entity("Benchmarks")
    spec.enrichable  # ["benchmark_name", "benchmark_score", "benchmark_details"]

    for name in processing_order():
        ...
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .entity import EntitySpec

logger = logging.getLogger(__name__)

# Module-level cache, keyed by config path
_registry_cache: Dict[Path, Dict[str, EntitySpec]] = {}


def _get_config_path() -> Path:
    return Path(__file__).parent / "entities.yaml"


def _load_registry(config_path: Optional[Path] = None) -> Dict[str, EntitySpec]:
    """Load, validate and cache entity specs from YAML."""
    path = Path(config_path) if config_path else _get_config_path()
    if path in _registry_cache:
        return _registry_cache[path]

    if not path.exists():
        raise ConfigurationError(f"Entity registry not found at {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse entity registry {path}: {e}") from e

    entities: Dict[str, EntitySpec] = {}
    for name, data in (raw.get("entities") or {}).items():
        try:
            entities[name] = EntitySpec(name=name, **(data or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid entity '{name}' in {path}: {e}") from e

    _validate_references(entities)
    _registry_cache[path] = entities
    logger.info(f"Loaded {len(entities)} entity specs from {path.name}")
    return entities


def _validate_references(entities: Dict[str, EntitySpec]) -> None:
    """Every table named by a foreign key, rule or lookup must be declared."""
    for spec in entities.values():
        referenced = [fk.table for fk in spec.foreign_keys]
        referenced += [lookup.table for lookup in spec.context_lookups]
        if spec.derive_from:
            referenced.append(spec.derive_from.table)
        for rule in spec.reconcile:
            referenced += [rule.target, rule.parent_table]
            if rule.child_table:
                referenced.append(rule.child_table)
        for table in referenced:
            if table not in entities:
                raise ConfigurationError(f"Entity '{spec.name}' references unknown table '{table}'")

        for rule in spec.reconcile:
            target = entities[rule.target]
            for column in (rule.parent_key, rule.child_key):
                if column not in target.columns:
                    raise ConfigurationError(
                        f"Reconcile rule on '{spec.name}' writes '{column}', which is not a column of '{target.name}'"
                    )


def get_registry(config_path: Optional[Path] = None) -> Dict[str, EntitySpec]:
    """All entity specs, keyed by table name."""
    return _load_registry(config_path)


def get_entity(name: str, config_path: Optional[Path] = None) -> EntitySpec:
    """Look up a single entity spec by table name (case-insensitive)."""
    registry = _load_registry(config_path)
    if name in registry:
        return registry[name]
    lowered = {key.lower(): key for key in registry}
    if name.lower() in lowered:
        return registry[lowered[name.lower()]]
    raise ConfigurationError(f"Unknown table '{name}'. Available: {', '.join(sorted(registry))}")


def list_entities(config_path: Optional[Path] = None) -> List[str]:
    return list(_load_registry(config_path).keys())


def processing_order(config_path: Optional[Path] = None) -> List[str]:
    """
    Tables ordered so that every table comes after the tables it depends on.

    Dependencies are foreign-key parents, context lookups and the parent/child
    tables of self-targeted reconcile rules. Ties keep declaration order.
    """
    registry = _load_registry(config_path)
    deps: Dict[str, set] = {}
    for name, spec in registry.items():
        needed = set(spec.parent_tables())
        needed.update(lookup.table for lookup in spec.context_lookups)
        if spec.derive_from:
            needed.add(spec.derive_from.table)
        for rule in spec.reconcile:
            if rule.target == name:
                needed.add(rule.parent_table)
                if rule.child_table:
                    needed.add(rule.child_table)
        needed.discard(name)
        deps[name] = needed

    ordered: List[str] = []
    done: set = set()
    remaining = list(registry.keys())
    while remaining:
        ready = [name for name in remaining if deps[name] <= done]
        if not ready:
            raise ConfigurationError(f"Dependency cycle between tables: {', '.join(remaining)}")
        for name in ready:
            ordered.append(name)
            done.add(name)
        remaining = [name for name in remaining if name not in done]
    return ordered


def clear_cache() -> None:
    """Clear the registry cache (for testing)."""
    _registry_cache.clear()
