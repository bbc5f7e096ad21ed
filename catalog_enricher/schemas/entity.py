"""
Typed entity declarations.

Each table in the catalog is described by an EntitySpec: its key fields,
the Enrichable Field Set, how stubs are synthesized when it is empty, which
join tables it feeds, and the observational validation rules applied after
a merge. Specs are loaded from YAML by `registry.py`.
"""

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import TIMESTAMP_FIELDS


class ForeignKey(BaseModel):
    """A single-column reference to another table's primary key."""

    model_config = ConfigDict(extra="forbid")

    field: str
    table: str
    required: bool = True  # Missing parent table is a configuration error


class CountRule(BaseModel):
    """Stub count override chosen by a substring match on a parent field."""

    model_config = ConfigDict(extra="forbid")

    field: str
    contains: List[str]
    count: int = Field(ge=0)


class ParentFilter(BaseModel):
    """Only parents whose `field` is in `values` receive stubs ("" matches empty)."""

    model_config = ConfigDict(extra="forbid")

    field: str
    values: List[str]


class StubPolicy(BaseModel):
    """How many placeholder records to synthesize per parent for an empty table."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    id_prefix: str = "rec"
    count: int = Field(default=1, ge=0)
    count_rules: List[CountRule] = Field(default_factory=list)
    seed_field: Optional[str] = None
    seed_values: List[str] = Field(default_factory=list)
    parent_filter: Optional[ParentFilter] = None
    # Other foreign keys on join entities, filled from the first record of their table
    secondary_parents: List[str] = Field(default_factory=list)
    # Stub ids embed the parent id so id-containment association rules find them
    embed_parent_id: bool = False

    @model_validator(mode="after")
    def _seed_values_need_field(self):
        if self.seed_values and not self.seed_field:
            raise ValueError("seed_values requires seed_field")
        return self


AssociationRule = Literal["foreign_key", "id_contains", "delimited_list", "fan_out"]


class ContextLookup(BaseModel):
    """Sibling record pulled into the prompt: first `table` row whose `match_field` equals our `local_field`."""

    model_config = ConfigDict(extra="forbid")

    table: str
    match_field: str
    local_field: str


class DeriveFrom(BaseModel):
    """Seed a root table with one record per distinct web domain found in another table."""

    model_config = ConfigDict(extra="forbid")

    table: str
    url_field: str
    name_field: str
    url_target: str


class ReconcileRule(BaseModel):
    """
    Derive (parent, child) pairs for a join table.

    - foreign_key: child[`child_fk`] names the parent
    - id_contains: the child primary key contains the parent primary key
    - delimited_list: each token of parent[`source_field`] becomes child id `child_prefix + slug`
    - fan_out: `min`..`max` rows per parent with generated child ids
    """

    model_config = ConfigDict(extra="forbid")

    target: str
    rule: AssociationRule
    parent_table: str
    child_table: Optional[str] = None
    parent_key: str  # Join-table column holding the parent id
    child_key: str  # Join-table column holding the child id
    child_fk: Optional[str] = None
    source_field: Optional[str] = None
    child_prefix: str = ""
    min: int = Field(default=1, ge=0)
    max: int = Field(default=1, ge=0)

    @model_validator(mode="after")
    def _check_rule_fields(self):
        if self.rule in ("foreign_key", "id_contains") and not self.child_table:
            raise ValueError(f"{self.rule} rule requires child_table")
        if self.rule == "foreign_key" and not self.child_fk:
            raise ValueError("foreign_key rule requires child_fk")
        if self.rule == "delimited_list" and not self.source_field:
            raise ValueError("delimited_list rule requires source_field")
        if self.rule == "fan_out" and self.max < self.min:
            raise ValueError("fan_out max must be >= min")
        return self


class ValidationRules(BaseModel):
    """Observational checks run after a merge. Violations are warnings only."""

    model_config = ConfigDict(extra="forbid")

    required: List[str] = Field(default_factory=list)
    enums: Dict[str, List[str]] = Field(default_factory=dict)
    # Value must contain at least one of the listed tokens
    enum_contains: Dict[str, List[str]] = Field(default_factory=dict)
    booleans: List[str] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)
    dates: List[str] = Field(default_factory=list)
    ranges: Dict[str, Tuple[float, float]] = Field(default_factory=dict)


class EntitySpec(BaseModel):
    """Declaration of one table."""

    model_config = ConfigDict(extra="forbid")

    name: str
    file: str
    label: str
    primary_key: str
    foreign_keys: List[ForeignKey] = Field(default_factory=list)
    enrichable: List[str]
    extra_columns: List[str] = Field(default_factory=list)
    prompt_subject: str = ""
    prompt_context: List[str] = Field(default_factory=list)
    field_hints: Dict[str, str] = Field(default_factory=dict)
    context_lookups: List[ContextLookup] = Field(default_factory=list)
    stubs: StubPolicy = Field(default_factory=lambda: StubPolicy(enabled=False))
    reconcile: List[ReconcileRule] = Field(default_factory=list)
    validation: ValidationRules = Field(default_factory=ValidationRules)
    derive_from: Optional[DeriveFrom] = None
    link_companies: bool = False

    @field_validator("enrichable")
    @classmethod
    def _fields_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("an entity needs at least one enrichable field")
        if len(set(v)) != len(v):
            raise ValueError("enrichable fields must be unique")
        return v

    @model_validator(mode="after")
    def _check_field_membership(self):
        keys = {self.primary_key, *(fk.field for fk in self.foreign_keys)}
        overlap = keys.intersection(self.enrichable)
        if overlap:
            raise ValueError(f"key fields cannot be enrichable: {sorted(overlap)}")
        overlap = set(TIMESTAMP_FIELDS).intersection(self.enrichable + self.extra_columns)
        if overlap:
            raise ValueError(f"timestamp fields are managed by the pipeline: {sorted(overlap)}")
        known = set(self.columns)
        for hint_field in self.field_hints:
            if hint_field not in self.enrichable:
                raise ValueError(f"field hint for non-enrichable field {hint_field!r}")
        if self.stubs.seed_field and self.stubs.seed_field not in known:
            raise ValueError(f"stub seed_field {self.stubs.seed_field!r} is not a column")
        for fk_field in self.stubs.secondary_parents:
            if fk_field not in {fk.field for fk in self.foreign_keys}:
                raise ValueError(f"secondary parent {fk_field!r} is not a foreign key")
        return self

    @property
    def columns(self) -> List[str]:
        """Canonical column order for the table file."""
        ordered = [self.primary_key]
        ordered += [fk.field for fk in self.foreign_keys]
        ordered += self.enrichable
        ordered += self.extra_columns
        ordered += list(TIMESTAMP_FIELDS)
        seen = set()
        return [c for c in ordered if not (c in seen or seen.add(c))]

    @property
    def primary_parent(self) -> Optional[ForeignKey]:
        """The foreign key the Referential Validator indexes and stubs against."""
        return self.foreign_keys[0] if self.foreign_keys else None

    @property
    def is_root(self) -> bool:
        return not self.foreign_keys

    def parent_tables(self) -> List[str]:
        return [fk.table for fk in self.foreign_keys]
