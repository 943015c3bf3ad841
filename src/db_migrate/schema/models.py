"""Pydantic models for schema introspection, desired schemas, and plans.

This module contains schema-domain models:
- Logical types: SqlKind, SqlType
- Column and constraint specs: ColumnReference, ColumnSchema, UniqueSchema,
  ForeignKeySchema (shared by the desired and the live schema so the two can
  be diffed structurally)
- Entity definitions: FieldDefinition, UniqueDefinition,
  ForeignKeyDefinition, EntityDefinition
- Introspection errors: ParseError
- Plan models: RenderedStep, MigrationPlan

Configuration models (DatabaseProfile, DatabaseConfig) live in
db_migrate.config.models.
"""

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Logical Types
# ============================================================================


class SqlKind(str, Enum):
    """Logical column type kinds understood by the type mapper."""

    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    REAL = "real"
    NUMERIC = "numeric"
    STRING = "string"
    BLOB = "blob"
    TIME = "time"
    DAY = "day"
    DAY_TIME = "day_time"
    OTHER = "other"


class SqlType(BaseModel):
    """A logical column type.

    ``NUMERIC`` carries ``precision``/``scale``; ``OTHER`` carries the raw
    native type text, passed through verbatim.

    Example:
        >>> SqlType.numeric(10, 2).precision
        10
        >>> SqlType.other("int(10) unsigned").raw
        'int(10) unsigned'
    """

    model_config = ConfigDict(frozen=True)

    kind: SqlKind
    precision: int | None = None
    scale: int | None = None
    raw: str | None = None

    @classmethod
    def numeric(cls, precision: int, scale: int) -> "SqlType":
        return cls(kind=SqlKind.NUMERIC, precision=precision, scale=scale)

    @classmethod
    def other(cls, raw: str) -> "SqlType":
        return cls(kind=SqlKind.OTHER, raw=raw)


BOOL = SqlType(kind=SqlKind.BOOL)
INT32 = SqlType(kind=SqlKind.INT32)
INT64 = SqlType(kind=SqlKind.INT64)
REAL = SqlType(kind=SqlKind.REAL)
STRING = SqlType(kind=SqlKind.STRING)
BLOB = SqlType(kind=SqlKind.BLOB)
TIME = SqlType(kind=SqlKind.TIME)
DAY = SqlType(kind=SqlKind.DAY)
DAY_TIME = SqlType(kind=SqlKind.DAY_TIME)


# ============================================================================
# Column and Constraint Specs
# ============================================================================


class ColumnReference(BaseModel):
    """Single-column foreign key: referenced table and constraint name."""

    model_config = ConfigDict(frozen=True)

    table: str
    constraint_name: str


class ColumnSchema(BaseModel):
    """Schema for a column, desired or live.

    Example:
        >>> col = ColumnSchema(name="title", sql_type=STRING, max_len=80)
        >>> col.nullable
        False
    """

    model_config = ConfigDict(frozen=True)

    name: str
    sql_type: SqlType
    nullable: bool = False
    max_len: int | None = None
    default: str | None = None
    reference: ColumnReference | None = None


class UniqueSchema(BaseModel):
    """Non-primary unique constraint: name and ordered member columns."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...]


class ForeignKeySchema(BaseModel):
    """Explicit (possibly multi-column) foreign key."""

    model_config = ConfigDict(frozen=True)

    ref_table: str
    constraint_name: str
    columns: tuple[str, ...]
    ref_columns: tuple[str, ...]


class ParseError(BaseModel):
    """A catalog row that could not be turned into a column or constraint."""

    model_config = ConfigDict(frozen=True)

    message: str


# ============================================================================
# Entity Definitions
# ============================================================================


class FieldDefinition(BaseModel):
    """A declared field of an entity.

    ``references`` names another entity; the compiler turns it into a
    single-column foreign key against that entity's key.
    """

    name: str
    sql_type: SqlType
    nullable: bool = False
    max_len: int | None = None
    default: str | None = None
    references: str | None = None


class UniqueDefinition(BaseModel):
    """A declared unique constraint over one or more fields."""

    name: str
    fields: list[str]


class ForeignKeyDefinition(BaseModel):
    """A declared composite foreign key.

    ``fields`` pairs each local field with the referenced entity's field.
    """

    references: str
    constraint_name: str
    fields: list[tuple[str, str]]


def _default_id_field() -> FieldDefinition:
    return FieldDefinition(name="id", sql_type=INT64)


class EntityDefinition(BaseModel):
    """Desired-state unit for one table.

    ``primary_key`` is ``None`` for the single auto-increment id strategy,
    or the list of field names forming an explicit composite key.

    Example:
        >>> user = EntityDefinition(
        ...     name="user",
        ...     fields=[FieldDefinition(name="email", sql_type=STRING, max_len=120)],
        ... )
        >>> user.id_field.name
        'id'
        >>> user.key_columns
        ['id']
    """

    name: str
    id_field: FieldDefinition = Field(default_factory=_default_id_field)
    primary_key: list[str] | None = None
    fields: list[FieldDefinition] = Field(default_factory=list)
    uniques: list[UniqueDefinition] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyDefinition] = Field(default_factory=list)

    @property
    def key_columns(self) -> list[str]:
        """Columns a foreign key to this entity references."""
        if self.primary_key is not None:
            return list(self.primary_key)
        return [self.id_field.name]

    def find_field(self, name: str) -> FieldDefinition | None:
        for field_def in self.fields:
            if field_def.name == name:
                return field_def
        if self.id_field.name == name:
            return self.id_field
        return None


# ============================================================================
# Plan Models
# ============================================================================


class RenderedStep(NamedTuple):
    """One statement of a plan and whether it may destroy data."""

    unsafe: bool
    sql: str


class MigrationPlan(BaseModel):
    """Ordered, safety-annotated statements for one table, or its errors.

    Example:
        >>> plan = MigrationPlan(table="user")
        >>> plan.ok
        True
        >>> plan.format_report()
        'user: up to date'
    """

    table: str
    steps: list[RenderedStep] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if introspection produced no parse errors."""
        return not self.errors

    @property
    def safe_steps(self) -> list[RenderedStep]:
        return [step for step in self.steps if not step.unsafe]

    @property
    def unsafe_steps(self) -> list[RenderedStep]:
        return [step for step in self.steps if step.unsafe]

    @property
    def has_unsafe(self) -> bool:
        return any(step.unsafe for step in self.steps)

    def format_report(self) -> str:
        """Format the plan as a human-readable report."""
        if self.errors:
            lines = [f"{self.table}: {len(self.errors)} introspection error(s)"]
            lines.extend(f"    - {error}" for error in self.errors)
            return "\n".join(lines)

        if not self.steps:
            return f"{self.table}: up to date"

        lines = [f"{self.table}: {len(self.steps)} step(s)"]
        for step in self.steps:
            marker = "!" if step.unsafe else " "
            lines.append(f"  {marker} {step.sql};")
        return "\n".join(lines)
