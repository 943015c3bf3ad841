"""Alteration operations produced by the diff engine.

Column operations are wrapped in ``AlterColumn(table, subject, op)``.  The
``subject`` is the column the operation is about, except for foreign-key
steps on an existing column whose reference moves between tables: those are
attributed to the referenced table (the old one for the drop, the new one for
the add).

Table operations are wrapped in ``AlterTable(table, op)``.  ``CreateTable``
stands alone and carries the full desired column list.

The variant sets are closed: ``ColumnOp`` and ``TableOp`` list every kind
the renderer understands.
"""

from dataclasses import dataclass
from typing import Union

from db_migrate.schema.models import ColumnSchema, EntityDefinition, SqlType


# ------------------------------------------------------------------
# Column operations
# ------------------------------------------------------------------


@dataclass(frozen=True)
class AddColumn:
    column: ColumnSchema


@dataclass(frozen=True)
class ChangeColumn:
    """Full column rewrite (type, nullability, default)."""

    column: ColumnSchema


@dataclass(frozen=True)
class DropColumn:
    pass


@dataclass(frozen=True)
class SetDefault:
    value: str


@dataclass(frozen=True)
class ClearDefault:
    pass


@dataclass(frozen=True)
class SetForeignKey:
    ref_table: str
    constraint_name: str
    columns: tuple[str, ...]
    ref_columns: tuple[str, ...]


@dataclass(frozen=True)
class DropForeignKey:
    constraint_name: str


@dataclass(frozen=True)
class DataFix:
    """Backfill NULLs of a column with an SQL expression."""

    expression: str


ColumnOp = Union[
    AddColumn,
    ChangeColumn,
    DropColumn,
    SetDefault,
    ClearDefault,
    SetForeignKey,
    DropForeignKey,
    DataFix,
]


# ------------------------------------------------------------------
# Table operations
# ------------------------------------------------------------------


@dataclass(frozen=True)
class UniqueColumn:
    """Member of a unique constraint with the type info needed for DDL."""

    name: str
    sql_type: SqlType
    max_len: int


@dataclass(frozen=True)
class AddUniqueConstraint:
    name: str
    columns: tuple[UniqueColumn, ...]


@dataclass(frozen=True)
class DropUniqueConstraint:
    name: str


TableOp = Union[AddUniqueConstraint, DropUniqueConstraint]


# ------------------------------------------------------------------
# Steps
# ------------------------------------------------------------------


@dataclass(frozen=True)
class AlterColumn:
    table: str
    subject: str
    op: ColumnOp


@dataclass(frozen=True)
class AlterTable:
    table: str
    op: TableOp


@dataclass(frozen=True)
class CreateTable:
    entity: EntityDefinition
    columns: tuple[ColumnSchema, ...]


Step = Union[CreateTable, AlterColumn, AlterTable]
