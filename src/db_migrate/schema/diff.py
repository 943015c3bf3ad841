"""Compute the alterations that turn a live table into the desired one.

Pure logic -- no I/O.  Columns and unique constraints are matched strictly
by name, so a rename shows up as a drop plus an add.

Step order:
1. For each desired column in declaration order: add (plus its foreign
   key), or the fixups of the existing column (drop old reference, change,
   default, add new reference).
2. Live columns with no desired counterpart: drop reference, drop column.
3. Unique constraints: add, drop+add, drop.

Usage:
    from db_migrate.schema.diff import TableState, diff_table

    column_alters, table_alters = diff_table(
        "user",
        TableState(desired_columns, desired_uniques),
        TableState(live_columns, live_uniques),
        all_entities,
    )
"""

from typing import NamedTuple

from db_migrate.schema.compiler import (
    CompiledEntity,
    foreign_key_name,
    referenced_columns,
    unique_column,
)
from db_migrate.schema.models import ColumnSchema, EntityDefinition, UniqueSchema
from db_migrate.schema.operations import (
    AddColumn,
    AddUniqueConstraint,
    AlterColumn,
    AlterTable,
    ChangeColumn,
    ClearDefault,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropUniqueConstraint,
    SetDefault,
    SetForeignKey,
    Step,
)
from db_migrate.schema.types import render_sql_type


class TableState(NamedTuple):
    """Columns and unique constraints of one table, desired or live."""

    columns: list[ColumnSchema]
    uniques: list[UniqueSchema]


def _set_reference(
    table: str,
    column: str,
    ref_table: str,
    all_entities: list[EntityDefinition],
) -> AlterColumn:
    op = SetForeignKey(
        ref_table=ref_table,
        constraint_name=foreign_key_name(table, column),
        columns=(column,),
        ref_columns=referenced_columns(all_entities, ref_table),
    )
    return AlterColumn(table, ref_table, op)


def _same_type(new: ColumnSchema, old: ColumnSchema) -> bool:
    new_type = render_sql_type(new.sql_type, new.max_len)
    old_type = render_sql_type(old.sql_type, old.max_len)
    return new_type.casefold() == old_type.casefold() and new.nullable == old.nullable


def find_alters(
    table: str,
    all_entities: list[EntityDefinition],
    column: ColumnSchema,
    live_columns: list[ColumnSchema],
) -> tuple[list[AlterColumn], list[ColumnSchema]]:
    """Find what must change in ``live_columns`` to support ``column``.

    Returns:
        Tuple of ``(alters, remaining_live_columns)``; the matched live
        column, if any, is removed from the remainder.
    """
    name = column.name
    matches = [c for c in live_columns if c.name == name]

    if not matches:
        alters = [AlterColumn(table, name, AddColumn(column))]
        if column.reference is not None:
            alters.append(_set_reference(table, name, column.reference.table, all_entities))
        return alters, live_columns

    old = matches[0]
    remaining = [c for c in live_columns if c.name != name]
    alters: list[AlterColumn] = []
    reference_changed = column.reference != old.reference

    if reference_changed and old.reference is not None:
        alters.append(
            AlterColumn(table, old.reference.table, DropForeignKey(old.reference.constraint_name))
        )

    if not _same_type(column, old):
        alters.append(AlterColumn(table, name, ChangeColumn(column)))

    if column.default != old.default:
        if column.default is None:
            alters.append(AlterColumn(table, name, ClearDefault()))
        else:
            alters.append(AlterColumn(table, name, SetDefault(column.default)))

    if reference_changed and column.reference is not None:
        alters.append(_set_reference(table, name, column.reference.table, all_entities))

    return alters, remaining


def _drop_column(table: str, column: ColumnSchema) -> list[AlterColumn]:
    alters = []
    if column.reference is not None:
        alters.append(
            AlterColumn(table, column.name, DropForeignKey(column.reference.constraint_name))
        )
    alters.append(AlterColumn(table, column.name, DropColumn()))
    return alters


def diff_columns(
    table: str,
    all_entities: list[EntityDefinition],
    desired: list[ColumnSchema],
    live: list[ColumnSchema],
) -> list[AlterColumn]:
    alters: list[AlterColumn] = []
    remaining = list(live)
    for column in desired:
        column_alters, remaining = find_alters(table, all_entities, column, remaining)
        alters.extend(column_alters)
    for column in remaining:
        alters.extend(_drop_column(table, column))
    return alters


def _add_unique(
    table: str,
    all_entities: list[EntityDefinition],
    unique: UniqueSchema,
) -> AlterTable:
    members = tuple(unique_column(all_entities, table, c) for c in unique.columns)
    return AlterTable(table, AddUniqueConstraint(unique.name, members))


def diff_uniques(
    table: str,
    all_entities: list[EntityDefinition],
    desired: list[UniqueSchema],
    live: list[UniqueSchema],
) -> list[AlterTable]:
    """Compare unique constraints by name.

    Live member order comes from ``UNIQUES_QUERY``, which returns rows
    ``ORDER BY CONSTRAINT_NAME, COLUMN_NAME``. The desired members are sorted
    by name to match, then compared as ordered tuples. Keep the comparison
    ordered, not a set comparison: a live list that is not in that order
    must still be dropped and re-added.
    """
    alters: list[AlterTable] = []
    remaining = {u.name: u for u in live}

    for unique in desired:
        old = remaining.pop(unique.name, None)
        if old is None:
            alters.append(_add_unique(table, all_entities, unique))
        elif tuple(sorted(unique.columns)) != tuple(old.columns):
            alters.append(AlterTable(table, DropUniqueConstraint(unique.name)))
            alters.append(_add_unique(table, all_entities, unique))

    for name in remaining:
        alters.append(AlterTable(table, DropUniqueConstraint(name)))

    return alters


def diff_table(
    table: str,
    desired: TableState,
    live: TableState,
    all_entities: list[EntityDefinition],
) -> tuple[list[AlterColumn], list[AlterTable]]:
    """Diff desired against live state of one table.

    Args:
        table: Table name.
        desired: Desired columns and unique constraints.
        live: Live columns and unique constraints from the introspector.
        all_entities: Every entity definition, for resolving referenced keys
            and unique member types.

    Returns:
        Tuple of ``(column_alters, table_alters)``.
    """
    return (
        diff_columns(table, all_entities, desired.columns, live.columns),
        diff_uniques(table, all_entities, desired.uniques, live.uniques),
    )


def create_table_steps(
    entity: EntityDefinition,
    compiled: CompiledEntity,
    all_entities: list[EntityDefinition],
) -> list[Step]:
    """Steps that build a table from nothing.

    One ``CreateTable``, then every unique constraint, then the foreign key
    of every referencing column, then every explicit foreign key.
    """
    table = entity.name
    steps: list[Step] = [CreateTable(entity, tuple(compiled.columns))]

    steps.extend(_add_unique(table, all_entities, u) for u in compiled.uniques)

    for column in compiled.columns:
        if column.reference is not None:
            steps.append(_set_reference(table, column.name, column.reference.table, all_entities))

    for fk in compiled.foreign_keys:
        op = SetForeignKey(
            ref_table=fk.ref_table,
            constraint_name=fk.constraint_name,
            columns=fk.columns,
            ref_columns=fk.ref_columns,
        )
        steps.append(AlterColumn(table, fk.ref_table, op))

    return steps
