"""Compile entity definitions into desired column and constraint specs.

The output has the same shape the introspector produces for the live
schema, so the diff engine can compare the two structurally.

Usage:
    from db_migrate.schema.compiler import compile_entity

    compiled = compile_entity(entity)
    compiled.columns       # list[ColumnSchema], declaration order
    compiled.uniques       # list[UniqueSchema]
    compiled.foreign_keys  # list[ForeignKeySchema]
"""

from typing import NamedTuple

from db_migrate.schema.models import (
    ColumnReference,
    ColumnSchema,
    EntityDefinition,
    FieldDefinition,
    ForeignKeySchema,
    UniqueSchema,
)
from db_migrate.schema.operations import UniqueColumn

# Index prefix length for text/blob unique members without a max length
DEFAULT_UNIQUE_MAX_LEN = 200


class DefinitionError(ValueError):
    """Raised when entity definitions refer to unknown entities or fields."""


class CompiledEntity(NamedTuple):
    columns: list[ColumnSchema]
    uniques: list[UniqueSchema]
    foreign_keys: list[ForeignKeySchema]


def foreign_key_name(table: str, column: str) -> str:
    """Constraint name for the single-column foreign key of ``table.column``."""
    return f"{table}_{column}_fkey"


def find_entity(all_entities: list[EntityDefinition], name: str) -> EntityDefinition:
    for entity in all_entities:
        if entity.name == name:
            return entity
    known = ", ".join(e.name for e in all_entities)
    raise DefinitionError(f"Unknown entity '{name}' (known: {known})")


def referenced_columns(all_entities: list[EntityDefinition], table: str) -> tuple[str, ...]:
    """Key columns of ``table`` that a foreign key to it references."""
    return tuple(find_entity(all_entities, table).key_columns)


def unique_column(
    all_entities: list[EntityDefinition],
    table: str,
    column: str,
) -> UniqueColumn:
    """Resolve type and max length of a unique constraint member."""
    field_def = find_entity(all_entities, table).find_field(column)
    if field_def is None:
        raise DefinitionError(f"Could not find type of column '{column}' on table '{table}'")
    max_len = field_def.max_len if field_def.max_len is not None else DEFAULT_UNIQUE_MAX_LEN
    return UniqueColumn(name=column, sql_type=field_def.sql_type, max_len=max_len)


def compile_column(table: str, field_def: FieldDefinition) -> ColumnSchema:
    """Turn a field definition into its desired column.

    Nullable columns without a default get the literal default ``NULL``,
    which is how the catalog query reports them.
    """
    default = field_def.default
    if default is None and field_def.nullable:
        default = "NULL"

    reference = None
    if field_def.references is not None:
        reference = ColumnReference(
            table=field_def.references,
            constraint_name=foreign_key_name(table, field_def.name),
        )

    return ColumnSchema(
        name=field_def.name,
        sql_type=field_def.sql_type,
        nullable=field_def.nullable,
        max_len=field_def.max_len,
        default=default,
        reference=reference,
    )


def compile_entity(entity: EntityDefinition) -> CompiledEntity:
    """Compile one entity into desired columns, uniques and foreign keys."""
    columns = [compile_column(entity.name, f) for f in entity.fields]

    uniques = [
        UniqueSchema(name=u.name, columns=tuple(u.fields))
        for u in entity.uniques
    ]

    foreign_keys = [
        ForeignKeySchema(
            ref_table=fk.references,
            constraint_name=fk.constraint_name,
            columns=tuple(local for local, _ in fk.fields),
            ref_columns=tuple(remote for _, remote in fk.fields),
        )
        for fk in entity.foreign_keys
    ]

    return CompiledEntity(columns=columns, uniques=uniques, foreign_keys=foreign_keys)
