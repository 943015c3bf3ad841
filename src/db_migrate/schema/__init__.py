"""Schema introspection, diffing, and statement rendering.

Provides live database introspection (``SchemaIntrospector``), the diff
engine (``diff_table``), statement rendering (``render_step``) and
migration planning (``migrate``, ``migrate_all``, ``mock_migration``).

Usage:
    from db_migrate.schema import migrate_all, mock_migration
    from db_migrate.schema import SchemaIntrospector, render_step
"""

from db_migrate.schema.compiler import DefinitionError, compile_entity
from db_migrate.schema.diff import TableState, create_table_steps, diff_table
from db_migrate.schema.introspector import AmbiguousForeignKeyError, SchemaIntrospector
from db_migrate.schema.models import (
    ColumnReference,
    ColumnSchema,
    EntityDefinition,
    FieldDefinition,
    ForeignKeyDefinition,
    ForeignKeySchema,
    MigrationPlan,
    ParseError,
    RenderedStep,
    SqlKind,
    SqlType,
    UniqueDefinition,
    UniqueSchema,
)
from db_migrate.schema.planner import migrate, migrate_all, mock_migration
from db_migrate.schema.render import render_step, render_steps
from db_migrate.schema.types import ColumnTypeError, parse_column_type, render_sql_type

__all__ = [
    "SchemaIntrospector",
    "AmbiguousForeignKeyError",
    "compile_entity",
    "DefinitionError",
    "diff_table",
    "create_table_steps",
    "TableState",
    "render_step",
    "render_steps",
    "render_sql_type",
    "parse_column_type",
    "ColumnTypeError",
    "migrate",
    "migrate_all",
    "mock_migration",
    "SqlKind",
    "SqlType",
    "ColumnReference",
    "ColumnSchema",
    "UniqueSchema",
    "ForeignKeySchema",
    "ParseError",
    "EntityDefinition",
    "FieldDefinition",
    "UniqueDefinition",
    "ForeignKeyDefinition",
    "RenderedStep",
    "MigrationPlan",
]
