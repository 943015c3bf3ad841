"""db-migrate: MySQL schema migration planning and value codec.

Compares entity definitions with the live schema read from
INFORMATION_SCHEMA, renders the alterations that reconcile them as MySQL
statements flagged safe or unsafe, and marshals values between Python and
MySQL's wire types.

Usage:
    from db_migrate import EntityDefinition, FieldDefinition, STRING
    from db_migrate import get_runner, migrate_all, mock_migration
    from db_migrate import encode_param, decode_column_value
"""

__version__ = "0.1.0"

# Adapters
from db_migrate.adapters.base import EmptyQueryRunner, PreparedStatement, QueryRunner
from db_migrate.adapters.mysql import MySQLQueryRunner

# Codec
from db_migrate.codec import (
    DbSpecific,
    ObjectId,
    UnsupportedValueError,
    WireValue,
    decode_column_value,
    encode_param,
)

# Config
from db_migrate.config.loader import load_db_config, load_entities
from db_migrate.config.models import DatabaseConfig, DatabaseProfile

# Factory
from db_migrate.factory import ProfileNotFoundError, get_runner, resolve_url

# Schema
from db_migrate.schema.compiler import DefinitionError
from db_migrate.schema.introspector import AmbiguousForeignKeyError, SchemaIntrospector
from db_migrate.schema.models import (
    BLOB,
    BOOL,
    DAY,
    DAY_TIME,
    INT32,
    INT64,
    REAL,
    STRING,
    TIME,
    EntityDefinition,
    FieldDefinition,
    ForeignKeyDefinition,
    MigrationPlan,
    RenderedStep,
    SqlKind,
    SqlType,
    UniqueDefinition,
)
from db_migrate.schema.planner import migrate, migrate_all, mock_migration

__all__ = [
    # Adapters
    "QueryRunner",
    "PreparedStatement",
    "EmptyQueryRunner",
    "MySQLQueryRunner",
    # Codec
    "encode_param",
    "decode_column_value",
    "WireValue",
    "DbSpecific",
    "ObjectId",
    "UnsupportedValueError",
    # Config
    "load_db_config",
    "load_entities",
    "DatabaseProfile",
    "DatabaseConfig",
    # Factory
    "get_runner",
    "resolve_url",
    "ProfileNotFoundError",
    # Schema
    "SqlKind",
    "SqlType",
    "BOOL",
    "INT32",
    "INT64",
    "REAL",
    "STRING",
    "BLOB",
    "TIME",
    "DAY",
    "DAY_TIME",
    "EntityDefinition",
    "FieldDefinition",
    "UniqueDefinition",
    "ForeignKeyDefinition",
    "RenderedStep",
    "MigrationPlan",
    "SchemaIntrospector",
    "AmbiguousForeignKeyError",
    "DefinitionError",
    "migrate",
    "migrate_all",
    "mock_migration",
]
