"""MySQL schema introspection via INFORMATION_SCHEMA.

This module queries the live database to extract one table's schema:
- The id column (by the entity's id field name)
- Every other column: type, nullability, default, single-column reference
- Non-primary unique constraints and their member columns

Results come back in the same shape the compiler produces for the desired
schema.  Rows that cannot be parsed become ``ParseError`` entries; they are
collected, never raised.

All queries go through an injected ``QueryRunner``.  Each result set is
drained inside its ``with`` block, and foreign-key lookups run only after
the column result set has been released.
"""

import logging
from collections.abc import Sequence
from itertools import groupby
from typing import Any

from db_migrate.adapters.base import QueryRunner
from db_migrate.schema.models import (
    ColumnReference,
    ColumnSchema,
    EntityDefinition,
    ParseError,
    UniqueSchema,
)
from db_migrate.schema.types import ColumnInfo, ColumnTypeError, parse_column_type

logger = logging.getLogger(__name__)

IntrospectionResult = ParseError | ColumnSchema | UniqueSchema

_COLUMNS_SELECT = """
SELECT COLUMN_NAME,
       IS_NULLABLE,
       DATA_TYPE,
       COLUMN_TYPE,
       CHARACTER_MAXIMUM_LENGTH,
       NUMERIC_PRECISION,
       NUMERIC_SCALE,
       IF(IS_NULLABLE='YES', COALESCE(COLUMN_DEFAULT, 'NULL'), COLUMN_DEFAULT)
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_SCHEMA = %s
  AND TABLE_NAME   = %s
"""

ID_COLUMN_QUERY = _COLUMNS_SELECT + "  AND COLUMN_NAME  = %s"

OTHER_COLUMNS_QUERY = _COLUMNS_SELECT + "  AND COLUMN_NAME <> %s"

UNIQUES_QUERY = """
SELECT CONSTRAINT_NAME,
       COLUMN_NAME
FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = %s
  AND TABLE_NAME   = %s
  AND COLUMN_NAME <> %s
  AND CONSTRAINT_NAME <> 'PRIMARY'
  AND REFERENCED_TABLE_SCHEMA IS NULL
ORDER BY CONSTRAINT_NAME,
         COLUMN_NAME
"""

REFERENCE_QUERY = """
SELECT REFERENCED_TABLE_NAME,
       CONSTRAINT_NAME,
       ORDINAL_POSITION
FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = %s
  AND TABLE_NAME   = %s
  AND COLUMN_NAME  = %s
  AND REFERENCED_TABLE_SCHEMA = %s
ORDER BY CONSTRAINT_NAME,
         COLUMN_NAME
"""


class AmbiguousForeignKeyError(RuntimeError):
    """Raised when a column takes part in more than one foreign key."""


class _CatalogRowError(ValueError):
    pass


class SchemaIntrospector:
    """Introspects one MySQL schema through a ``QueryRunner``.

    Usage:
        introspector = SchemaIntrospector(runner, "app")
        id_results, other_results = introspector.get_columns(entity)

        errors = [r for r in id_results + other_results if isinstance(r, ParseError)]
    """

    def __init__(self, runner: QueryRunner, database: str):
        """Initialize with a query runner and the schema to inspect.

        Args:
            runner: Query-execution capability
            database: Schema name (``TABLE_SCHEMA``)
        """
        self._runner = runner
        self._database = database

    def _fetch(self, sql: str, params: Sequence[Any]) -> list[list[Any]]:
        logger.debug("catalog query %s with %r", " ".join(sql.split()), list(params))
        stmt = self._runner.prepare(sql)
        with stmt.query(params) as rows:
            return list(rows)

    def get_columns(
        self, entity: EntityDefinition
    ) -> tuple[list[IntrospectionResult], list[IntrospectionResult]]:
        """Read the live columns and unique constraints of ``entity``'s table.

        Args:
            entity: Desired entity; only its table and id field names are used

        Returns:
            Tuple of ``(id_results, other_results)``.  ``id_results`` holds the
            id column (or its parse error); ``other_results`` holds every other
            column followed by the unique constraints.

        Raises:
            AmbiguousForeignKeyError: If a column has more than one reference row
        """
        table = entity.name
        params = [self._database, table, entity.id_field.name]

        id_rows = self._fetch(ID_COLUMN_QUERY, params)
        id_results = [self._parse_column(table, row) for row in id_rows]

        column_rows = self._fetch(OTHER_COLUMNS_QUERY, params)
        other_results: list[IntrospectionResult] = [
            self._parse_column(table, row) for row in column_rows
        ]

        unique_rows = self._fetch(UNIQUES_QUERY, params)
        other_results.extend(self._parse_uniques(unique_rows))

        return id_results, other_results

    def _parse_uniques(self, rows: list[list[Any]]) -> list[IntrospectionResult]:
        pairs: list[tuple[str, str]] = []
        results: list[IntrospectionResult] = []
        for row in rows:
            if len(row) == 2 and all(isinstance(v, str) for v in row):
                pairs.append((row[0], row[1]))
            else:
                results.append(ParseError(message=f"Unexpected unique constraint row: {row!r}"))

        # Rows arrive ordered by constraint name, so adjacent grouping is complete
        for name, members in groupby(pairs, key=lambda pair: pair[0]):
            results.append(UniqueSchema(name=name, columns=tuple(col for _, col in members)))
        return results

    def _parse_column(self, table: str, row: list[Any]) -> ParseError | ColumnSchema:
        if len(row) != 8 or not all(isinstance(v, str) for v in row[:4]):
            return ParseError(message=f"Invalid result from INFORMATION_SCHEMA: {row!r}")

        name, is_nullable, data_type, column_type, max_len, precision, scale, default = row

        default_text, error = _parse_default(default)
        if error is not None:
            return error

        try:
            reference = self._get_reference(table, name)
        except _CatalogRowError as e:
            return ParseError(message=str(e))

        info = ColumnInfo(
            column_type=column_type,
            max_length=max_len if isinstance(max_len, int) and not isinstance(max_len, bool) else None,
            numeric_precision=precision,
            numeric_scale=scale,
        )
        try:
            sql_type, parsed_len = parse_column_type(data_type, info)
        except ColumnTypeError as e:
            return ParseError(message=f"Column '{name}': {e}")

        return ColumnSchema(
            name=name,
            sql_type=sql_type,
            nullable=is_nullable == "YES",
            max_len=parsed_len,
            default=default_text,
            reference=reference,
        )

    def _get_reference(self, table: str, column: str) -> ColumnReference | None:
        """Find the single-column foreign key of ``table.column``, if any.

        Only a reference where the column sits at ``ORDINAL_POSITION`` 1 counts;
        other positions belong to composite keys and are ignored.
        """
        rows = self._fetch(
            REFERENCE_QUERY, [self._database, table, column, self._database]
        )
        if not rows:
            return None
        if len(rows) > 1:
            raise AmbiguousForeignKeyError(
                f"Column '{table}.{column}' has {len(rows)} foreign key rows"
            )

        row = rows[0]
        if (
            len(row) != 3
            or not isinstance(row[0], str)
            or not isinstance(row[1], str)
            or not isinstance(row[2], int)
        ):
            raise _CatalogRowError(
                f"Unexpected foreign key row for '{table}.{column}': {row!r}"
            )

        ref_table, constraint_name, position = row
        if position != 1:
            return None
        return ColumnReference(table=ref_table, constraint_name=constraint_name)


def _parse_default(value: Any) -> tuple[str | None, ParseError | None]:
    if value is None:
        return None, None
    if isinstance(value, str):
        return value, None
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8"), None
        except UnicodeDecodeError as e:
            return None, ParseError(message=f"Invalid default column: {value!r} (error: {e})")
    return None, ParseError(message=f"Invalid default column: {value!r}")
