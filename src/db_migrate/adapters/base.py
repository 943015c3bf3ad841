"""Query-execution capability protocols.

Defines ``QueryRunner`` (``prepare(sql) -> PreparedStatement``) and
``PreparedStatement``, the only way the introspector touches a database.

Usage:
    from db_migrate.adapters.base import QueryRunner

    def column_names(runner: QueryRunner, schema: str, table: str) -> list[str]:
        stmt = runner.prepare(
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s"
        )
        with stmt.query([schema, table]) as rows:
            return [row[0] for row in rows]
"""

from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager
from typing import Any, Protocol


class PreparedStatement(Protocol):
    """A statement bound to a runner, executable with parameters.

    Parameters are application values; implementations encode them with
    ``db_migrate.codec.encode_param`` and decode result cells with
    ``db_migrate.codec.decode_column_value``.
    """

    def execute(self, params: Sequence[Any] = ()) -> int:
        """Execute a statement that returns no rows.

        Args:
            params: Positional parameters for the ``%s`` placeholders.

        Returns:
            Number of affected rows.
        """
        ...

    def query(self, params: Sequence[Any] = ()) -> AbstractContextManager[Iterator[list[Any]]]:
        """Execute a statement that returns rows.

        The result set is acquired on entry and released on exit, on every
        exit path.  Callers must drain the iterator inside the ``with``
        block.

        Args:
            params: Positional parameters for the ``%s`` placeholders.

        Returns:
            Context manager yielding an iterator of decoded rows.

        Example:
            with stmt.query(["app", "user"]) as rows:
                names = [row[0] for row in rows]
        """
        ...


class QueryRunner(Protocol):
    """Injected capability that turns SQL text into prepared statements."""

    def prepare(self, sql: str) -> PreparedStatement:
        """Prepare ``sql`` for execution."""
        ...


class _EmptyStatement:
    def execute(self, params: Sequence[Any] = ()) -> int:
        return 0

    def query(self, params: Sequence[Any] = ()) -> AbstractContextManager[Iterator[list[Any]]]:
        return _EmptyRows()


class _EmptyRows:
    def __enter__(self) -> Iterator[list[Any]]:
        return iter(())

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class EmptyQueryRunner:
    """Runner whose every query returns no rows.

    Used by the dry-run preview: the introspector sees no existing columns,
    so every entity takes the create-table path without a database.
    """

    def prepare(self, sql: str) -> PreparedStatement:
        return _EmptyStatement()
