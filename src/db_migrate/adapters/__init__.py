"""Query-execution adapters.

Provides the ``QueryRunner`` / ``PreparedStatement`` Protocols, the
``EmptyQueryRunner`` used by dry runs, and ``MySQLQueryRunner`` on
SQLAlchemy + PyMySQL.

Usage:
    from db_migrate.adapters import QueryRunner, MySQLQueryRunner
"""

from db_migrate.adapters.base import EmptyQueryRunner, PreparedStatement, QueryRunner
from db_migrate.adapters.mysql import MySQLQueryRunner

__all__ = [
    "QueryRunner",
    "PreparedStatement",
    "EmptyQueryRunner",
    "MySQLQueryRunner",
]
