"""Mapping between logical column types and MySQL type syntax.

``render_sql_type`` turns a ``SqlType`` into the text used in DDL.
``parse_column_type`` reads ``INFORMATION_SCHEMA.COLUMNS`` metadata back
into a ``SqlType``.  Narrow integer types are recognized only by their exact
``COLUMN_TYPE`` text (``tinyint(1)``, ``int(11)``, ``bigint(20)``), which is
what MySQL reports for columns rendered by this module.  Any other width
falls through to ``SqlKind.OTHER`` carrying the raw catalog text.

Usage:
    from db_migrate.schema.types import ColumnInfo, parse_column_type, render_sql_type

    render_sql_type(STRING, 80, include_charset=True)
    # 'VARCHAR(80) CHARACTER SET utf8'

    parse_column_type("varchar", ColumnInfo(column_type="varchar(80)", max_length=80))
    # (SqlType(kind=<SqlKind.STRING: 'string'>, ...), 80)
"""

from typing import Any

from pydantic import BaseModel

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
    SqlKind,
    SqlType,
)

CHARSET_SUFFIX = " CHARACTER SET utf8"


class ColumnTypeError(ValueError):
    """Raised when catalog metadata cannot describe a column's type."""


class ColumnInfo(BaseModel):
    """Extra column metadata from ``INFORMATION_SCHEMA.COLUMNS``."""

    column_type: str
    max_length: int | None = None
    numeric_precision: Any = None
    numeric_scale: Any = None


def render_sql_type(
    sql_type: SqlType,
    max_len: int | None = None,
    include_charset: bool = False,
) -> str:
    """Render a logical type in MySQL's syntax.

    Args:
        sql_type: Logical type to render.
        max_len: Optional maximum length; bounds strings and blobs.
        include_charset: Append the character set to string types.

    Returns:
        Native type text, e.g. ``"BIGINT"`` or ``"VARCHAR(80)"``.
    """
    kind = sql_type.kind

    if kind is SqlKind.BLOB:
        return "BLOB" if max_len is None else f"VARBINARY({max_len})"
    if kind is SqlKind.BOOL:
        return "TINYINT(1)"
    if kind is SqlKind.DAY:
        return "DATE"
    if kind is SqlKind.DAY_TIME:
        return "DATETIME"
    if kind is SqlKind.INT32:
        return "INT(11)"
    if kind is SqlKind.INT64:
        return "BIGINT"
    if kind is SqlKind.REAL:
        return "DOUBLE"
    if kind is SqlKind.NUMERIC:
        return f"NUMERIC({sql_type.precision},{sql_type.scale})"
    if kind is SqlKind.STRING:
        text = "TEXT" if max_len is None else f"VARCHAR({max_len})"
        return text + CHARSET_SUFFIX if include_charset else text
    if kind is SqlKind.TIME:
        return "TIME"
    return sql_type.raw or ""


def _as_int(value: Any) -> int | None:
    # bool is an int subclass; a catalog number is never a flag
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def parse_column_type(data_type: str, info: ColumnInfo) -> tuple[SqlType, int | None]:
    """Parse a column type as reported by ``INFORMATION_SCHEMA``.

    Args:
        data_type: ``DATA_TYPE`` (bare type name, e.g. ``"int"``).
        info: ``COLUMN_TYPE`` and length/precision metadata of the column.

    Returns:
        Tuple of ``(sql_type, max_len)``.

    Raises:
        ColumnTypeError: If a ``decimal`` column lacks precision or scale.
    """
    name = data_type.lower()
    column_type = info.column_type.lower()

    if name == "tinyint" and column_type == "tinyint(1)":
        return BOOL, None
    if name == "int" and column_type == "int(11)":
        return INT32, None
    if name == "bigint" and column_type == "bigint(20)":
        return INT64, None
    if name == "double":
        return REAL, None
    if name == "decimal":
        precision = _as_int(info.numeric_precision)
        scale = _as_int(info.numeric_scale)
        if precision is None or scale is None:
            raise ColumnTypeError("missing DECIMAL precision in DB schema")
        return SqlType.numeric(precision, scale), None
    if name == "varchar":
        return STRING, info.max_length
    if name == "text":
        return STRING, None
    if name == "varbinary":
        return BLOB, info.max_length
    if name == "blob":
        return BLOB, None
    if name == "time":
        return TIME, None
    if name == "datetime":
        return DAY_TIME, None
    if name == "date":
        return DAY, None

    return SqlType.other(info.column_type), None
