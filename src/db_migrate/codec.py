"""Value codec between application values and MySQL wire values.

Wire values are ``WireValue(field_type, value)`` pairs, where ``field_type``
is a MySQL protocol column type code (``pymysql.constants.FIELD_TYPE``) and
``value`` is what the driver sends or returned.

``encode_param`` maps an application value to a query parameter.
``decode_column_value`` maps a returned cell back, using the column's
display width to tell ``TINYINT(1)`` booleans apart from integers.

Usage:
    from db_migrate.codec import decode_column_value, encode_param

    encode_param(True)
    # WireValue(field_type=1, value=1)

    decode_column_value(WireValue(FIELD_TYPE.TINY, 1), display_width=1)
    # True
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, localcontext
from fractions import Fraction
from typing import Any, NamedTuple

from pymysql.constants import FIELD_TYPE

# Fixed-point values are sent with picosecond-style resolution (12 digits).
DECIMAL_QUANTUM = Decimal("1e-12")

INTEGER_TYPES = frozenset({
    FIELD_TYPE.TINY,
    FIELD_TYPE.SHORT,
    FIELD_TYPE.INT24,
    FIELD_TYPE.LONG,
    FIELD_TYPE.LONGLONG,
    FIELD_TYPE.BIT,
})
FLOAT_TYPES = frozenset({
    FIELD_TYPE.FLOAT,
    FIELD_TYPE.DOUBLE,
    FIELD_TYPE.DECIMAL,
    FIELD_TYPE.NEWDECIMAL,
})
TEXT_TYPES = frozenset({
    FIELD_TYPE.VARCHAR,
    FIELD_TYPE.VAR_STRING,
    FIELD_TYPE.STRING,
    FIELD_TYPE.ENUM,
    FIELD_TYPE.SET,
    FIELD_TYPE.JSON,
    FIELD_TYPE.TINY_BLOB,
    FIELD_TYPE.MEDIUM_BLOB,
    FIELD_TYPE.LONG_BLOB,
    FIELD_TYPE.BLOB,
})


class UnsupportedValueError(ValueError):
    """Raised when a value has no MySQL representation."""


class WireValue(NamedTuple):
    """A value as the MySQL driver sends or returns it."""

    field_type: int
    value: Any


@dataclass(frozen=True)
class DbSpecific:
    """Opaque database-specific payload (geometry, unknown column kinds)."""

    payload: bytes


@dataclass(frozen=True)
class ObjectId:
    """Document-store identifier; MySQL has no representation for it."""

    value: str


# ============================================================================
# Encoding
# ============================================================================


def _canonical_decimal(value: Decimal | Fraction) -> Decimal:
    if isinstance(value, Decimal) and not value.is_finite():
        raise UnsupportedValueError(f"No MySQL representation for non-finite decimal {value}")
    if isinstance(value, Fraction):
        int_digits = len(str(abs(value.numerator) // value.denominator))
    else:
        int_digits = max(value.adjusted() + 1, 1)
    with localcontext() as ctx:
        # room for every integer digit plus the fixed fractional digits
        ctx.prec = max(60, int_digits + 13)
        if isinstance(value, Fraction):
            value = Decimal(value.numerator) / Decimal(value.denominator)
        return value.quantize(DECIMAL_QUANTUM)


def encode_param(value: Any) -> WireValue:
    """Encode an application value as a query parameter.

    Integers of every width travel as ``LONGLONG``.  Datetimes are sent as
    the server's local wall-clock time: naive values unchanged, aware values
    converted to UTC and stripped of their zone.

    Args:
        value: Application value.

    Returns:
        ``WireValue`` ready for the driver.

    Raises:
        UnsupportedValueError: If the value has no MySQL representation.
    """
    if value is None:
        return WireValue(FIELD_TYPE.NULL, None)
    if isinstance(value, bool):
        return WireValue(FIELD_TYPE.TINY, 1 if value else 0)
    if isinstance(value, int):
        return WireValue(FIELD_TYPE.LONGLONG, value)
    if isinstance(value, float):
        return WireValue(FIELD_TYPE.DOUBLE, value)
    if isinstance(value, (Decimal, Fraction)):
        return WireValue(FIELD_TYPE.NEWDECIMAL, _canonical_decimal(value))
    if isinstance(value, str):
        return WireValue(FIELD_TYPE.VAR_STRING, value)
    if isinstance(value, (bytes, bytearray)):
        return WireValue(FIELD_TYPE.BLOB, bytes(value))
    # datetime is a date subclass; check it first
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return WireValue(FIELD_TYPE.DATETIME, value)
    if isinstance(value, date):
        return WireValue(FIELD_TYPE.DATE, value)
    if isinstance(value, time):
        return WireValue(FIELD_TYPE.TIME, value)
    if isinstance(value, (list, dict)):
        return WireValue(FIELD_TYPE.VAR_STRING, json.dumps(value))
    if isinstance(value, DbSpecific):
        return WireValue(FIELD_TYPE.BLOB, value.payload)
    if isinstance(value, ObjectId):
        raise UnsupportedValueError("Refusing to map an ObjectId to a MySQL value")

    raise UnsupportedValueError(
        f"No MySQL representation for {type(value).__name__}: {value!r}"
    )


# ============================================================================
# Decoding
# ============================================================================


def _to_int(value: Any) -> int:
    # BIT columns arrive as big-endian bytes
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    return int(value)


def _to_time(value: Any) -> Any:
    if isinstance(value, time):
        return value
    if isinstance(value, timedelta) and timedelta(0) <= value < timedelta(days=1):
        seconds = int(value.total_seconds())
        return time(seconds // 3600, seconds % 3600 // 60, seconds % 60, value.microseconds)
    return _opaque(value)


def _opaque(value: Any) -> DbSpecific:
    if isinstance(value, (bytes, bytearray)):
        return DbSpecific(bytes(value))
    return DbSpecific(str(value).encode())


def decode_column_value(wire: WireValue, display_width: int | None) -> Any:
    """Decode a returned cell into an application value.

    Integer cells become ``bool`` only when the owning column's display
    width is exactly 1; otherwise they become ``int`` whatever their storage
    width.  Fixed-point cells decode to ``float``.  Datetimes are taken to be
    in UTC.  Unknown column kinds are kept as ``DbSpecific`` bytes.

    Args:
        wire: Field type code and raw driver value.
        display_width: Column display width from the result metadata.

    Returns:
        Application value.
    """
    field_type, value = wire

    if value is None or field_type == FIELD_TYPE.NULL:
        return None
    if field_type in INTEGER_TYPES:
        number = _to_int(value)
        if display_width == 1:
            return number != 0
        return number
    if field_type in FLOAT_TYPES:
        return float(value)
    if field_type in TEXT_TYPES:
        if isinstance(value, (str, bytes)):
            return value
        return str(value)
    if field_type in (FIELD_TYPE.DATETIME, FIELD_TYPE.TIMESTAMP):
        if isinstance(value, datetime):
            return value.replace(tzinfo=timezone.utc)
        return _opaque(value)
    if field_type in (FIELD_TYPE.DATE, FIELD_TYPE.NEWDATE):
        return value if isinstance(value, date) else _opaque(value)
    if field_type == FIELD_TYPE.YEAR:
        return date(_to_int(value), 1, 1)
    if field_type == FIELD_TYPE.TIME:
        return _to_time(value)

    return _opaque(value)
