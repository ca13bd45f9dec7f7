"""
Cell values of captured rows.

Every value stored in a fixpoint belongs to one ValueKind. Values that JSON
can represent natively are stored as-is; everything else is stored as a
tagged object {"$type": <kind>, "value": <payload>}.
"""

import base64
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict
from uuid import UUID

from psycopg2.extras import DateRange, DateTimeRange, DateTimeTZRange, NumericRange

from .errors import InvalidRowError


TYPE_TAG = "$type"

# psycopg2 classes of the builtin range types, by stored name
RANGE_TYPES = {
    cls.__name__: cls
    for cls in (NumericRange, DateRange, DateTimeRange, DateTimeTZRange)
}


class ValueKind(str, Enum):
    """Kinds of values a row cell can hold."""
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    DECIMAL = "decimal"
    STRING = "string"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    INTERVAL = "interval"
    UUID = "uuid"
    BINARY = "binary"
    ARRAY = "array"
    JSON = "json"
    RANGE = "range"


@dataclass(frozen=True)
class JsonDocument:
    """Decoded content of a json/jsonb column.

    Kept apart from plain lists so that arrays and JSON documents survive a
    round trip through the store with their column type intact.
    """
    value: Any


def kind_of(value: Any) -> ValueKind:
    """Classify a Python value, raising InvalidRowError if it is unsupported."""
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, Decimal):
        return ValueKind.DECIMAL
    if isinstance(value, str):
        return ValueKind.STRING
    # datetime is a subclass of date
    if isinstance(value, datetime):
        return ValueKind.DATETIME
    if isinstance(value, date):
        return ValueKind.DATE
    if isinstance(value, time):
        return ValueKind.TIME
    if isinstance(value, timedelta):
        return ValueKind.INTERVAL
    if isinstance(value, UUID):
        return ValueKind.UUID
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BINARY
    if isinstance(value, list):
        for item in value:
            kind_of(item)
        return ValueKind.ARRAY
    if isinstance(value, JsonDocument):
        return ValueKind.JSON
    if isinstance(value, tuple(RANGE_TYPES.values())):
        if not value.isempty:
            kind_of(value.lower)
            kind_of(value.upper)
        return ValueKind.RANGE
    raise InvalidRowError(None, None, f"unsupported value type {type(value).__name__}")


def _tagged(kind: ValueKind, payload: Any) -> Dict[str, Any]:
    return {TYPE_TAG: kind.value, "value": payload}


def encode_value(value: Any) -> Any:
    """Convert a cell value to its JSON-compatible stored form."""
    kind = kind_of(value)

    if kind in (ValueKind.NULL, ValueKind.BOOL, ValueKind.INT, ValueKind.STRING):
        return value
    if kind == ValueKind.FLOAT:
        if math.isfinite(value):
            return value
        return _tagged(kind, repr(value))
    if kind == ValueKind.DECIMAL:
        return _tagged(kind, str(value))
    if kind in (ValueKind.DATE, ValueKind.DATETIME, ValueKind.TIME):
        return _tagged(kind, value.isoformat())
    if kind == ValueKind.INTERVAL:
        return _tagged(kind, {
            "days": value.days,
            "seconds": value.seconds,
            "microseconds": value.microseconds,
        })
    if kind == ValueKind.UUID:
        return _tagged(kind, str(value))
    if kind == ValueKind.BINARY:
        return _tagged(kind, base64.b64encode(bytes(value)).decode("ascii"))
    if kind == ValueKind.ARRAY:
        return [encode_value(item) for item in value]
    if kind == ValueKind.RANGE:
        if value.isempty:
            return _tagged(kind, {"type": _range_type(value), "empty": True})
        return _tagged(kind, {
            "type": _range_type(value),
            "lower": encode_value(value.lower),
            "upper": encode_value(value.upper),
            "bounds": ("[" if value.lower_inc else "(") + ("]" if value.upper_inc else ")"),
        })
    # ValueKind.JSON
    return _tagged(kind, value.value)


def _range_type(value: Any) -> str:
    return next(name for name, cls in RANGE_TYPES.items() if isinstance(value, cls))


def decode_value(stored: Any) -> Any:
    """Convert a stored value back to its Python form.

    Raises:
        ValueError: If the stored form is not a valid encoded value.
    """
    if stored is None or isinstance(stored, (bool, int, float, str)):
        return stored
    if isinstance(stored, list):
        return [decode_value(item) for item in stored]
    if not isinstance(stored, dict):
        raise ValueError(f"unexpected stored value {stored!r}")

    tag = stored.get(TYPE_TAG)
    if tag is None or set(stored) != {TYPE_TAG, "value"}:
        raise ValueError(f"untagged object {stored!r}")
    try:
        kind = ValueKind(tag)
    except ValueError:
        raise ValueError(f"unknown value type {tag!r}")

    payload = stored["value"]
    try:
        if kind == ValueKind.FLOAT:
            return float(payload)
        if kind == ValueKind.DECIMAL:
            return Decimal(payload)
        if kind == ValueKind.DATE:
            return date.fromisoformat(payload)
        if kind == ValueKind.DATETIME:
            return datetime.fromisoformat(payload)
        if kind == ValueKind.TIME:
            return time.fromisoformat(payload)
        if kind == ValueKind.INTERVAL:
            return timedelta(
                days=payload["days"],
                seconds=payload["seconds"],
                microseconds=payload["microseconds"],
            )
        if kind == ValueKind.UUID:
            return UUID(payload)
        if kind == ValueKind.BINARY:
            return base64.b64decode(payload.encode("ascii"), validate=True)
        if kind == ValueKind.JSON:
            return JsonDocument(payload)
        if kind == ValueKind.RANGE:
            cls = RANGE_TYPES[payload["type"]]
            if payload.get("empty"):
                return cls(empty=True)
            return cls(decode_value(payload["lower"]), decode_value(payload["upper"]), payload["bounds"])
    except (TypeError, KeyError, AttributeError, InvalidOperation, ValueError) as e:
        raise ValueError(f"invalid {kind.value} payload {payload!r}: {e}")

    raise ValueError(f"value type {tag!r} cannot be tagged")


def _is_nan(value: Any) -> bool:
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, Decimal):
        return value.is_nan()
    return False


def values_equal(left: Any, right: Any) -> bool:
    """Equality of two cell values, with NaN equal to NaN of the same type."""
    if _is_nan(left) or _is_nan(right):
        return _is_nan(left) and _is_nan(right) and type(left) is type(right)
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    return left == right
