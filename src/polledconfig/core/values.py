"""Typed configuration values and their mapping to Datastore REST values.

A Datastore ``Value`` arrives as a JSON object with one populated slot, e.g.
``{"integerValue": "42"}``. ``classify`` maps it onto the closed ``TypedValue``
union; ``to_raw`` performs the reverse mapping for write-back.

Slot priority is part of the public contract: boolean, integer, double,
string, timestamp. Key references and null values are never configuration
values.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)

_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d{1,9}))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)

_SPECIAL_DOUBLES = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}

KEY_SLOT = "keyValue"
NULL_SLOT = "nullValue"


class ValueKind(str, Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DOUBLE = "double"
    STRING = "string"
    TIMESTAMP = "timestamp"
    UNSUPPORTED = "unsupported"


# Priority order in which Datastore slots are inspected.
SLOT_PRIORITY: Tuple[Tuple[str, ValueKind], ...] = (
    ("booleanValue", ValueKind.BOOLEAN),
    ("integerValue", ValueKind.INTEGER),
    ("doubleValue", ValueKind.DOUBLE),
    ("stringValue", ValueKind.STRING),
    ("timestampValue", ValueKind.TIMESTAMP),
)

_SLOT_FOR_KIND = {kind: slot for slot, kind in SLOT_PRIORITY}


@dataclass(frozen=True)
class TypedValue:
    """One configuration value tagged with its kind.

    Timestamps are stored as integer microseconds since the Unix epoch.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def boolean(cls, value: bool) -> "TypedValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int) -> "TypedValue":
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"integer value must be int, got {type(value).__name__}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"integer value {value} is outside the signed 64-bit range")
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def double(cls, value: float) -> "TypedValue":
        return cls(ValueKind.DOUBLE, float(value))

    @classmethod
    def string(cls, value: str) -> "TypedValue":
        return cls(ValueKind.STRING, str(value))

    @classmethod
    def timestamp(cls, micros: int) -> "TypedValue":
        return cls(ValueKind.TIMESTAMP, int(micros))

    @classmethod
    def unsupported(cls) -> "TypedValue":
        return cls(ValueKind.UNSUPPORTED)

    @property
    def is_supported(self) -> bool:
        return self.kind is not ValueKind.UNSUPPORTED

    @classmethod
    def from_python(cls, value: Any) -> "TypedValue":
        """Wrap a plain Python value; ``bool`` is checked before ``int``."""
        if isinstance(value, TypedValue):
            return value
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, float):
            return cls.double(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, datetime):
            return cls.timestamp(timestamp_to_micros(value))
        raise TypeError(f"Unsupported configuration value type: {type(value).__name__}")


def timestamp_to_micros(value: Union[datetime, str]) -> int:
    """Convert an aware/naive datetime or RFC 3339 string to epoch microseconds.

    Naive datetimes are taken as UTC. Sub-microsecond digits are truncated.
    """
    if isinstance(value, str):
        return _parse_rfc3339(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MICROSECOND


def micros_to_datetime(micros: int) -> datetime:
    return _EPOCH + timedelta(microseconds=micros)


def format_timestamp(micros: int) -> str:
    dt = micros_to_datetime(micros)
    # strftime("%Y") does not zero-pad years before 1000 on every platform
    return f"{dt.year:04d}-{dt:%m-%dT%H:%M:%S.%f}Z"


def _parse_rfc3339(text: str) -> int:
    match = _RFC3339.match(text.strip())
    if match is None:
        raise ValueError(f"Invalid RFC 3339 timestamp: {text!r}")
    base = datetime.strptime(match.group("base").replace("t", "T").replace(" ", "T"), "%Y-%m-%dT%H:%M:%S")
    tz = match.group("tz")
    if tz in ("Z", "z"):
        base = base.replace(tzinfo=timezone.utc)
    else:
        sign = 1 if tz[0] == "+" else -1
        hours, minutes = int(tz[1:3]), int(tz[4:6])
        base = base.replace(tzinfo=timezone(sign * timedelta(hours=hours, minutes=minutes)))
    frac = (match.group("frac") or "").ljust(6, "0")[:6]
    return (base - _EPOCH) // _ONE_MICROSECOND + int(frac)


def _parse_integer(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError("boolean in integer slot")
    if isinstance(raw, int):
        parsed = raw
    elif isinstance(raw, str):
        parsed = int(raw.strip(), 10)
    else:
        raise ValueError(f"integer slot holds {type(raw).__name__}")
    if not INT64_MIN <= parsed <= INT64_MAX:
        raise ValueError(f"integer {parsed} is outside the signed 64-bit range")
    return parsed


def _parse_double(raw: Any) -> float:
    if isinstance(raw, bool):
        raise ValueError("boolean in double slot")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        if raw in _SPECIAL_DOUBLES:
            return _SPECIAL_DOUBLES[raw]
        return float(raw)
    raise ValueError(f"double slot holds {type(raw).__name__}")


def _from_slot(kind: ValueKind, raw: Any) -> TypedValue:
    if kind is ValueKind.BOOLEAN:
        if not isinstance(raw, bool):
            raise ValueError(f"boolean slot holds {type(raw).__name__}")
        return TypedValue.boolean(raw)
    if kind is ValueKind.INTEGER:
        return TypedValue.integer(_parse_integer(raw))
    if kind is ValueKind.DOUBLE:
        return TypedValue.double(_parse_double(raw))
    if kind is ValueKind.STRING:
        if not isinstance(raw, str):
            raise ValueError(f"string slot holds {type(raw).__name__}")
        return TypedValue.string(raw)
    if kind is ValueKind.TIMESTAMP:
        if not isinstance(raw, str):
            raise ValueError(f"timestamp slot holds {type(raw).__name__}")
        return TypedValue.timestamp(_parse_rfc3339(raw))
    raise ValueError(f"No slot decoder for kind {kind!r}")


def classify(raw: Optional[Mapping[str, Any]]) -> TypedValue:
    """Map a raw Datastore value onto ``TypedValue``.

    Returns an ``UNSUPPORTED`` value for key references, null or missing values,
    unknown slots, and slots whose payload cannot be decoded.
    """
    if not raw or not isinstance(raw, Mapping):
        return TypedValue.unsupported()
    if KEY_SLOT in raw or NULL_SLOT in raw:
        return TypedValue.unsupported()

    for slot, kind in SLOT_PRIORITY:
        if slot in raw:
            try:
                return _from_slot(kind, raw[slot])
            except (TypeError, ValueError, OverflowError):
                return TypedValue.unsupported()

    return TypedValue.unsupported()


def coerce(raw: Optional[Mapping[str, Any]]) -> Optional[TypedValue]:
    """Return the typed value of a raw property, or ``None`` when it is unusable."""
    typed = classify(raw)
    return typed if typed.is_supported else None


def to_raw(value: Any) -> dict:
    """Reverse of ``coerce``: encode a value as a Datastore REST ``Value``.

    Integers are emitted as decimal strings and doubles as JSON numbers (or the
    protobuf special strings for NaN/Infinity), matching what the service returns.
    """
    typed = TypedValue.from_python(value)
    if not typed.is_supported:
        raise ValueError("Cannot encode an unsupported value")

    slot = _SLOT_FOR_KIND[typed.kind]
    if typed.kind is ValueKind.INTEGER:
        return {slot: str(typed.value)}
    if typed.kind is ValueKind.DOUBLE:
        if math.isnan(typed.value):
            return {slot: "NaN"}
        if math.isinf(typed.value):
            return {slot: "Infinity" if typed.value > 0 else "-Infinity"}
        return {slot: typed.value}
    if typed.kind is ValueKind.TIMESTAMP:
        return {slot: format_timestamp(typed.value)}
    return {slot: typed.value}
