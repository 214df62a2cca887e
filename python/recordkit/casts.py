"""Attribute cast kinds and their conversion functions."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from types import SimpleNamespace
from typing import Any

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class CastKind(StrEnum):
    """Representations an attribute can be cast to."""

    INT = "int"
    FLOAT = "float"
    DECIMAL = "decimal"
    STRING = "string"
    BOOL = "bool"
    OBJECT = "object"
    ARRAY = "array"
    JSON = "json"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"


_ALIASES: dict[str, CastKind] = {
    "integer": CastKind.INT,
    "real": CastKind.FLOAT,
    "double": CastKind.FLOAT,
    "boolean": CastKind.BOOL,
    "str": CastKind.STRING,
    "collection": CastKind.ARRAY,
    "custom_datetime": CastKind.DATETIME,
    "immutable_date": CastKind.DATE,
    "immutable_datetime": CastKind.DATETIME,
}

JSON_KINDS = frozenset({CastKind.OBJECT, CastKind.ARRAY, CastKind.JSON})
DATE_KINDS = frozenset({CastKind.DATE, CastKind.DATETIME, CastKind.TIMESTAMP})


@dataclass(frozen=True)
class Cast:
    """A parsed cast declaration such as ``"decimal:2"``."""

    kind: CastKind
    argument: str | None = None

    @classmethod
    def parse(cls, declaration: str | CastKind | Cast) -> Cast:
        """Parse a cast declaration.

        Raises:
            ValueError: If the cast name is unknown.

        Example:
            >>> Cast.parse("decimal:2")
            Cast(kind=<CastKind.DECIMAL: 'decimal'>, argument='2')
            >>> Cast.parse("boolean").kind
            <CastKind.BOOL: 'bool'>
        """
        if isinstance(declaration, Cast):
            return declaration
        if isinstance(declaration, CastKind):
            return cls(declaration)
        name, _, argument = str(declaration).partition(":")
        name = name.strip().lower()
        kind = _ALIASES.get(name)
        if kind is None:
            try:
                kind = CastKind(name)
            except ValueError:
                raise ValueError(f"Unknown cast type: {declaration!r}") from None
        if kind is CastKind.DECIMAL and not argument:
            raise ValueError("Decimal casts need a precision, e.g. 'decimal:2'")
        return cls(kind, argument or None)

    @property
    def is_json(self) -> bool:
        return self.kind in JSON_KINDS

    @property
    def is_date(self) -> bool:
        return self.kind in DATE_KINDS

    def read(self, value: Any) -> Any:
        """Convert a stored value to its cast representation."""
        if value is None:
            return None
        return _READERS[self.kind](value, self.argument)

    def write(self, value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
        """Normalize a value before it is stored on the model."""
        if value is None:
            return None
        if self.is_json:
            return as_json(value)
        if self.kind is CastKind.DATE:
            return as_date(value).isoformat()
        if self.is_date and self.argument:
            if isinstance(value, str):
                value = as_datetime(value, self.argument)
            return from_datetime(value, self.argument)
        if self.is_date:
            return from_datetime(value, date_format)
        return value


# ========== Conversions ==========

def as_int(value: Any, _argument: str | None = None) -> int:
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return int(float(value))
    return int(value)


def as_float(value: Any, _argument: str | None = None) -> float:
    return float(value)


def as_decimal(value: Any, places: str | None = None) -> Decimal:
    quantum = Decimal(1).scaleb(-int(places or 0))
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def as_string(value: Any, _argument: str | None = None) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def as_bool(value: Any, _argument: str | None = None) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def from_json(value: Any, as_object: bool = False) -> Any:
    """Decode a JSON string; already-decoded values pass through."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    if not isinstance(value, str):
        return value
    if as_object:
        return json.loads(value, object_hook=lambda d: SimpleNamespace(**d))
    return json.loads(value)


def as_json(value: Any) -> str:
    if isinstance(value, SimpleNamespace):
        value = vars(value)
    return json.dumps(value, default=str)


def as_datetime(value: Any, date_format: str | None = None) -> datetime:
    """Build a ``datetime`` from a datetime, date, Unix timestamp or string.

    Strings are parsed with ``date_format`` when one is given, otherwise as
    ISO 8601 or Unix seconds.

    Raises:
        ValueError: If a string cannot be parsed.
        TypeError: For any other type.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, UTC).replace(tzinfo=None)
    if isinstance(value, str):
        text = value.strip()
        if date_format:
            return datetime.strptime(text, date_format)
        if text.isdigit():
            return datetime.fromtimestamp(int(text), UTC).replace(tzinfo=None)
        return datetime.fromisoformat(text)
    raise TypeError(f"Cannot convert {type(value).__name__} to datetime")


def as_date(value: Any) -> date:
    return as_datetime(value).date()


def as_timestamp(value: Any) -> int:
    moment = as_datetime(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp())


def from_datetime(value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Format a date-like value for storage."""
    return as_datetime(value).strftime(date_format)


_READERS: dict[CastKind, Callable[[Any, str | None], Any]] = {
    CastKind.INT: as_int,
    CastKind.FLOAT: as_float,
    CastKind.DECIMAL: as_decimal,
    CastKind.STRING: as_string,
    CastKind.BOOL: as_bool,
    CastKind.OBJECT: lambda value, _arg: from_json(value, as_object=True),
    CastKind.ARRAY: lambda value, _arg: from_json(value),
    CastKind.JSON: lambda value, _arg: from_json(value),
    CastKind.DATE: lambda value, _arg: as_date(value),
    CastKind.DATETIME: as_datetime,
    CastKind.TIMESTAMP: lambda value, _arg: as_timestamp(value),
}

if set(_READERS) != set(CastKind):
    raise RuntimeError(f"Missing cast readers: {sorted(set(CastKind) - set(_READERS))}")
