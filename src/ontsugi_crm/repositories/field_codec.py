"""Decoding of Lark Base field values.

Lark returns the same logical field in several shapes: a select option may
be a bare string or ``{"text": ..., "id": ...}``, multi-selects and lookups
are lists of either, dates are epoch milliseconds or strings and numbers
may be numeric strings. ``classify`` tags a raw value once and the
``decode_*`` helpers work on the tagged form, so nothing past the
repository sees the remote representation.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

import structlog

from ontsugi_crm.models import JST

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)

_DATE_FORMATS = ("%Y/%m/%d", "%Y年%m月%d日")


class ValueKind(str, Enum):
    """Shape of a raw field value."""

    MISSING = "missing"
    TEXT = "text"
    OPTION = "option"
    LIST = "list"
    NUMBER = "number"
    BOOL = "bool"


@dataclass(frozen=True)
class FieldValue:
    """A raw field value tagged with its shape."""

    kind: ValueKind
    raw: Any = None


def classify(value: Any) -> FieldValue:
    """Tag a raw field value with its shape."""
    if value is None or value == "" or value == []:
        return FieldValue(ValueKind.MISSING)
    if isinstance(value, bool):
        return FieldValue(ValueKind.BOOL, value)
    if isinstance(value, (int, float)):
        return FieldValue(ValueKind.NUMBER, value)
    if isinstance(value, str):
        return FieldValue(ValueKind.TEXT, value)
    if isinstance(value, list):
        return FieldValue(ValueKind.LIST, value)
    if isinstance(value, dict):
        if "text" in value:
            return FieldValue(ValueKind.OPTION, value)
        # Lookup fields wrap their values as {"type": ..., "value": [...]}
        if isinstance(value.get("value"), list):
            return FieldValue(ValueKind.LIST, value["value"])
    return FieldValue(ValueKind.MISSING, value)


def decode_text(value: Any) -> str | None:
    """Decode a text, select or lookup value to a string."""
    tagged = classify(value)
    if tagged.kind is ValueKind.TEXT:
        return str(tagged.raw)
    if tagged.kind is ValueKind.OPTION:
        text = tagged.raw.get("text")
        return str(text) if text not in (None, "") else None
    if tagged.kind is ValueKind.LIST:
        for element in tagged.raw:
            text = decode_text(element)
            if text:
                return text
        return None
    if tagged.kind is ValueKind.NUMBER:
        return str(tagged.raw)
    return None


def decode_select(value: Any, enum_cls: type[E], default: E) -> E:
    """Decode a single-select value into an enum member."""
    text = decode_text(value)
    if text is None:
        return default
    try:
        return enum_cls(text)
    except ValueError:
        logger.warning(
            "unknown_select_option",
            option=text,
            enum=enum_cls.__name__,
            default=default.value,
        )
        return default


def decode_number(value: Any) -> Decimal:
    """Decode a number or numeric string; anything else is zero."""
    tagged = classify(value)
    if tagged.kind is ValueKind.NUMBER:
        return Decimal(str(tagged.raw))
    if tagged.kind in (ValueKind.TEXT, ValueKind.OPTION, ValueKind.LIST):
        text = decode_text(value)
        if text is None:
            return Decimal("0")
        try:
            return Decimal(text.replace(",", "").strip())
        except InvalidOperation:
            return Decimal("0")
    return Decimal("0")


def decode_int(value: Any) -> int:
    """Decode a quantity or yen amount to an integer."""
    number = decode_number(value)
    if not number.is_finite():
        return 0
    return int(number.to_integral_value(rounding=ROUND_HALF_UP))


def decode_bool(value: Any) -> bool:
    """Decode a checkbox value."""
    tagged = classify(value)
    if tagged.kind is ValueKind.BOOL:
        return bool(tagged.raw)
    if tagged.kind is ValueKind.NUMBER:
        return tagged.raw != 0
    if tagged.kind is ValueKind.TEXT:
        return tagged.raw.strip().lower() in ("true", "1", "yes", "はい")
    return False


def _from_epoch_ms(value: Any) -> datetime | None:
    try:
        return datetime.fromtimestamp(value / 1000, tz=JST)
    except (OverflowError, OSError, ValueError):
        logger.warning("unparseable_date", value=value)
        return None


def decode_datetime(value: Any) -> datetime | None:
    """Decode epoch milliseconds or a date string to an aware datetime (JST)."""
    tagged = classify(value)
    if tagged.kind is ValueKind.NUMBER:
        return _from_epoch_ms(tagged.raw)
    if tagged.kind in (ValueKind.TEXT, ValueKind.LIST, ValueKind.OPTION):
        text = decode_text(value)
        if text is None:
            return None
        text = text.strip()
        if text.isdigit():
            return _from_epoch_ms(int(text))
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=JST)
        try:
            return parsed.astimezone(JST)
        except OverflowError:
            logger.warning("unparseable_date", value=text)
            return None
    return None


def decode_date(value: Any) -> date | None:
    """Decode a date field to a calendar date in Japan."""
    parsed = decode_datetime(value)
    return parsed.date() if parsed else None


def encode_date(value: date) -> int:
    """Encode a date as epoch milliseconds at midnight JST."""
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=JST)
    else:
        moment = datetime(value.year, value.month, value.day, tzinfo=JST)
    return int(moment.timestamp() * 1000)


def decode_timestamp(value: int | None) -> datetime | None:
    """Decode a record's created/modified epoch milliseconds."""
    if value is None:
        return None
    return _from_epoch_ms(value)
