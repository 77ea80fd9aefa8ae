"""
Typed value conversion for stored strings.

Each supported type has one formatter and one parser in an explicit table,
looked up by the requested type (bool before int, datetime before date).
Parsing failures fall back to the caller's default.

    bool      true / false (parses yes/no, on/off, 1/0 too)
    int       decimal integer
    float     repr() form, parses anything float() accepts
    str       as-is
    datetime  ISO-8601
    date      ISO-8601
    Enum      member name (member value accepted when parsing)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from inivault.exceptions import ValueConversionError

logger = logging.getLogger(__name__)

T = TypeVar('T')

_TRUE_WORDS = frozenset(('true', 'yes', 'on', '1'))
_FALSE_WORDS = frozenset(('false', 'no', 'off', '0'))


def _format_bool(value: bool) -> str:
    return 'true' if value else 'false'


def _parse_bool(text: str, target: type) -> bool:
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _format_enum(value: Enum) -> str:
    return value.name


def _parse_enum(text: str, target: Type[Enum]) -> Enum:
    try:
        return target[text]
    except KeyError:
        pass
    for member in target:
        if str(member.value) == text:
            return member
    raise ValueError(f"{text!r} is not a member of {target.__name__}")


def _parse_datetime(text: str, target: type) -> datetime:
    return datetime.fromisoformat(text)


def _parse_date(text: str, target: type) -> date:
    return date.fromisoformat(text)


@dataclass(frozen=True)
class ValueCodec:
    """Formatter/parser pair for one type."""
    value_type: type
    format: Callable[[Any], str]
    parse: Callable[[str, type], Any]


# Order matters: subclasses must precede their bases.
CODECS: Tuple[ValueCodec, ...] = (
    ValueCodec(bool, _format_bool, _parse_bool),
    ValueCodec(Enum, _format_enum, _parse_enum),
    ValueCodec(datetime, datetime.isoformat, _parse_datetime),
    ValueCodec(date, date.isoformat, _parse_date),
    ValueCodec(int, str, lambda text, target: int(text)),
    ValueCodec(float, repr, lambda text, target: float(text)),
    ValueCodec(str, str, lambda text, target: text),
)


def codec_for(value_type: type) -> ValueCodec:
    """Find the codec for a type, or raise TypeError."""
    for codec in CODECS:
        if issubclass(value_type, codec.value_type):
            return codec
    raise TypeError(f"Unsupported value type: {value_type.__name__}")


def format_value(value: Any) -> str:
    """Convert a supported value to its stored string form."""
    if value is None:
        raise TypeError("Cannot store None; use remove_key() instead")
    return codec_for(type(value)).format(value)


def parse_value(text: str, value_type: Type[T]) -> T:
    """
    Convert a stored string to value_type.

    Raises:
        ValueConversionError: the text is not a valid value_type
        TypeError: value_type has no codec
    """
    codec = codec_for(value_type)
    try:
        return codec.parse(text.strip(), value_type)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueConversionError(
            f"Cannot convert {text!r} to {value_type.__name__}: {e}",
            value=text,
            target=value_type,
        ) from e


def try_parse_value(
    text: Optional[str],
    value_type: Type[T],
    default: T,
    on_error: Optional[Callable[[ValueConversionError], None]] = None,
) -> T:
    """parse_value() that returns default on blank input or failure."""
    if text is None or not text.strip():
        return default
    try:
        return parse_value(text, value_type)
    except ValueConversionError as e:
        logger.debug(str(e))
        if on_error:
            on_error(e)
        return default


__all__ = [
    'ValueCodec',
    'CODECS',
    'codec_for',
    'format_value',
    'parse_value',
    'try_parse_value',
]
