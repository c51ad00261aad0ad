"""
Decode wire cells into client types.

Every (source tag, target type) pair either succeeds or fails with exactly
one of two errors:

- IncompatibleTypeError: the source tag is not accepted for the target
- MalformedValueError: the pair is accepted but the text does not parse,
  or the number does not fit the target width

Integer widths are enforced exactly; a value one past the boundary fails
rather than being clamped.
"""
import base64
import binascii
import datetime
import decimal
import io
import logging
import re
import urllib.parse
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import numpy as np
from dateutil import tz as dateutil_tz
from dateutil.parser import isoparse

from rqlitedb.exceptions import IncompatibleTypeError, MalformedValueError
from rqlitedb.exceptions import NoTargetTypeError, NotSupportedError
from rqlitedb.types import TargetType, TypeTag, resolve_tag

logger = logging.getLogger(__name__)

__all__ = ['decode', 'resolve_zone', 'ACCEPTED_SOURCES', 'OBJECT_TARGETS']

T = TypeTag

_INTEGER_SOURCES = frozenset({T.INTEGER, T.TINYINT, T.SMALLINT, T.BOOLEAN, T.NUMERIC})
_TEXT_SOURCES = frozenset({T.VARCHAR, T.UUID, T.CLOB, T.NCLOB, T.NVARCHAR})
_CLOB_SOURCES = _TEXT_SOURCES
_STREAM_SOURCES = _TEXT_SOURCES | {T.INTEGER, T.DOUBLE, T.NUMERIC, T.BOOLEAN}
_FLOAT_SOURCES = frozenset({T.FLOAT, T.DOUBLE, T.NUMERIC})

ACCEPTED_SOURCES: dict[TargetType, frozenset[TypeTag]] = {
    TargetType.BOOLEAN: frozenset({T.INTEGER, T.NUMERIC, T.VARCHAR, T.UUID, T.BOOLEAN}),
    TargetType.BYTE: frozenset({T.INTEGER, T.TINYINT, T.BOOLEAN, T.NUMERIC}),
    TargetType.SHORT: _INTEGER_SOURCES,
    TargetType.INT: _INTEGER_SOURCES,
    TargetType.LONG: _INTEGER_SOURCES | {T.BIGINT},
    TargetType.FLOAT: _FLOAT_SOURCES,
    TargetType.DOUBLE: _FLOAT_SOURCES,
    TargetType.DECIMAL: frozenset({
        T.INTEGER, T.FLOAT, T.DOUBLE, T.VARCHAR, T.UUID, T.NUMERIC, T.BOOLEAN,
        T.TINYINT, T.SMALLINT, T.BIGINT,
    }),
    TargetType.STRING: frozenset(TypeTag),
    TargetType.ASCII_STREAM: _STREAM_SOURCES,
    TargetType.UNICODE_STREAM: _STREAM_SOURCES,
    TargetType.CHARACTER_STREAM: _STREAM_SOURCES,
    TargetType.NCHARACTER_STREAM: _CLOB_SOURCES,
    TargetType.CLOB: _CLOB_SOURCES,
    TargetType.NCLOB: _CLOB_SOURCES,
    TargetType.BINARY_STREAM: frozenset({T.BLOB}),
    TargetType.BYTES: frozenset({T.BLOB}),
    TargetType.DATE: frozenset({T.VARCHAR, T.UUID, T.DATE, T.TIMESTAMP, T.INTEGER}),
    TargetType.TIME: frozenset({T.VARCHAR, T.UUID, T.TIME, T.TIMESTAMP, T.INTEGER}),
    TargetType.TIMESTAMP: frozenset({T.VARCHAR, T.UUID, T.TIMESTAMP, T.DATE, T.INTEGER}),
    TargetType.URL: frozenset({T.VARCHAR, T.UUID, T.DATALINK}),
    TargetType.NULL: frozenset(TypeTag),
}

# Integer width bounds, inclusive.
_BOUNDS = {
    TargetType.BYTE: (-2**7, 2**7 - 1),
    TargetType.SHORT: (-2**15, 2**15 - 1),
    TargetType.INT: (-2**31, 2**31 - 1),
    TargetType.LONG: (-2**63, 2**63 - 1),
}

# Python classes accepted by object conversion, with the target they read as.
OBJECT_TARGETS: dict[type, TargetType] = {
    str: TargetType.STRING,
    int: TargetType.LONG,
    float: TargetType.DOUBLE,
    bool: TargetType.BOOLEAN,
    Decimal: TargetType.DECIMAL,
    bytes: TargetType.BYTES,
    uuid.UUID: TargetType.STRING,
    datetime.date: TargetType.DATE,
    datetime.time: TargetType.TIME,
    datetime.datetime: TargetType.TIMESTAMP,
    urllib.parse.ParseResult: TargetType.URL,
    np.int8: TargetType.BYTE,
    np.int16: TargetType.SHORT,
    np.int32: TargetType.INT,
    np.int64: TargetType.LONG,
    np.float32: TargetType.FLOAT,
    np.float64: TargetType.DOUBLE,
}

_INTEGER = re.compile(r'[+-]?\d+')
_DECIMAL = re.compile(r'[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?')
_FLOAT = re.compile(r'[+-]?(?:(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)',
                    re.IGNORECASE)
_LOCAL_TIMESTAMP_FORMATS = ('%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M:%S.%f')
_BOOLEAN_WORDS = {'true': 1, 'false': 0}


def resolve_zone(zone: datetime.tzinfo | str | None) -> datetime.tzinfo:
    """Resolve a zone argument, defaulting to UTC.

    Strings are looked up through dateutil (`'America/New_York'`, `'UTC'`).
    """
    if zone is None:
        return dateutil_tz.UTC
    if isinstance(zone, datetime.tzinfo):
        return zone
    resolved = dateutil_tz.gettz(zone)
    if resolved is None:
        raise NotSupportedError(f'Unknown time zone: {zone}')
    return resolved


def _incompatible(value: str, source: TypeTag, target: TargetType, column: int):
    return IncompatibleTypeError(
        f'Column {column}: cannot convert {source} to {target.name}',
        column=column, target=target.name, value=value)


def _malformed(value: str, target: TargetType, column: int, reason: str = ''):
    detail = f' ({reason})' if reason else ''
    return MalformedValueError(
        f'Column {column}: invalid {target.name} value {value!r}{detail}',
        column=column, target=target.name, value=value)


# =============================================================================
# Numbers
# =============================================================================

def _parse_integer(value: str, source: TypeTag, target: TargetType, column: int) -> int:
    """Parse strict integer text and check it against the target width."""
    text = value.strip()
    if source == T.BOOLEAN and text.lower() in _BOOLEAN_WORDS:
        return _BOOLEAN_WORDS[text.lower()]
    if not _INTEGER.fullmatch(text):
        raise _malformed(value, target, column)
    number = int(text)
    low, high = _BOUNDS.get(target, _BOUNDS[TargetType.LONG])
    if not low <= number <= high:
        raise _malformed(value, target, column, f'out of range [{low}, {high}]')
    return number


def _parse_boolean(value: str, source: TypeTag, column: int) -> bool:
    text = value.strip()
    if source in {T.INTEGER, T.NUMERIC}:
        if text in {'0', '1'}:
            return text == '1'
        if _INTEGER.fullmatch(text):
            raise _malformed(value, TargetType.BOOLEAN, column, 'only 0 or 1')
        raise _malformed(value, TargetType.BOOLEAN, column)
    lowered = text.lower()
    if lowered in {'true', '1'}:
        return True
    if lowered in {'false', '0'}:
        return False
    raise _malformed(value, TargetType.BOOLEAN, column)


def _parse_float(value: str, target: TargetType, column: int) -> float:
    text = value.strip()
    if not _FLOAT.fullmatch(text):
        raise _malformed(value, target, column)
    if target == TargetType.FLOAT:
        return np.float32(float(text))
    return float(text)


def _parse_decimal(value: str, source: TypeTag, column: int, scale: int | None) -> Decimal:
    text = value.strip()
    if source == T.BOOLEAN and text.lower() in _BOOLEAN_WORDS:
        text = str(_BOOLEAN_WORDS[text.lower()])
    if not _DECIMAL.fullmatch(text):
        raise _malformed(value, TargetType.DECIMAL, column)
    number = Decimal(text)
    if scale is None:
        return number
    with decimal.localcontext() as ctx:
        ctx.prec = max(ctx.prec, abs(number.adjusted()) + abs(scale) + 2)
        return number.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


# =============================================================================
# Text, binary and URL
# =============================================================================

def _ascii_stream(value: str, column: int) -> io.BytesIO:
    try:
        return io.BytesIO(value.encode('ascii'))
    except UnicodeEncodeError as exc:
        raise _malformed(value, TargetType.ASCII_STREAM, column, 'not ASCII') from exc


def _base64(value: str, target: TargetType, column: int) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise _malformed(value, target, column, 'not base64') from exc


def _parse_url(value: str, column: int) -> urllib.parse.ParseResult:
    text = value.strip()
    parsed = urllib.parse.urlparse(text)
    if not parsed.scheme or not (parsed.netloc or parsed.path) or any(c.isspace() for c in text):
        raise _malformed(value, TargetType.URL, column, 'not an absolute URI')
    return parsed


# =============================================================================
# Dates and times
# =============================================================================

def _parse_epoch(value: str, target: TargetType, column: int,
                 zone: datetime.tzinfo) -> datetime.datetime:
    text = value.strip()
    if not _INTEGER.fullmatch(text):
        raise _malformed(value, target, column, 'expected epoch seconds')
    try:
        return datetime.datetime.fromtimestamp(int(text), tz=zone)
    except (OverflowError, OSError, ValueError) as exc:
        raise _malformed(value, target, column, 'epoch out of range') from exc


def _parse_instant(text: str) -> datetime.datetime | None:
    """Parse an ISO-8601 instant; text without a zone designator is not one."""
    try:
        parsed = isoparse(text)
    except (ValueError, OverflowError):
        return None
    return parsed if parsed.tzinfo is not None else None


def _parse_local_timestamp(text: str) -> datetime.datetime | None:
    for fmt in _LOCAL_TIMESTAMP_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_date(value: str, source: TypeTag, column: int,
                zone: datetime.tzinfo) -> datetime.date:
    if source == T.INTEGER:
        return _parse_epoch(value, TargetType.DATE, column, zone).date()
    text = value.strip()
    instant = _parse_instant(text)
    if instant is not None:
        return instant.astimezone(zone).date()
    try:
        return datetime.date.fromisoformat(text)
    except ValueError:
        pass
    local = _parse_local_timestamp(text)
    if local is not None:
        return local.date()
    raise _malformed(value, TargetType.DATE, column)


def _parse_time(value: str, source: TypeTag, column: int,
                zone: datetime.tzinfo) -> datetime.time:
    if source == T.INTEGER:
        return _parse_epoch(value, TargetType.TIME, column, zone).timetz()
    text = value.strip()
    try:
        parsed = datetime.time.fromisoformat(text)
    except ValueError:
        local = _parse_local_timestamp(text)
        if local is None:
            raise _malformed(value, TargetType.TIME, column) from None
        parsed = local.time()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _parse_timestamp(value: str, source: TypeTag, column: int,
                     zone: datetime.tzinfo) -> datetime.datetime:
    if source == T.INTEGER:
        return _parse_epoch(value, TargetType.TIMESTAMP, column, zone)
    text = value.strip()
    instant = _parse_instant(text)
    if instant is not None:
        return instant.astimezone(zone)
    local = _parse_local_timestamp(text)
    if local is None:
        try:
            local = datetime.datetime.combine(datetime.date.fromisoformat(text), datetime.time())
        except ValueError:
            raise _malformed(value, TargetType.TIMESTAMP, column) from None
    return local.replace(tzinfo=zone)


# =============================================================================
# Dispatch
# =============================================================================

def _decode_object(value: str, source: TypeTag, column: int, scale: int | None,
                   zone: datetime.tzinfo, python_type: type | None) -> Any:
    if python_type is None:
        raise NoTargetTypeError(f'Column {column}: no target type given',
                                column=column, target=TargetType.OBJECT.name, value=value)
    target = OBJECT_TARGETS.get(python_type)
    if target is None:
        raise NotSupportedError(
            f'Column {column}: conversion to {getattr(python_type, "__name__", python_type)} is not supported')
    result = decode(value, source, target, column=column, scale=scale, zone=zone)
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(result)
        except ValueError as exc:
            raise _malformed(value, TargetType.OBJECT, column, 'not a UUID') from exc
    if issubclass(python_type, np.generic):
        return python_type(result)
    return result


def decode(value: str | None, source: TypeTag | str, target: TargetType,
           column: int = 1, scale: int | None = None,
           zone: datetime.tzinfo | str | None = None,
           python_type: type | None = None) -> Any:
    """Decode one wire cell into the requested target type.

    Parameters
        value: cell text as carried on the wire, or None for SQL NULL
        source: the column's wire type tag (names are resolved)
        target: client representation to produce
        column: 1-based column index, used in error messages
        scale: decimal places for DECIMAL, rounding half-up
        zone: time zone for date and time targets, UTC when omitted
        python_type: class requested by OBJECT targets

    Returns
        The decoded value, or None when the cell is NULL

    >>> decode('32767', 'SMALLINT', TargetType.SHORT)
    32767
    >>> decode('1', 'BOOLEAN', TargetType.BOOLEAN)
    True
    """
    source = resolve_tag(source)
    if target == TargetType.NULL or value is None:
        return None
    if target == TargetType.OBJECT:
        return _decode_object(value, source, column, scale, resolve_zone(zone), python_type)
    if source not in ACCEPTED_SOURCES[target]:
        raise _incompatible(value, source, target, column)

    match target:
        case TargetType.BOOLEAN:
            return _parse_boolean(value, source, column)
        case TargetType.BYTE | TargetType.SHORT | TargetType.INT | TargetType.LONG:
            return _parse_integer(value, source, target, column)
        case TargetType.FLOAT | TargetType.DOUBLE:
            return _parse_float(value, target, column)
        case TargetType.DECIMAL:
            return _parse_decimal(value, source, column, scale)
        case TargetType.STRING | TargetType.CLOB | TargetType.NCLOB:
            return value
        case TargetType.ASCII_STREAM:
            return _ascii_stream(value, column)
        case TargetType.UNICODE_STREAM:
            return io.BytesIO(value.encode('utf-8'))
        case TargetType.CHARACTER_STREAM | TargetType.NCHARACTER_STREAM:
            return io.StringIO(value)
        case TargetType.BYTES:
            return _base64(value, target, column)
        case TargetType.BINARY_STREAM:
            return io.BytesIO(_base64(value, target, column))
        case TargetType.DATE:
            return _parse_date(value, source, column, resolve_zone(zone))
        case TargetType.TIME:
            return _parse_time(value, source, column, resolve_zone(zone))
        case TargetType.TIMESTAMP:
            return _parse_timestamp(value, source, column, resolve_zone(zone))
        case TargetType.URL:
            return _parse_url(value, column)
    raise NotSupportedError(f'Column {column}: unsupported target {target.name}')
