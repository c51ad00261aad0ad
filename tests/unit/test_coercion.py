"""
Tests for decoding wire cells into client types.

Every (source, target) pair either decodes or fails with exactly one of
IncompatibleTypeError (pair not accepted) or MalformedValueError (text does
not parse or does not fit).
"""
import datetime
import io
import urllib.parse
import uuid
from decimal import Decimal

import numpy as np
import pytest
from dateutil import tz
from rqlitedb.coercion import ACCEPTED_SOURCES, decode, resolve_zone
from rqlitedb.exceptions import IncompatibleTypeError, MalformedValueError
from rqlitedb.exceptions import NoTargetTypeError, NotSupportedError
from rqlitedb.types import TargetType, TypeTag

T = TypeTag


class TestIntegerWidths:
    """Integer widths are enforced exactly at the boundary."""

    @pytest.mark.parametrize(('value', 'target', 'expected'), [
        ('127', TargetType.BYTE, 127),
        ('-128', TargetType.BYTE, -128),
        ('32767', TargetType.SHORT, 32767),
        ('-32768', TargetType.SHORT, -32768),
        ('2147483647', TargetType.INT, 2147483647),
        ('9223372036854775807', TargetType.LONG, 9223372036854775807),
        (' 42 ', TargetType.INT, 42),
    ], ids=['byte_max', 'byte_min', 'short_max', 'short_min', 'int_max', 'long_max', 'padded'])
    def test_in_range(self, value, target, expected):
        assert decode(value, T.INTEGER, target) == expected

    @pytest.mark.parametrize(('value', 'target'), [
        ('128', TargetType.BYTE),
        ('-129', TargetType.BYTE),
        ('32768', TargetType.SHORT),
        ('-32769', TargetType.SHORT),
        ('2147483648', TargetType.INT),
        ('9223372036854775808', TargetType.LONG),
    ], ids=['byte_max', 'byte_min', 'short_max', 'short_min', 'int_max', 'long_max'])
    def test_out_of_range(self, value, target):
        with pytest.raises(MalformedValueError, match='out of range'):
            decode(value, T.INTEGER, target)

    @pytest.mark.parametrize('value', ['abc', '1.5', '', '1e3'],
                             ids=['text', 'fraction', 'empty', 'exponent'])
    def test_malformed(self, value):
        with pytest.raises(MalformedValueError):
            decode(value, T.INTEGER, TargetType.INT)

    def test_boolean_source_words(self):
        assert decode('true', T.BOOLEAN, TargetType.INT) == 1
        assert decode('false', T.BOOLEAN, TargetType.LONG) == 0

    def test_bigint_not_accepted_for_short(self):
        with pytest.raises(IncompatibleTypeError):
            decode('1', T.BIGINT, TargetType.SHORT)


class TestBoolean:

    @pytest.mark.parametrize(('value', 'source', 'expected'), [
        ('1', T.INTEGER, True),
        ('0', T.INTEGER, False),
        ('true', T.BOOLEAN, True),
        ('FALSE', T.BOOLEAN, False),
        ('1', T.BOOLEAN, True),
        ('true', T.VARCHAR, True),
        ('0', T.VARCHAR, False),
    ], ids=['int_one', 'int_zero', 'bool_true', 'bool_false_upper', 'bool_digit',
            'text_true', 'text_zero'])
    def test_decode(self, value, source, expected):
        assert decode(value, source, TargetType.BOOLEAN) is expected

    @pytest.mark.parametrize(('value', 'source'), [
        ('2', T.INTEGER),
        ('yes', T.VARCHAR),
        ('abc', T.INTEGER),
    ], ids=['int_two', 'text_yes', 'int_text'])
    def test_malformed(self, value, source):
        with pytest.raises(MalformedValueError):
            decode(value, source, TargetType.BOOLEAN)

    def test_incompatible(self):
        with pytest.raises(IncompatibleTypeError):
            decode('1', T.DOUBLE, TargetType.BOOLEAN)


class TestFloatingPoint:

    def test_double(self):
        assert decode('3.25', T.DOUBLE, TargetType.DOUBLE) == 3.25
        assert decode('1e3', T.NUMERIC, TargetType.DOUBLE) == 1000.0

    def test_float_is_single_precision(self):
        value = decode('0.1', T.FLOAT, TargetType.FLOAT)
        assert isinstance(value, np.float32)
        assert value == np.float32(0.1)

    def test_special_values(self):
        assert decode('inf', T.DOUBLE, TargetType.DOUBLE) == float('inf')
        assert np.isnan(decode('NaN', T.DOUBLE, TargetType.DOUBLE))

    def test_integer_source_not_accepted(self):
        with pytest.raises(IncompatibleTypeError):
            decode('1', T.INTEGER, TargetType.DOUBLE)

    def test_malformed(self):
        with pytest.raises(MalformedValueError):
            decode('1.2.3', T.DOUBLE, TargetType.DOUBLE)


class TestDecimal:

    @pytest.mark.parametrize(('value', 'scale', 'expected'), [
        ('123.456', None, Decimal('123.456')),
        ('123.455', 2, Decimal('123.46')),
        ('-123.455', 2, Decimal('-123.46')),
        ('2.5', 0, Decimal('3')),
        ('7', 3, Decimal('7.000')),
        ('12345678901234567890123456789.5', 1, Decimal('12345678901234567890123456789.5')),
    ], ids=['unscaled', 'half_up', 'negative_half_up', 'scale_zero', 'pad', 'wide'])
    def test_scale(self, value, scale, expected):
        result = decode(value, T.NUMERIC, TargetType.DECIMAL, scale=scale)
        assert result == expected
        if scale is not None:
            assert result.as_tuple().exponent == -scale

    def test_text_source(self):
        assert decode('1.50', T.VARCHAR, TargetType.DECIMAL) == Decimal('1.50')

    def test_boolean_source(self):
        assert decode('true', T.BOOLEAN, TargetType.DECIMAL) == Decimal(1)

    def test_malformed(self):
        with pytest.raises(MalformedValueError):
            decode('ten', T.VARCHAR, TargetType.DECIMAL)

    def test_blob_incompatible(self):
        with pytest.raises(IncompatibleTypeError):
            decode('AAAA', T.BLOB, TargetType.DECIMAL)


class TestTextAndStreams:

    def test_string_accepts_every_source(self):
        for tag in TypeTag:
            assert decode('x', tag, TargetType.STRING) == 'x'

    def test_clob(self):
        assert decode('long text', T.CLOB, TargetType.CLOB) == 'long text'
        with pytest.raises(IncompatibleTypeError):
            decode('1', T.INTEGER, TargetType.CLOB)

    def test_ascii_stream(self):
        stream = decode('abc', T.VARCHAR, TargetType.ASCII_STREAM)
        assert isinstance(stream, io.BytesIO)
        assert stream.read() == b'abc'

    def test_ascii_stream_rejects_non_ascii(self):
        with pytest.raises(MalformedValueError, match='not ASCII'):
            decode('café', T.VARCHAR, TargetType.ASCII_STREAM)

    def test_unicode_stream(self):
        assert decode('café', T.VARCHAR, TargetType.UNICODE_STREAM).read() == 'café'.encode()

    def test_character_streams(self):
        assert decode('abc', T.VARCHAR, TargetType.CHARACTER_STREAM).read() == 'abc'
        assert decode('abc', T.NVARCHAR, TargetType.NCHARACTER_STREAM).read() == 'abc'


class TestBinary:

    def test_bytes(self):
        assert decode('AQIDBAU=', T.BLOB, TargetType.BYTES) == b'\x01\x02\x03\x04\x05'

    def test_binary_stream(self):
        assert decode('AP8=', T.BLOB, TargetType.BINARY_STREAM).read() == b'\x00\xff'

    def test_malformed(self):
        with pytest.raises(MalformedValueError, match='not base64'):
            decode('not base64!', T.BLOB, TargetType.BYTES)

    def test_text_incompatible(self):
        with pytest.raises(IncompatibleTypeError):
            decode('AQID', T.VARCHAR, TargetType.BYTES)


class TestDatesAndTimes:

    def test_date(self):
        assert decode('2023-05-15', T.DATE, TargetType.DATE) == datetime.date(2023, 5, 15)

    def test_date_from_instant_uses_zone(self):
        value = '2023-05-15T02:00:00Z'
        assert decode(value, T.VARCHAR, TargetType.DATE) == datetime.date(2023, 5, 15)
        assert decode(value, T.VARCHAR, TargetType.DATE, zone='America/New_York') == datetime.date(2023, 5, 14)

    def test_date_from_local_timestamp(self):
        assert decode('2023-05-15 14:30:45', T.TIMESTAMP, TargetType.DATE) == datetime.date(2023, 5, 15)

    def test_date_from_epoch(self):
        assert decode('86400', T.INTEGER, TargetType.DATE) == datetime.date(1970, 1, 2)

    def test_time(self):
        value = decode('14:30:45', T.TIME, TargetType.TIME)
        assert value == datetime.time(14, 30, 45, tzinfo=tz.UTC)

    def test_time_from_timestamp(self):
        value = decode('2023-05-15 14:30:45', T.TIMESTAMP, TargetType.TIME)
        assert value.replace(tzinfo=None) == datetime.time(14, 30, 45)

    def test_timestamp_local(self):
        value = decode('2023-05-15 14:30:45', T.TIMESTAMP, TargetType.TIMESTAMP)
        assert value == datetime.datetime(2023, 5, 15, 14, 30, 45, tzinfo=tz.UTC)

    def test_timestamp_instant(self):
        value = decode('2023-05-15T14:30:45+02:00', T.VARCHAR, TargetType.TIMESTAMP)
        assert value == datetime.datetime(2023, 5, 15, 12, 30, 45, tzinfo=tz.UTC)

    def test_timestamp_from_date(self):
        value = decode('2023-05-15', T.DATE, TargetType.TIMESTAMP)
        assert value == datetime.datetime(2023, 5, 15, tzinfo=tz.UTC)

    def test_timestamp_from_epoch(self):
        value = decode('0', T.INTEGER, TargetType.TIMESTAMP)
        assert value == datetime.datetime(1970, 1, 1, tzinfo=tz.UTC)

    @pytest.mark.parametrize(('target', 'source'), [
        (TargetType.DATE, T.VARCHAR),
        (TargetType.TIME, T.VARCHAR),
        (TargetType.TIMESTAMP, T.VARCHAR),
    ], ids=['date', 'time', 'timestamp'])
    def test_malformed(self, target, source):
        with pytest.raises(MalformedValueError):
            decode('not a date', source, target)

    def test_incompatible(self):
        with pytest.raises(IncompatibleTypeError):
            decode('1.5', T.DOUBLE, TargetType.DATE)

    def test_unknown_zone(self):
        with pytest.raises(NotSupportedError):
            resolve_zone('Nowhere/Special')


class TestUrl:

    def test_url(self):
        value = decode('https://rqlite.io/docs', T.DATALINK, TargetType.URL)
        assert isinstance(value, urllib.parse.ParseResult)
        assert value.netloc == 'rqlite.io'

    @pytest.mark.parametrize('value', ['not a url', 'relative/path', 'http://bad host'],
                             ids=['words', 'relative', 'space'])
    def test_malformed(self, value):
        with pytest.raises(MalformedValueError):
            decode(value, T.VARCHAR, TargetType.URL)


class TestObject:

    @pytest.mark.parametrize(('value', 'source', 'python_type', 'expected'), [
        ('42', T.INTEGER, int, 42),
        ('3.5', T.DOUBLE, float, 3.5),
        ('1', T.BOOLEAN, bool, True),
        ('abc', T.VARCHAR, str, 'abc'),
        ('1.25', T.NUMERIC, Decimal, Decimal('1.25')),
        ('2023-05-15', T.DATE, datetime.date, datetime.date(2023, 5, 15)),
        ('12', T.SMALLINT, np.int16, np.int16(12)),
    ], ids=['int', 'float', 'bool', 'str', 'decimal', 'date', 'numpy_int16'])
    def test_object(self, value, source, python_type, expected):
        result = decode(value, source, TargetType.OBJECT, python_type=python_type)
        assert result == expected
        assert isinstance(result, python_type)

    def test_uuid(self):
        text = '12345678-1234-5678-1234-567812345678'
        assert decode(text, T.UUID, TargetType.OBJECT, python_type=uuid.UUID) == uuid.UUID(text)

    def test_no_target(self):
        with pytest.raises(NoTargetTypeError):
            decode('1', T.INTEGER, TargetType.OBJECT)

    def test_unsupported_class(self):
        with pytest.raises(NotSupportedError):
            decode('1', T.INTEGER, TargetType.OBJECT, python_type=list)


class TestNulls:

    @pytest.mark.parametrize('target', [t for t in TargetType if t != TargetType.OBJECT],
                             ids=lambda t: t.name.lower())
    def test_null_cell_is_none(self, target):
        assert decode(None, T.INTEGER, target) is None

    def test_null_target(self):
        assert decode('anything', T.BLOB, TargetType.NULL) is None


class TestMatrix:
    """Every pair either decodes or raises one of the two conversion errors."""

    SAMPLES = {
        T.INTEGER: '1', T.NUMERIC: '1', T.BOOLEAN: 'true', T.TINYINT: '1',
        T.SMALLINT: '1', T.BIGINT: '1', T.FLOAT: '1.5', T.DOUBLE: '1.5',
        T.VARCHAR: 'text', T.UUID: '12345678-1234-5678-1234-567812345678',
        T.DATE: '2023-05-15', T.TIME: '14:30:45', T.TIMESTAMP: '2023-05-15 14:30:45',
        T.DATALINK: 'https://rqlite.io', T.CLOB: 'text', T.NCLOB: 'text',
        T.NVARCHAR: 'text', T.BLOB: 'AQID', T.NULL: 'x',
    }

    @pytest.mark.parametrize('target', [t for t in TargetType if t not in {TargetType.OBJECT, TargetType.NULL}],
                             ids=lambda t: t.name.lower())
    def test_every_source(self, target):
        for source, value in self.SAMPLES.items():
            if source in ACCEPTED_SOURCES[target]:
                try:
                    decode(value, source, target)
                except MalformedValueError:
                    pass
            else:
                with pytest.raises(IncompatibleTypeError):
                    decode(value, source, target)


class TestEndToEnd:

    def test_smallint_row(self):
        """A SMALLINT cell reads as a 16-bit value and fails one past the bound."""
        assert decode('32767', 'SMALLINT', TargetType.SHORT) == 32767
        assert decode('32767', 'SMALLINT', TargetType.LONG) == 32767
        with pytest.raises(MalformedValueError):
            decode('32768', 'SMALLINT', TargetType.SHORT)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
