"""
Forward-only cursor over one result.

Implements the Python DB-API 2.0 fetch surface (PEP-249) plus typed cell
access in the style of a relational result set:

    cur = cn.query('select id, active from users')
    while cur.advance():
        cur.get_int('id'), cur.get_boolean(2)

Positions run from -1 (before the first row) through n (after the last);
the cursor never moves backwards.
"""
import datetime
import logging
from collections.abc import Callable, Iterator
from decimal import Decimal
from typing import Any

from rqlitedb.coercion import decode
from rqlitedb.exceptions import CursorClosedError, InvalidColumnError
from rqlitedb.exceptions import InvalidCursorStateError
from rqlitedb.result import WireResult
from rqlitedb.types import Column, TargetType, TypeTag, infer_tag

logger = logging.getLogger(__name__)

__all__ = ['Cursor', 'ResultMetadata', 'NULLABLE_UNKNOWN']

NULLABLE_UNKNOWN = 2


class ResultMetadata:
    """Column facts for a cursor, by 1-based column index.

    Values come from the static per-tag tables; nothing is derived from
    the data.
    """

    def __init__(self, result: WireResult):
        self._columns = result.column_info()

    def _column(self, column: int) -> Column:
        if not 1 <= column <= len(self._columns):
            raise InvalidColumnError(f'Invalid column index: {column}')
        return self._columns[column - 1]

    @property
    def column_count(self) -> int:
        return len(self._columns)

    def column_label(self, column: int) -> str:
        return self._column(column).name

    # No schema information travels with results, so the label is also the name.
    column_name = column_label

    def column_type(self, column: int) -> TypeTag:
        return self._column(column).type_code

    def column_type_name(self, column: int) -> str:
        return self._column(column).type_name

    def precision(self, column: int) -> int:
        return self._column(column).precision

    def scale(self, column: int) -> int:
        return self._column(column).scale

    def display_size(self, column: int) -> int:
        return self._column(column).display_size

    def is_signed(self, column: int) -> bool:
        return self._column(column).type_code.signed

    def python_class_name(self, column: int) -> str:
        python_type = self._column(column).python_type
        return 'object' if python_type is type(None) else python_type.__name__

    def is_nullable(self, column: int) -> int:
        self._column(column)
        return NULLABLE_UNKNOWN

    def is_case_sensitive(self, column: int) -> bool:
        self._column(column)
        return False

    def is_auto_increment(self, column: int) -> bool:
        self._column(column)
        return False

    def is_searchable(self, column: int) -> bool:
        self._column(column)
        return True

    def table_name(self, column: int) -> str:
        self._column(column)
        return ''


class Cursor:
    """Cursor over one result, with typed cell access.

    Args:
        result: the result to iterate; it must not carry a hard error
        max_rows: rows past this count are dropped up front (0 or None: no cap)
        zone: default time zone for date and time cells
        on_close: called with the cursor once it is closed
    """

    def __init__(self, result: WireResult, max_rows: int | None = None,
                 zone: datetime.tzinfo | str | None = None,
                 on_close: Callable[['Cursor'], None] | None = None) -> None:
        result.truncate(max_rows)
        self.result = result
        self.zone = zone
        self._on_close = on_close
        self._position = -1
        self._was_null = False
        self._closed = False
        self._arraysize: int = 1
        self._columns = result.column_info()
        self._tags = [col.type_code for col in self._columns]

    def __repr__(self) -> str:
        state = 'closed' if self._closed else f'position={self._position}'
        return f'Cursor(columns={self.result.columns!r}, rows={self.result.row_count}, {state})'

    def __enter__(self) -> 'Cursor':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise CursorClosedError('Cursor is closed')

    # ==========================================================================
    # Navigation
    # ==========================================================================

    def advance(self) -> bool:
        """Move to the next row.

        Returns
            True when positioned on a row, False once past the last row
        """
        self._check_open()
        n = self.result.row_count
        if self._position < n:
            self._position += 1
        return self._position < n

    next = advance

    @property
    def position(self) -> int:
        """Zero-based row position: -1 before the first row, n after the last."""
        self._check_open()
        return self._position

    @property
    def row(self) -> int:
        """1-based row number, or 0 when not on a row."""
        self._check_open()
        return self._position + 1 if 0 <= self._position < self.result.row_count else 0

    def is_before_first(self) -> bool:
        self._check_open()
        return self._position == -1 and self.result.row_count > 0

    def is_after_last(self) -> bool:
        self._check_open()
        return self._position >= self.result.row_count and self.result.row_count > 0

    def is_first(self) -> bool:
        self._check_open()
        return self._position == 0 and self.result.row_count > 0

    def is_last(self) -> bool:
        self._check_open()
        return self.result.row_count > 0 and self._position == self.result.row_count - 1

    # ==========================================================================
    # Cell access
    # ==========================================================================

    def find_column(self, label: str) -> int:
        """Resolve a column label to its 1-based index, ignoring case."""
        self._check_open()
        index = self.result.index_of(label)
        if index < 0:
            raise InvalidColumnError(f'Column not found: {label}')
        return index + 1

    def _ordinal(self, column: int | str) -> int:
        if isinstance(column, str):
            return self.find_column(column)
        if not 1 <= column <= len(self._columns):
            raise InvalidColumnError(f'Invalid column index: {column}')
        return column

    def _cell(self, column: int | str) -> tuple[str | None, TypeTag, int]:
        self._check_open()
        ordinal = self._ordinal(column)
        if not 0 <= self._position < self.result.row_count:
            raise InvalidCursorStateError(f'Invalid row position: {self._position}')
        value = self.result.values[self._position][ordinal - 1]
        self._was_null = value is None
        tag = self._tags[ordinal - 1]
        if tag == TypeTag.NULL:
            tag = infer_tag(value)
        return value, tag, ordinal

    @property
    def was_null(self) -> bool:
        """Whether the last cell read was SQL NULL."""
        self._check_open()
        return self._was_null

    def get(self, column: int | str, target: TargetType, scale: int | None = None,
            zone: datetime.tzinfo | str | None = None,
            python_type: type | None = None) -> Any:
        """Read the current row's cell as `target`; None for NULL cells."""
        value, tag, ordinal = self._cell(column)
        if value is None:
            return None
        return decode(value, tag, target, column=ordinal, scale=scale,
                      zone=zone if zone is not None else self.zone,
                      python_type=python_type)

    def get_string(self, column: int | str) -> str | None:
        return self.get(column, TargetType.STRING)

    def get_boolean(self, column: int | str) -> bool:
        """Boolean cell; NULL reads as False (check `was_null`)."""
        value = self.get(column, TargetType.BOOLEAN)
        return False if value is None else value

    def get_byte(self, column: int | str) -> int:
        value = self.get(column, TargetType.BYTE)
        return 0 if value is None else value

    def get_short(self, column: int | str) -> int:
        value = self.get(column, TargetType.SHORT)
        return 0 if value is None else value

    def get_int(self, column: int | str) -> int:
        """32-bit integer cell; NULL reads as 0 (check `was_null`)."""
        value = self.get(column, TargetType.INT)
        return 0 if value is None else value

    def get_long(self, column: int | str) -> int:
        value = self.get(column, TargetType.LONG)
        return 0 if value is None else value

    def get_float(self, column: int | str) -> float:
        value = self.get(column, TargetType.FLOAT)
        return 0.0 if value is None else value

    def get_double(self, column: int | str) -> float:
        value = self.get(column, TargetType.DOUBLE)
        return 0.0 if value is None else value

    def get_decimal(self, column: int | str, scale: int | None = None) -> Decimal | None:
        return self.get(column, TargetType.DECIMAL, scale=scale)

    def get_bytes(self, column: int | str) -> bytes | None:
        return self.get(column, TargetType.BYTES)

    def get_date(self, column: int | str, zone: datetime.tzinfo | str | None = None) -> datetime.date | None:
        return self.get(column, TargetType.DATE, zone=zone)

    def get_time(self, column: int | str, zone: datetime.tzinfo | str | None = None) -> datetime.time | None:
        return self.get(column, TargetType.TIME, zone=zone)

    def get_timestamp(self, column: int | str,
                      zone: datetime.tzinfo | str | None = None) -> datetime.datetime | None:
        return self.get(column, TargetType.TIMESTAMP, zone=zone)

    def get_url(self, column: int | str):
        return self.get(column, TargetType.URL)

    def get_ascii_stream(self, column: int | str):
        return self.get(column, TargetType.ASCII_STREAM)

    def get_unicode_stream(self, column: int | str):
        return self.get(column, TargetType.UNICODE_STREAM)

    def get_binary_stream(self, column: int | str):
        return self.get(column, TargetType.BINARY_STREAM)

    def get_character_stream(self, column: int | str):
        return self.get(column, TargetType.CHARACTER_STREAM)

    def get_ncharacter_stream(self, column: int | str):
        return self.get(column, TargetType.NCHARACTER_STREAM)

    def get_clob(self, column: int | str) -> str | None:
        return self.get(column, TargetType.CLOB)

    def get_nclob(self, column: int | str) -> str | None:
        return self.get(column, TargetType.NCLOB)

    def get_object(self, column: int | str, python_type: type | None = None) -> Any:
        """Read a cell as `python_type`, or as the column's default type.
        """
        if python_type is None:
            value, tag, ordinal = self._cell(column)
            if value is None:
                return None
            if tag == TypeTag.NUMERIC and infer_tag(value) == TypeTag.VARCHAR:
                # affinity keeps text that does not parse as a number
                tag = TypeTag.VARCHAR
            return decode(value, tag, tag.default_target, column=ordinal, zone=self.zone)
        return self.get(column, TargetType.OBJECT, python_type=python_type)

    @property
    def metadata(self) -> ResultMetadata:
        self._check_open()
        return ResultMetadata(self.result)

    # ==========================================================================
    # DB-API 2.0
    # ==========================================================================

    @property
    def columns(self) -> list[Column]:
        self._check_open()
        return self._columns

    @property
    def description(self) -> list[tuple] | None:
        """Column descriptions for the result."""
        self._check_open()
        if not self._columns:
            return None
        return [col.description() for col in self._columns]

    @property
    def rowcount(self) -> int:
        """Rows returned by a query or affected by a write, -1 when unknown."""
        self._check_open()
        if self.result.columns:
            return self.result.row_count
        if self.result.rows_affected is not None:
            return self.result.rows_affected
        return -1

    @property
    def lastrowid(self) -> int | None:
        self._check_open()
        return self.result.last_insert_id

    @property
    def arraysize(self) -> int:
        """Number of rows fetched by fetchmany()."""
        self._check_open()
        return self._arraysize

    @arraysize.setter
    def arraysize(self, value: int) -> None:
        self._check_open()
        self._arraysize = value

    def _current_row(self) -> tuple:
        return tuple(self.get_object(i) for i in range(1, len(self._columns) + 1))

    def fetchone(self) -> tuple | None:
        """Fetch next row."""
        if not self.advance():
            return None
        return self._current_row()

    def fetchmany(self, size: int | None = None) -> list[tuple]:
        """Fetch next set of rows."""
        if size is None:
            size = self.arraysize
        rows = []
        while len(rows) < size:
            row = self.fetchone()
            if row is None:
                break
            rows.append(row)
        return rows

    def fetchall(self) -> list[tuple]:
        """Fetch all remaining rows."""
        rows = []
        while (row := self.fetchone()) is not None:
            rows.append(row)
        return rows

    def __iter__(self) -> Iterator[tuple]:
        while (row := self.fetchone()) is not None:
            yield row

    def nextset(self) -> None:
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the cursor; further access raises CursorClosedError."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f'Closed {self!r}')
        if self._on_close is not None:
            self._on_close(self)
