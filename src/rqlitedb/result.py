"""
Decoded result payloads.

The engine answers every request with

    {"results": [{"columns": [...], "types": [...], "values": [[...]],
                  "rows_affected": 1, "last_insert_id": 1, "error": "..."}],
     "time": 0.0012}

`WireResult` holds one entry of `results` with every cell normalized to
text (or None). `WireResponse` holds the whole envelope.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from rqlitedb.exceptions import SOFT_ERROR_MARKER, UpstreamError, ValidationError
from rqlitedb.types import Column, resolve_tag

logger = logging.getLogger(__name__)

__all__ = ['WireResult', 'WireResponse', 'wire_text', 'check_result', 'is_soft_error']


def wire_text(value: Any) -> str | None:
    """Normalize a JSON cell to the text form carried by results.

    Booleans become `true`/`false`, numbers their decimal text, None stays
    None. Floats with no fractional part keep a trailing `.0`.

    >>> wire_text(True), wire_text(3), wire_text(None)
    ('true', '3', None)
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return value
    return str(value)


def is_soft_error(error: str | None) -> bool:
    """Check whether an engine error is treated as an empty result.

    A missing table is reported as an error by the engine; it is handled as
    an empty result so metadata lookups on dropped tables keep working.
    This is provisional until the engine reports structured error codes.
    """
    return bool(error) and SOFT_ERROR_MARKER in error.lower()


@dataclass
class WireResult:
    """One statement's result: columns, type tags and text rows."""
    columns: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    values: list[list[str | None]] = field(default_factory=list)
    rows_affected: int | None = None
    last_insert_id: int | None = None
    error: str | None = None
    time: float | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> 'WireResult':
        """Build a result from one decoded `results` entry."""
        error = data.get('error')
        if error:
            return cls(error=error, time=data.get('time'))
        columns = list(data.get('columns') or [])
        types = list(data.get('types') or [])
        if len(types) < len(columns):
            types.extend([''] * (len(columns) - len(types)))
        values = [[wire_text(cell) for cell in row] for row in data.get('values') or []]
        return cls(
            columns=columns,
            types=types,
            values=values,
            rows_affected=data.get('rows_affected'),
            last_insert_id=data.get('last_insert_id'),
            time=data.get('time'),
            )

    @classmethod
    def with_layout(cls, layout: list[tuple[str, str]]) -> 'WireResult':
        """Create an empty result with fixed column names and types."""
        return cls(columns=[name for name, _ in layout], types=[tag for _, tag in layout])

    @property
    def is_error(self) -> bool:
        """Whether the result carries a hard error.

        Missing-table errors are soft, see `is_soft_error`.
        """
        return bool(self.error) and not is_soft_error(self.error)

    @property
    def has_columns(self) -> bool:
        return bool(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.values)

    def index_of(self, name: str) -> int:
        """Zero-based index of a column, matched case-insensitively, or -1."""
        lowered = name.lower()
        for i, column in enumerate(self.columns):
            if column.lower() == lowered:
                return i
        return -1

    def tag(self, index: int):
        """Type tag of a zero-based column index."""
        return resolve_tag(self.types[index])

    def column_info(self) -> list[Column]:
        return [Column.from_wire(name, type_name) for name, type_name in zip(self.columns, self.types)]

    def add_row(self, *cells: Any) -> None:
        """Append a row; cells are normalized to wire text."""
        if len(cells) != len(self.columns):
            raise ValidationError(f'Expected {len(self.columns)} cells, got {len(cells)}')
        self.values.append([wire_text(cell) for cell in cells])

    def get(self, column: int | str, row: int) -> str | None:
        """Raw cell text by column index or name and zero-based row."""
        index = self.index_of(column) if isinstance(column, str) else column
        if index < 0 or index >= len(self.columns):
            raise ValidationError(f'Invalid column: {column}')
        return self.values[row][index]

    def truncate(self, max_rows: int | None) -> None:
        """Drop rows past `max_rows`; 0 or None keeps everything."""
        if max_rows and len(self.values) > max_rows:
            logger.debug(f'Truncating result from {len(self.values)} to {max_rows} rows')
            del self.values[max_rows:]

    def format(self) -> str:
        """Render the result as a plain text table, for debugging."""
        if self.error:
            return f'error: {self.error}'
        cells = [list(self.columns)]
        cells += [['NULL' if v is None else v for v in row] for row in self.values]
        widths = [max(len(row[i]) for row in cells) for i in range(len(self.columns))]
        lines = [' | '.join(v.ljust(w) for v, w in zip(row, widths)) for row in cells]
        if lines:
            lines.insert(1, '-+-'.join('-' * w for w in widths))
        return '\n'.join(lines)


@dataclass
class WireResponse:
    """Whole response envelope."""
    results: list[WireResult] = field(default_factory=list)
    time: float | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> 'WireResponse':
        if 'error' in data and 'results' not in data:
            return cls(results=[WireResult(error=data['error'])], time=data.get('time'))
        return cls(
            results=[WireResult.from_json(item) for item in data.get('results') or []],
            time=data.get('time'),
            )

    @property
    def first(self) -> WireResult:
        if not self.results:
            raise UpstreamError('Response contained no results')
        return self.results[0]


def check_result(result: WireResult, statement: str | None = None) -> WireResult:
    """Raise the engine's error for a result, or return the result.

    Soft errors are logged and turned into an empty result.
    """
    if result.is_error:
        logger.error(f'Engine error: {result.error}' + (f'\nSQL:\n{statement}' if statement else ''))
        raise UpstreamError(result.error, statement=statement)
    if result.error:
        logger.warning(f'Treating engine error as empty result: {result.error}')
        result.error = None
        result.columns, result.types, result.values = [], [], []
    return result
