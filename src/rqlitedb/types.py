"""
Wire type tags, client target types and column metadata.

This module provides:
- TypeTag: the closed set of column type names the engine reports
- resolve_tag: map a declared or reported type name to a TypeTag
- infer_tag: guess a tag from a cell literal for untyped columns
- TargetType: the client representations a cell can be read as
- Column: column metadata for cursor descriptions and data loaders

Precision, display size and signedness are static per tag and are only
used to answer metadata questions.
"""
import datetime
import logging
import re
from decimal import Decimal
from enum import Enum, auto
from typing import Any

logger = logging.getLogger(__name__)

__all__ = [
    'TypeTag',
    'TargetType',
    'Column',
    'resolve_tag',
    'infer_tag',
    'RQ_TYPES',
]


class TypeTag(str, Enum):
    """Column type tags carried in result payloads."""
    INTEGER = 'INTEGER'
    NUMERIC = 'NUMERIC'
    BOOLEAN = 'BOOLEAN'
    TINYINT = 'TINYINT'
    SMALLINT = 'SMALLINT'
    BIGINT = 'BIGINT'
    FLOAT = 'FLOAT'
    DOUBLE = 'DOUBLE'
    VARCHAR = 'VARCHAR'
    UUID = 'UUID'
    DATE = 'DATE'
    TIME = 'TIME'
    TIMESTAMP = 'TIMESTAMP'
    DATALINK = 'DATALINK'
    CLOB = 'CLOB'
    NCLOB = 'NCLOB'
    NVARCHAR = 'NVARCHAR'
    BLOB = 'BLOB'
    NULL = 'NULL'

    def __str__(self) -> str:
        return self.value

    @property
    def precision(self) -> int:
        return _PRECISION[self]

    @property
    def display_size(self) -> int:
        return _DISPLAY_SIZE[self]

    @property
    def signed(self) -> bool:
        return self in _SIGNED

    @property
    def sql_type(self) -> int:
        """Numeric SQL type code reported in metadata DATA_TYPE columns."""
        return _SQL_TYPE_CODES[self]

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]

    @property
    def default_target(self) -> 'TargetType':
        """Target used when rows are fetched without an explicit cast."""
        return _DEFAULT_TARGETS[self]

    @property
    def quoted(self) -> bool:
        """Whether literals of this type are written between single quotes."""
        return self in _QUOTED


class TargetType(Enum):
    """Client-side representations a wire cell can be decoded into."""
    BOOLEAN = auto()
    BYTE = auto()               # 8-bit signed
    SHORT = auto()              # 16-bit signed
    INT = auto()                # 32-bit signed
    LONG = auto()               # 64-bit signed
    FLOAT = auto()              # 32-bit float
    DOUBLE = auto()
    DECIMAL = auto()
    STRING = auto()
    ASCII_STREAM = auto()
    UNICODE_STREAM = auto()
    CHARACTER_STREAM = auto()
    NCHARACTER_STREAM = auto()
    BINARY_STREAM = auto()
    BYTES = auto()
    CLOB = auto()
    NCLOB = auto()
    DATE = auto()
    TIME = auto()
    TIMESTAMP = auto()
    URL = auto()
    OBJECT = auto()
    NULL = auto()


# Order used by the type catalog.
RQ_TYPES = tuple(TypeTag)

_PRECISION = {
    TypeTag.INTEGER: 10,
    TypeTag.NUMERIC: 38,
    TypeTag.BOOLEAN: 1,
    TypeTag.TINYINT: 3,
    TypeTag.SMALLINT: 5,
    TypeTag.BIGINT: 19,
    TypeTag.FLOAT: 7,
    TypeTag.DOUBLE: 15,
    TypeTag.VARCHAR: 255,
    TypeTag.UUID: 36,
    TypeTag.DATE: 10,
    TypeTag.TIME: 8,
    TypeTag.TIMESTAMP: 19,
    TypeTag.DATALINK: 255,
    TypeTag.CLOB: 65535,
    TypeTag.NCLOB: 65535,
    TypeTag.NVARCHAR: 255,
    TypeTag.BLOB: 65535,
    TypeTag.NULL: 0,
}

_DISPLAY_SIZE = {
    TypeTag.INTEGER: 11,
    TypeTag.NUMERIC: 38,
    TypeTag.BOOLEAN: 5,
    TypeTag.TINYINT: 4,
    TypeTag.SMALLINT: 6,
    TypeTag.BIGINT: 20,
    TypeTag.FLOAT: 25,
    TypeTag.DOUBLE: 25,
    TypeTag.VARCHAR: 255,
    TypeTag.UUID: 36,
    TypeTag.DATE: 10,
    TypeTag.TIME: 8,
    TypeTag.TIMESTAMP: 19,
    TypeTag.DATALINK: 255,
    TypeTag.CLOB: 255,
    TypeTag.NCLOB: 255,
    TypeTag.NVARCHAR: 255,
    TypeTag.BLOB: 255,
    TypeTag.NULL: 4,
}

_SIGNED = frozenset({
    TypeTag.INTEGER, TypeTag.NUMERIC, TypeTag.TINYINT, TypeTag.SMALLINT,
    TypeTag.BIGINT, TypeTag.FLOAT, TypeTag.DOUBLE,
})

# SQL/CLI type codes, as used by JDBC and ODBC catalogs.
_SQL_TYPE_CODES = {
    TypeTag.INTEGER: 4,
    TypeTag.NUMERIC: 2,
    TypeTag.BOOLEAN: 16,
    TypeTag.TINYINT: -6,
    TypeTag.SMALLINT: 5,
    TypeTag.BIGINT: -5,
    TypeTag.FLOAT: 6,
    TypeTag.DOUBLE: 8,
    TypeTag.VARCHAR: 12,
    TypeTag.UUID: 12,
    TypeTag.DATE: 91,
    TypeTag.TIME: 92,
    TypeTag.TIMESTAMP: 93,
    TypeTag.DATALINK: 70,
    TypeTag.CLOB: 2005,
    TypeTag.NCLOB: 2011,
    TypeTag.NVARCHAR: -9,
    TypeTag.BLOB: 2004,
    TypeTag.NULL: 0,
}

_QUOTED = frozenset({
    TypeTag.VARCHAR, TypeTag.UUID, TypeTag.DATE, TypeTag.TIME, TypeTag.TIMESTAMP,
    TypeTag.DATALINK, TypeTag.NVARCHAR,
})

_PYTHON_TYPES = {
    TypeTag.INTEGER: int,
    TypeTag.NUMERIC: Decimal,
    TypeTag.BOOLEAN: bool,
    TypeTag.TINYINT: int,
    TypeTag.SMALLINT: int,
    TypeTag.BIGINT: int,
    TypeTag.FLOAT: float,
    TypeTag.DOUBLE: float,
    TypeTag.VARCHAR: str,
    TypeTag.UUID: str,
    TypeTag.DATE: datetime.date,
    TypeTag.TIME: datetime.time,
    TypeTag.TIMESTAMP: datetime.datetime,
    TypeTag.DATALINK: str,
    TypeTag.CLOB: str,
    TypeTag.NCLOB: str,
    TypeTag.NVARCHAR: str,
    TypeTag.BLOB: bytes,
    TypeTag.NULL: type(None),
}

_DEFAULT_TARGETS = {
    TypeTag.INTEGER: TargetType.LONG,
    TypeTag.NUMERIC: TargetType.DECIMAL,
    TypeTag.BOOLEAN: TargetType.BOOLEAN,
    TypeTag.TINYINT: TargetType.BYTE,
    TypeTag.SMALLINT: TargetType.SHORT,
    TypeTag.BIGINT: TargetType.LONG,
    TypeTag.FLOAT: TargetType.DOUBLE,
    TypeTag.DOUBLE: TargetType.DOUBLE,
    TypeTag.VARCHAR: TargetType.STRING,
    TypeTag.UUID: TargetType.STRING,
    TypeTag.DATE: TargetType.DATE,
    TypeTag.TIME: TargetType.TIME,
    TypeTag.TIMESTAMP: TargetType.TIMESTAMP,
    TypeTag.DATALINK: TargetType.STRING,
    TypeTag.CLOB: TargetType.CLOB,
    TypeTag.NCLOB: TargetType.NCLOB,
    TypeTag.NVARCHAR: TargetType.STRING,
    TypeTag.BLOB: TargetType.BYTES,
    TypeTag.NULL: TargetType.STRING,
}

# Aliases the engine and common DDL use for the tags above.
_ALIASES = {
    'TEXT': TypeTag.VARCHAR,
    'DATETIME': TypeTag.TIMESTAMP,
    'URL': TypeTag.DATALINK,
    'INT': TypeTag.INTEGER,
    'BOOL': TypeTag.BOOLEAN,
    'REAL': TypeTag.DOUBLE,
    'DECIMAL': TypeTag.NUMERIC,
}

_TYPE_NAME = re.compile(r'[(),]')
_INTEGER_LITERAL = re.compile(r'[+-]?\d+')
_REAL_LITERAL = re.compile(r'[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?')


def _affinity(name: str) -> TypeTag:
    """Apply SQLite column affinity rules to an unrecognized type name."""
    if 'INT' in name:
        return TypeTag.INTEGER
    if 'CHAR' in name or 'CLOB' in name or 'TEXT' in name:
        return TypeTag.VARCHAR
    if 'BLOB' in name:
        return TypeTag.BLOB
    if 'REAL' in name or 'FLOA' in name or 'DOUB' in name:
        return TypeTag.DOUBLE
    return TypeTag.NUMERIC


def resolve_tag(type_name: str | TypeTag | None) -> TypeTag:
    """Resolve a reported or declared type name to a TypeTag.

    Matching is case-insensitive and ignores type parameters, so
    `varchar(255)` is VARCHAR and `DECIMAL(10,2)` is NUMERIC. Names outside
    the known vocabulary fall back to SQLite affinity rules. An empty name
    (expression columns) resolves to NULL.

    >>> resolve_tag('text')
    <TypeTag.VARCHAR: 'VARCHAR'>
    >>> resolve_tag('unsigned big int')
    <TypeTag.INTEGER: 'INTEGER'>
    """
    if isinstance(type_name, TypeTag):
        return type_name
    if not type_name or not type_name.strip():
        return TypeTag.NULL
    name = _TYPE_NAME.split(type_name.strip().upper())[0].strip()
    if name in TypeTag.__members__:
        return TypeTag[name]
    if name in _ALIASES:
        return _ALIASES[name]
    tag = _affinity(name)
    logger.debug(f'Resolved type {type_name!r} to {tag} by affinity')
    return tag


def infer_tag(value: str | None) -> TypeTag:
    """Guess a tag from a cell literal, for columns with no declared type.
    """
    if value is None:
        return TypeTag.NULL
    if _INTEGER_LITERAL.fullmatch(value):
        return TypeTag.INTEGER
    if _REAL_LITERAL.fullmatch(value):
        return TypeTag.DOUBLE
    return TypeTag.VARCHAR


class Column:
    """Result column metadata."""

    def __init__(self,
                 name: str,
                 type_code: TypeTag,
                 type_name: str | None = None,
                 python_type: type | None = None,
                 display_size: int | None = None,
                 precision: int | None = None,
                 scale: int | None = None,
                 nullable: bool | None = None):
        self.name = name
        self.type_code = type_code
        self.type_name = type_name or str(type_code)
        self.python_type = python_type or type_code.python_type
        self.display_size = display_size if display_size is not None else type_code.display_size
        self.precision = precision if precision is not None else type_code.precision
        self.scale = scale if scale is not None else 0
        self.nullable = nullable

    @classmethod
    def from_wire(cls, name: str, type_name: str | None) -> 'Column':
        """Create a Column from a result's column name and reported type."""
        return cls(name, resolve_tag(type_name), type_name=type_name or '')

    def __repr__(self) -> str:
        return (f'Column(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': str(self.type_code),
            'type_name': self.type_name,
            'python_type': self.python_type.__name__ if self.python_type else None,
            'display_size': self.display_size,
            'precision': self.precision,
            'scale': self.scale,
            'nullable': self.nullable,
        }

    def description(self) -> tuple:
        """DB-API 2.0 description entry for this column."""
        return (self.name, self.type_code, self.display_size, None,
                self.precision, self.scale, self.nullable)

    @staticmethod
    def get_names(columns: list['Column']) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_by_name(columns: list['Column'], name: str) -> 'Column | None':
        for col in columns:
            if col.name.lower() == name.lower():
                return col
        return None

    @staticmethod
    def get_column_types_dict(columns: list['Column']) -> dict[str, dict[str, Any]]:
        return {col.name: col.to_dict() for col in columns}

    @staticmethod
    def get_types(columns: list['Column']) -> list[type]:
        return [col.python_type for col in columns]
