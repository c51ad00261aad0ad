"""
Type-coercing client for rqlite, the distributed database built on SQLite.

All query operations can be called either as:
- Module functions: db.select(cn, sql, *args)
- ConnectionWrapper methods: cn.select(sql, *args)

The module functions are facades over the ConnectionWrapper methods.
"""
__version__ = '0.1.0'

from typing import Any

from rqlitedb.client import RqliteClient
from rqlitedb.connection import ConnectionWrapper, connect
from rqlitedb.cursor import Cursor, ResultMetadata
from rqlitedb.exceptions import ConnectionFailure, CursorClosedError, DatabaseError
from rqlitedb.exceptions import DataError, DbConnectionError, IncompatibleTypeError
from rqlitedb.exceptions import InvalidColumnError, InvalidCursorStateError
from rqlitedb.exceptions import MalformedValueError, NoTargetTypeError
from rqlitedb.exceptions import NotSupportedError, ParameterModeError
from rqlitedb.exceptions import ProgrammingError, QueryError, TypeConversionError
from rqlitedb.exceptions import UpstreamError, ValidationError
from rqlitedb.metadata import MetadataSynthesizer
from rqlitedb.options import RqliteOptions
from rqlitedb.result import WireResult
from rqlitedb.statement import Named, Positional, Statement
from rqlitedb.types import Column, TargetType, TypeTag


def execute(cn: ConnectionWrapper, sql: str, *args: Any) -> int:
    """Execute a SQL query and return affected row count.
    """
    return cn.execute(sql, *args)


delete = execute
insert = execute
update = execute


def query(cn: ConnectionWrapper, sql: str, *args: Any) -> Cursor:
    """Run a read statement and return a cursor over its rows.
    """
    return cn.query(sql, *args)


def select(cn: ConnectionWrapper, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a SELECT query through the connection's data loader.
    """
    return cn.select(sql, *args, **kwargs)


def select_column(cn: ConnectionWrapper, sql: str, *args: Any) -> list[Any]:
    """Execute a query and return a single column as a list.
    """
    return cn.select_column(sql, *args)


def select_row(cn: ConnectionWrapper, sql: str, *args: Any) -> dict[str, Any]:
    """Execute a query and return a single row.

    Raises ValidationError if the query returns zero or multiple rows.
    """
    return cn.select_row(sql, *args)


def select_row_or_none(cn: ConnectionWrapper, sql: str, *args: Any) -> dict[str, Any] | None:
    """Execute a query and return a single row or None if no rows found.
    """
    return cn.select_row_or_none(sql, *args)


def select_scalar(cn: ConnectionWrapper, sql: str, *args: Any) -> Any:
    """Execute a query and return a single scalar value.

    Raises ValidationError if the query returns zero or multiple rows.
    """
    return cn.select_scalar(sql, *args)


def select_scalar_or_none(cn: ConnectionWrapper, sql: str, *args: Any) -> Any | None:
    """Execute a query and return a single scalar value or None if no rows found.
    """
    return cn.select_scalar_or_none(sql, *args)


__all__ = [
    'connect',
    'ConnectionWrapper',
    'RqliteClient',
    'RqliteOptions',
    'Cursor',
    'ResultMetadata',
    'MetadataSynthesizer',
    'Statement',
    'Positional',
    'Named',
    'WireResult',
    'Column',
    'TypeTag',
    'TargetType',
    'execute',
    'delete',
    'insert',
    'update',
    'query',
    'select',
    'select_column',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'select_scalar_or_none',
    'DatabaseError',
    'ConnectionFailure',
    'UpstreamError',
    'QueryError',
    'ValidationError',
    'ParameterModeError',
    'TypeConversionError',
    'MalformedValueError',
    'IncompatibleTypeError',
    'NoTargetTypeError',
    'NotSupportedError',
    'InvalidColumnError',
    'InvalidCursorStateError',
    'CursorClosedError',
    'DbConnectionError',
    'ProgrammingError',
    'DataError',
]
