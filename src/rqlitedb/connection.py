"""
Connection façade over an rqlite transport.

This module provides:
1. The `connect()` function for opening a connection to a node
2. The `ConnectionWrapper` class, the primary client, with query methods

The ConnectionWrapper routes SQL to the read or write path:
- execute(sql, *args) - run statements and return affected row count
- query(sql, *args) - run one read and return a `Cursor`
- execute_many(sql, seq) - run one statement per parameter set in one request
- select(sql, *args) - run a read and hand rows to the data loader
- select_row(sql, *args) - run a read expecting exactly 1 row
"""
import dataclasses
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Self

import httpx
import pandas as pd

from rqlitedb.cache import clear_on_ddl
from rqlitedb.client import RqliteClient, Transport
from rqlitedb.cursor import Cursor
from rqlitedb.exceptions import ConnectionFailure, QueryError, ValidationError
from rqlitedb.metadata import MetadataSynthesizer
from rqlitedb.options import RqliteOptions, use_iterdict_data_loader
from rqlitedb.result import WireResult, check_result
from rqlitedb.sql import is_select, split_statements
from rqlitedb.statement import Statement

__all__ = ['ConnectionWrapper', 'connect']

logger = logging.getLogger(__name__)


class ConnectionWrapper:
    """Wraps a transport to track calls and execution time

    This class provides a thin layer over an rqlite transport that:
    1. Splits and routes statements to the read or write endpoint
    2. Raises engine errors carried on results
    3. Tracks request counts and timing
    4. Closes cursors it handed out when the connection closes
    """

    def __init__(self, client: Transport, options: RqliteOptions | None = None) -> None:
        self.client = client
        self.options = options or getattr(client, 'options', None) or RqliteOptions()
        self.calls = 0
        self.time = 0.0
        self._cursors: list[Cursor] = []
        self._metadata: MetadataSynthesizer | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f'ConnectionWrapper(baseurl={self.options.baseurl!r})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def metadata(self) -> MetadataSynthesizer:
        """Catalog metadata for the connected node."""
        if self._metadata is None:
            self._metadata = MetadataSynthesizer(self.client, scope=self.options.baseurl)
        return self._metadata

    def close(self) -> None:
        """Close open cursors and the transport.
        """
        if self._closed:
            return
        for cursor in list(self._cursors):
            cursor.close()
        close = getattr(self.client, 'close', None)
        if close is not None:
            close()
        self._closed = True
        logger.debug(f'Connection closed: {self.calls} requests in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per request)')

    def _send(self, statements: list[Statement], read: bool) -> list[WireResult]:
        if self._closed:
            raise ConnectionFailure('Connection is closed')
        start = time.time()
        try:
            if read:
                results = self.client.query(statements)
            else:
                results = self.client.execute(statements)
        finally:
            self.addcall(time.time() - start)
        if len(results) < len(statements):
            raise ConnectionFailure(f'Sent {len(statements)} statements, got {len(results)} results')
        return [check_result(result, stmt.sql) for result, stmt in zip(results, statements)]

    def _statements(self, sql: str, args: tuple) -> list[Statement]:
        """Parameterless text may hold several statements; parameters bind to one."""
        if args:
            return [Statement.from_args(sql, *args)]
        statements = [Statement(text) for text in split_statements(sql)]
        if not statements:
            raise QueryError('No statement to execute')
        return statements

    def execute(self, sql: str, *args: Any) -> int:
        """Execute SQL and return the affected row count.

        Multi-statement text without parameters is split and sent as one
        request. Text made only of reads goes to the query endpoint and
        returns the number of rows read.
        """
        statements = self._statements(sql, args)
        read = all(is_select(stmt.sql) for stmt in statements)
        results = self._send(statements, read=read)
        if read:
            return sum(result.row_count for result in results)
        clear_on_ddl([stmt.sql for stmt in statements])
        rowcount = sum(result.rows_affected or 0 for result in results)
        logger.debug(f'Executed {len(statements)} statement(s), {rowcount} row(s) affected')
        return rowcount

    def execute_many(self, sql: str, seq_of_params: Iterable[Sequence[Any] | Mapping[str, Any]]) -> int:
        """Execute one statement per parameter set, in a single request.
        """
        statements = []
        for params in seq_of_params:
            if isinstance(params, Mapping):
                statements.append(Statement.from_args(sql, params))
            else:
                statements.append(Statement.from_args(sql, *params))
        if not statements:
            return 0
        results = self._send(statements, read=False)
        clear_on_ddl([sql])
        return sum(result.rows_affected or 0 for result in results)

    def query(self, sql: str, *args: Any) -> Cursor:
        """Run a single read statement and return a cursor over its rows.
        """
        statements = self._statements(sql, args)
        if len(statements) != 1:
            raise QueryError(f'Expected one statement, got {len(statements)}')
        if not is_select(statements[0].sql):
            raise QueryError(f'Not a read statement: {statements[0].sql[:60]}')
        result = self._send(statements, read=True)[0]
        cursor = Cursor(result, max_rows=self.options.max_rows, on_close=self._forget)
        self._cursors.append(cursor)
        return cursor

    def _forget(self, cursor: Cursor) -> None:
        if cursor in self._cursors:
            self._cursors.remove(cursor)

    def select(self, sql: str, *args: Any, **kwargs: Any) -> list[dict[str, Any]] | pd.DataFrame:
        """Execute a read and load rows through the configured data loader.
        """
        with self.query(sql, *args) as cursor:
            columns = cursor.columns
            names = [col.name for col in columns]
            data = [dict(zip(names, row)) for row in cursor]
        result = self.options.data_loader(data, columns, **kwargs)
        logger.debug(f'Select query returned {len(data)} row(s)')
        return result

    @use_iterdict_data_loader
    def select_column(self, sql: str, *args: Any) -> list[Any]:
        """Execute a query and return a single column as a list.
        """
        data = self.select(sql, *args)
        return [next(iter(row.values())) for row in data]

    @use_iterdict_data_loader
    def select_row(self, sql: str, *args: Any) -> dict[str, Any]:
        """Execute a query and return a single row as a dictionary.

        Raises ValidationError if the query returns zero or multiple rows.
        """
        data = self.select(sql, *args)
        if len(data) != 1:
            raise ValidationError(f'Expected one row, got {len(data)}')
        return data[0]

    @use_iterdict_data_loader
    def select_row_or_none(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """Execute a query and return a single row or None if no rows found.
        """
        data = self.select(sql, *args)
        if len(data) == 1:
            return data[0]
        return None

    @use_iterdict_data_loader
    def select_scalar(self, sql: str, *args: Any) -> Any:
        """Execute a query and return a single scalar value.

        Raises ValidationError if the query returns zero or multiple rows.
        """
        data = self.select(sql, *args)
        if len(data) != 1:
            raise ValidationError(f'Expected one row, got {len(data)}')
        result = next(iter(data[0].values()))
        logger.debug(f'Scalar query returned value of type {type(result).__name__}')
        return result

    def select_scalar_or_none(self, sql: str, *args: Any) -> Any | None:
        """Execute a query and return a single scalar value or None if no rows found.
        """
        try:
            return self.select_scalar(sql, *args)
        except ValidationError:
            return None


def connect(options: RqliteOptions | dict[str, Any] | None = None,
            transport: httpx.BaseTransport | None = None, **kw: Any) -> ConnectionWrapper:
    """Connect to an rqlite node.

    Args:
        options: Can be:
                - RqliteOptions object
                - Dictionary of options
                - None, with options given as keyword arguments
        transport: optional httpx transport for the HTTP client
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper for the node
    """
    if isinstance(options, RqliteOptions):
        if kw:
            options = dataclasses.replace(options, **kw)
    else:
        options = RqliteOptions.from_dict(options or {}, **kw)
    logger.debug(f'Connecting to {options.baseurl}')
    return ConnectionWrapper(RqliteClient(options, transport=transport), options)
