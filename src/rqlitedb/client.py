"""
HTTP transport for rqlite.

Writes go to `/db/execute` and reads to `/db/query`; both take a JSON array
of statements in wire form and answer with one result per statement, in
order. Every call is a single blocking request with no retry.
"""
import logging
import ssl
import time
from collections.abc import Sequence
from functools import wraps
from typing import Any, Protocol

import httpx

from rqlitedb.exceptions import ConnectionFailure, UpstreamError
from rqlitedb.options import RqliteOptions
from rqlitedb.result import WireResponse, WireResult, check_result
from rqlitedb.statement import Statement

logger = logging.getLogger(__name__)

__all__ = ['RqliteClient', 'Transport', 'to_wire']

StatementLike = Statement | str | list


class Transport(Protocol):
    """What the cursor and metadata layers need from a transport."""

    def execute(self, statements: Sequence[StatementLike],
                transaction: bool | None = None) -> list[WireResult]: ...

    def query(self, statements: Sequence[StatementLike]) -> list[WireResult]: ...


def to_wire(statement: StatementLike) -> list:
    """Wire form of a statement given as a Statement, bare SQL or a built list."""
    if isinstance(statement, Statement):
        return statement.build()
    if isinstance(statement, str):
        return Statement(statement).build()
    return list(statement)


def dumpsql(func):
    """Decorator for logging statements sent to the node."""
    @wraps(func)
    def wrapper(self, statements: Sequence[StatementLike], *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'{func.__name__}:\n' + '\n'.join(repr(to_wire(s)) for s in statements))
        try:
            return func(self, statements, *args, **kwargs)
        except Exception:
            logger.error(f'Error with {func.__name__}:\n' + '\n'.join(repr(to_wire(s)) for s in statements))
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'{func.__name__} time: {elapsed:.4f}s')
    return wrapper


def _first(results: list[WireResult]) -> WireResult:
    if not results:
        raise UpstreamError('Response contained no results')
    return results[0]


def _verify(options: RqliteOptions) -> bool | ssl.SSLContext:
    verify = options.verify
    if isinstance(verify, str):
        return ssl.create_default_context(cafile=verify)
    return verify


class RqliteClient:
    """Blocking HTTP client for one rqlite node.

    Args:
        options: connection, consistency and write settings
        transport: optional httpx transport, e.g. `httpx.MockTransport` in tests
    """

    def __init__(self, options: RqliteOptions, transport: httpx.BaseTransport | None = None) -> None:
        self.options = options
        self.calls = 0
        self.time = 0.0
        self._http = httpx.Client(
            base_url=options.baseurl,
            auth=options.auth,
            verify=_verify(options),
            timeout=options.timeout,
            transport=transport,
            )

    def __repr__(self) -> str:
        return f'RqliteClient(baseurl={self.options.baseurl!r})'

    def __enter__(self) -> 'RqliteClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def addcall(self, elapsed: float) -> None:
        """Track request statistics."""
        self.time += elapsed
        self.calls += 1

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise ConnectionFailure(f'Request to {path} timed out after {self.options.timeout}s') from exc
        except httpx.HTTPError as exc:
            raise ConnectionFailure(f'Request to {path} failed: {exc}') from exc
        if response.status_code != 200:
            raise ConnectionFailure(f'HTTP response error: [{response.status_code}] - {response.text}')
        return response

    def _post(self, path: str, statements: Sequence[StatementLike],
              params: dict[str, str]) -> list[WireResult]:
        payload = [to_wire(s) for s in statements]
        response = self._request('POST', path, json=payload, params=params)
        try:
            data = response.json()
        except ValueError as exc:
            raise ConnectionFailure(f'Invalid JSON from {path}: {response.text[:200]}') from exc
        wire = WireResponse.from_json(data)
        if len(wire.results) != len(payload):
            logger.warning(f'Sent {len(payload)} statements, got {len(wire.results)} results')
        return wire.results

    @dumpsql
    def execute(self, statements: Sequence[StatementLike],
                transaction: bool | None = None) -> list[WireResult]:
        """Run statements on the write path.

        Returns one result per statement; errors are left on the results.
        """
        return self._post('/db/execute', statements, self.options.write_params(transaction))

    @dumpsql
    def query(self, statements: Sequence[StatementLike]) -> list[WireResult]:
        """Run statements on the read path.
        """
        return self._post('/db/query', statements, self.options.read_params())

    def execute_one(self, statement: StatementLike) -> WireResult:
        """Run one write statement and raise its error, if any."""
        return check_result(_first(self.execute([statement])), str(to_wire(statement)[0]))

    def query_one(self, statement: StatementLike) -> WireResult:
        """Run one read statement and raise its error, if any."""
        return check_result(_first(self.query([statement])), str(to_wire(statement)[0]))

    def status(self) -> dict[str, Any]:
        """Node status document."""
        return self._request('GET', '/status').json()

    def nodes(self) -> dict[str, Any]:
        """Cluster membership as seen by this node."""
        return self._request('GET', '/nodes').json()

    def ready(self) -> bool:
        """Whether the node reports itself ready to serve."""
        try:
            self._request('GET', '/readyz')
        except ConnectionFailure as exc:
            logger.debug(f'Node not ready: {exc}')
            return False
        return True
