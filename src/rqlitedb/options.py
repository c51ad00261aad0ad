from collections.abc import Callable
from dataclasses import dataclass, fields
from functools import wraps
from typing import Any

import pandas as pd
import pyarrow as pa

from rqlitedb.types import Column

__all__ = [
    'RqliteOptions',
    'CONSISTENCY_LEVELS',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]

CONSISTENCY_LEVELS = ('none', 'weak', 'strong', 'linearizable')


def use_iterdict_data_loader(func):
    """Temporarily use default dict loader over user-specified loader"""

    @wraps(func)
    def inner(*args, **kwargs):
        cn = args[0]
        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader
        try:
            return func(*args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.
    """
    if not data:
        return []
    return list(data)


def _empty_dataframe(columns) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=Column.get_names(columns))
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Pandas DataFrame loader using NumPy dtypes.

    Empty results keep their columns. Type information for each column is
    stored in `DataFrame.attrs['column_types']`.
    """
    if not data:
        return _empty_dataframe(columns)

    df = pd.DataFrame.from_records(list(data), columns=Column.get_names(columns))
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-backed pandas DataFrame loader.
    """
    if not data:
        return _empty_dataframe(columns)

    column_names = Column.get_names(columns)
    columns_data = [[row[col] for row in data] for col in column_names]
    df = pa.table(columns_data, names=column_names).to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def _seconds(value: float) -> str:
    """Render seconds the way the HTTP API expects durations (`5s`, `0.5s`)."""
    return f'{value:g}s'


@dataclass
class RqliteOptions:
    """Options

    Connection:
    - baseurl: node address, e.g. `http://localhost:4001`
    - username / password: basic auth credentials
    - cacert: CA bundle path for TLS; insecure skips verification
    - timeout: seconds, sent to the node and used for the HTTP client

    Consistency (read path):
    - level: one of `none`, `weak`, `strong`, `linearizable`
    - linearizable_timeout: seconds, only sent for `linearizable`
    - freshness / freshness_strict: staleness bound for `none` reads

    Writes:
    - transaction: wrap multi-statement requests in a transaction
    - queue / wait: queued writes, optionally waiting for them to apply

    Results:
    - max_rows: cap on rows kept per cursor (0 for no cap)
    - timings: ask the node for timing information
    - data_loader: turns selected rows into the caller's structure
    """
    baseurl: str = 'http://localhost:4001'
    username: str = None
    password: str = None
    cacert: str = None
    insecure: bool = False
    timeout: float = 5
    transaction: bool = True
    queue: bool = False
    wait: bool = True
    level: str = 'linearizable'
    linearizable_timeout: float = 5
    freshness: float = 5
    freshness_strict: bool = False
    timings: bool = False
    max_rows: int = 0
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if not self.baseurl or not self.baseurl.startswith(('http://', 'https://')):
            raise ValueError('baseurl must start with http:// or https://')
        self.baseurl = self.baseurl.rstrip('/')
        if self.level not in CONSISTENCY_LEVELS:
            raise ValueError(f'level must be one of: {CONSISTENCY_LEVELS}')
        if self.timeout is None or self.timeout <= 0:
            raise ValueError('timeout must be positive')
        if self.max_rows is None or self.max_rows < 0:
            raise ValueError('max_rows cannot be negative')
        if (self.username is None) != (self.password is None):
            raise ValueError('username and password must be given together')
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader

    @classmethod
    def from_dict(cls, values: dict[str, Any], **kw: Any) -> 'RqliteOptions':
        """Build options from a mapping, ignoring unknown keys; keywords win."""
        names = {f.name for f in fields(cls)}
        merged = {**values, **kw}
        return cls(**{k: v for k, v in merged.items() if k in names})

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.username is None:
            return None
        return (self.username, self.password)

    @property
    def verify(self) -> bool | str:
        """TLS verification setting for the HTTP client."""
        if self.insecure:
            return False
        return self.cacert or True

    def write_params(self, transaction: bool | None = None) -> dict[str, str]:
        """Query string for the execute endpoint."""
        params = {'timeout': _seconds(self.timeout)}
        if self.transaction if transaction is None else transaction:
            params['transaction'] = 'true'
        if self.queue:
            params['queue'] = 'true'
            if self.wait:
                params['wait'] = 'true'
        if self.timings:
            params['timings'] = 'true'
        return params

    def read_params(self) -> dict[str, str]:
        """Query string for the query endpoint."""
        params = {'timeout': _seconds(self.timeout), 'level': self.level}
        if self.level == 'linearizable':
            params['linearizable_timeout'] = _seconds(self.linearizable_timeout)
        if self.level == 'none':
            params['freshness'] = _seconds(self.freshness)
            if self.freshness_strict:
                params['freshness_strict'] = 'true'
        if self.timings:
            params['timings'] = 'true'
        return params
