"""
Statement and parameter binding.

A statement holds its SQL text and exactly one parameter mode:

    Positional(values)   ->  ["INSERT INTO t VALUES(?, ?)", 1, "a"]
    Named(values)        ->  ["INSERT INTO t VALUES(:id)", {"id": 1}]

Switching modes while values of the other kind are held raises
`ParameterModeError`. Values are serialized to JSON-ready wire values by
`serialize_param`.
"""
import base64
import datetime
import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from rqlitedb.exceptions import ParameterModeError, ValidationError

logger = logging.getLogger(__name__)

__all__ = ['Statement', 'Positional', 'Named', 'serialize_param']


@dataclass(slots=True)
class Positional:
    """Ordered parameter values, possibly sparse."""
    values: list = field(default_factory=list)


@dataclass(slots=True)
class Named:
    """Parameter values keyed by name."""
    values: dict = field(default_factory=dict)


Params = Positional | Named


def serialize_param(value: Any) -> Any:
    """Convert a Python value into a JSON-ready wire value.

    - None, NaN, NaT and pandas NA -> null
    - bool, int, float, str -> themselves; infinite floats raise ValidationError
    - bytes-like -> base64 text
    - NumPy scalars -> the matching Python scalar
    - datetimes -> `YYYY-MM-DD HH:MM:SS[.ffffff]` text
    - everything else -> `str(value)`
    """
    if value is None:
        return None
    if isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        if math.isinf(value):
            raise ValidationError(f'Cannot send {value} as a JSON number')
        return None if math.isnan(value) else value
    if isinstance(value, bytes | bytearray | memoryview):
        return base64.b64encode(bytes(value)).decode('ascii')
    if isinstance(value, np.generic):
        return serialize_param(value.item())
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return serialize_param(value.to_pydatetime())
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=' ')
    return str(value)


class Statement:
    """One SQL text plus its bound parameters.

    Positional indexes are zero-based. Binding past the end grows the list
    with nulls, so binding index 0 then index 2 leaves a null at index 1.
    """

    def __init__(self, sql: str, params: Params | None = None):
        self.sql = sql
        self.params: Params = params if params is not None else Positional()

    def __repr__(self) -> str:
        return f'Statement(sql={self.sql!r}, params={self.params!r})'

    def _positional(self) -> list:
        match self.params:
            case Positional(values=values):
                return values
            case Named(values=values) if values:
                raise ParameterModeError(
                    'Cannot mix positional and named parameters in the same statement')
            case _:
                self.params = Positional()
                return self.params.values

    def _named(self) -> dict:
        match self.params:
            case Named(values=values):
                return values
            case Positional(values=values) if values:
                raise ParameterModeError(
                    'Cannot mix positional and named parameters in the same statement')
            case _:
                self.params = Named()
                return self.params.values

    def bind(self, index: int, value: Any) -> 'Statement':
        """Bind a value at a zero-based position.
        """
        if index < 0:
            raise ValidationError(f'Parameter index cannot be negative: {index}')
        values = self._positional()
        if index >= len(values):
            values.extend([None] * (index + 1 - len(values)))
        values[index] = value
        return self

    def append(self, value: Any) -> 'Statement':
        """Bind a value after the last positional value.
        """
        self._positional().append(value)
        return self

    def bind_all(self, values: Sequence[Any]) -> 'Statement':
        """Replace all positional values at once.
        """
        self._positional()
        self.params = Positional(list(values))
        return self

    def bind_named(self, name: str, value: Any) -> 'Statement':
        """Bind a value to a name.
        """
        self._named()[name] = value
        return self

    def bind_named_all(self, values: Mapping[str, Any]) -> 'Statement':
        """Replace all named values at once.
        """
        self._named()
        self.params = Named(dict(values))
        return self

    def clear(self) -> None:
        """Drop every binding; the statement may then use either mode.
        """
        self.params = Positional()

    @property
    def positional(self) -> list:
        return list(self.params.values) if isinstance(self.params, Positional) else []

    @property
    def named(self) -> dict:
        return dict(self.params.values) if isinstance(self.params, Named) else {}

    def build(self) -> list:
        """Build the wire form sent to the engine.

        Returns
            `[sql, *positional]` or `[sql, {named}]`
        """
        if not self.sql or not self.sql.strip():
            raise ValidationError('SQL statement cannot be empty')
        match self.params:
            case Named(values=values) if values:
                return [self.sql, {k: serialize_param(v) for k, v in values.items()}]
            case Positional(values=values):
                return [self.sql, *[serialize_param(v) for v in values]]
            case _:
                return [self.sql]

    @classmethod
    def from_args(cls, sql: str, *args: Any) -> 'Statement':
        """Create a statement from call-style arguments.

        A single mapping argument binds by name; anything else binds
        positionally in order.
        """
        statement = cls(sql)
        if len(args) == 1 and isinstance(args[0], Mapping):
            statement.bind_named_all(args[0])
        elif args:
            statement.bind_all(args)
        logger.debug(f'Built {statement!r}')
        return statement
