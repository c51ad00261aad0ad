"""
rqlite client exception classes.

Cast failures are split into two kinds so callers can tell bad data
(`MalformedValueError`) from a wrong cast (`IncompatibleTypeError`).
Engine-reported failures arrive as `UpstreamError` with the engine's
message untouched.
"""
import httpx

SOFT_ERROR_MARKER = 'no such table'


class DatabaseError(Exception):
    """Base class for all rqlitedb errors.
    """


class ConnectionFailure(DatabaseError):
    """Error reaching the rqlite node or reading its response.
    """


class UpstreamError(ConnectionFailure):
    """Error message reported by the engine for one statement.
    """

    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.message = message
        self.statement = statement


class QueryError(DatabaseError):
    """Error in query text or in the kind of statement submitted.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class ParameterModeError(DatabaseError):
    """Positional and named parameters used on the same statement.
    """


class TypeConversionError(DatabaseError):
    """Error converting a wire cell into a client type.
    """

    def __init__(self, message: str, column: int | None = None,
                 target: str | None = None, value: str | None = None):
        super().__init__(message)
        self.column = column
        self.target = target
        self.value = value


class MalformedValueError(TypeConversionError):
    """Cell text does not parse, or does not fit the target width.
    """


class IncompatibleTypeError(TypeConversionError):
    """Source wire type cannot be read as the requested target.
    """


class NoTargetTypeError(TypeConversionError):
    """Object conversion requested without a target class.
    """


class NotSupportedError(DatabaseError):
    """Requested conversion or operation is not supported.
    """


class InvalidColumnError(DatabaseError):
    """Column label or ordinal does not exist in the result.
    """


class InvalidCursorStateError(DatabaseError):
    """Cell access while the cursor is not on a row.
    """


class CursorClosedError(DatabaseError):
    """Access to a cursor after it was closed.
    """


DbConnectionError = (
    httpx.TransportError,
    ConnectionFailure,
    )

ProgrammingError = (
    QueryError,
    ParameterModeError,
    InvalidColumnError,
    InvalidCursorStateError,
    CursorClosedError,
    )

DataError = (
    TypeConversionError,
    ValidationError,
    )
