"""
SQL text helpers.

Statement splitting works on a single-pass tokenization:

    SQL → Tokenize → Split on top-level `;` → Trimmed statements

Quoted literals, quoted identifiers and comments are opaque tokens, so a
`;` inside any of them never ends a statement.

Main entry points:
- `split_statements(sql)` - Break multi-statement text into statements
- `is_select(sql)` - Decide whether a statement belongs on the read path
- `quote_literal()` / `quote_identifier()` - Escape values and names
- `like_to_regex(pattern)` - Compile a LIKE pattern for name filtering
"""
import re
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

from rqlitedb.exceptions import QueryError

__all__ = [
    'TokenType',
    'Token',
    'tokenize_sql',
    'split_statements',
    'is_select',
    'quote_literal',
    'quote_identifier',
    'like_to_regex',
]

# =============================================================================
# Data Structures
# =============================================================================


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()     # 'it''s'
    IDENTIFIER = auto()         # "my ""col"""
    LINE_COMMENT = auto()       # -- to end of line
    BLOCK_COMMENT = auto()      # /* ... */
    SEMICOLON = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str
    start: int
    end: int


# =============================================================================
# Regex Patterns
# =============================================================================

# Alternatives are tried at each offset, so whichever construct opens first
# wins and everything inside it is consumed as one token.
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<identifier>"(?:[^"]|"")*")
    |(?P<line_comment>--[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<semicolon>;)
    |(?P<unterminated>'|"|/\*)
""", re.VERBOSE | re.DOTALL)

_GROUP_TYPES = {
    'string': TokenType.STRING_LITERAL,
    'identifier': TokenType.IDENTIFIER,
    'line_comment': TokenType.LINE_COMMENT,
    'block_comment': TokenType.BLOCK_COMMENT,
    'semicolon': TokenType.SEMICOLON,
}

_UNTERMINATED_NAMES = {
    "'": 'string literal',
    '"': 'quoted identifier',
    '/*': 'block comment',
}

_COMMENT_TYPES = {TokenType.LINE_COMMENT, TokenType.BLOCK_COMMENT}

_READ_KEYWORDS = {'SELECT', 'WITH', 'PRAGMA', 'EXPLAIN', 'VALUES'}

_FIRST_WORD = re.compile(r'\s*([A-Za-z]+)')


# =============================================================================
# Core Functions
# =============================================================================

def tokenize_sql(sql: str) -> list[Token]:
    """Scan SQL into tokens in a single pass.

    Parameters
        sql: SQL text, possibly holding several statements

    Returns
        List of tokens preserving all SQL text

    Raises
        QueryError: a quote, identifier or block comment is never closed
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        kind = match.lastgroup

        if kind == 'unterminated':
            name = _UNTERMINATED_NAMES[match.group(kind)]
            raise QueryError(f'Unterminated {name} at offset {start}')

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        tokens.append(Token(_GROUP_TYPES[kind], match.group(kind), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def _has_content(tokens: list[Token]) -> bool:
    """Check whether a token run holds anything besides comments and whitespace."""
    return any(t.type not in _COMMENT_TYPES and t.text.strip() for t in tokens)


def split_statements(sql: str) -> list[str]:
    """Split SQL text into trimmed, non-empty statements.

    A `;` outside literals, identifiers and comments ends a statement.
    Fragments holding only whitespace or comments are dropped.

    >>> split_statements("SELECT 1; ; SELECT ';'")
    ['SELECT 1', "SELECT ';'"]
    >>> split_statements(';;')
    []
    """
    if not sql:
        return []

    statements = []
    current: list[Token] = []

    for token in tokenize_sql(sql):
        if token.type == TokenType.SEMICOLON:
            if _has_content(current):
                statements.append(''.join(t.text for t in current).strip())
            current = []
            continue
        current.append(token)

    if _has_content(current):
        statements.append(''.join(t.text for t in current).strip())

    return statements


def is_select(sql: str) -> bool:
    """Check if a statement reads rows and belongs on the query endpoint.

    Leading comments are skipped; the first keyword decides.
    """
    for token in tokenize_sql(sql):
        if token.type in _COMMENT_TYPES:
            continue
        if token.type != TokenType.SQL_TEXT:
            return False
        if not token.text.strip():
            continue
        match = _FIRST_WORD.match(token.text)
        return bool(match) and match.group(1).upper() in _READ_KEYWORDS
    return False


def quote_literal(value: str) -> str:
    """Quote a value as a SQL string literal.

    >>> quote_literal("it's")
    "'it''s'"
    """
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(identifier: str) -> str:
    """Quote a table or column name.

    >>> quote_identifier('my"table')
    '"my""table"'
    """
    return '"' + identifier.replace('"', '""') + '"'


@lru_cache(maxsize=256)
def like_to_regex(pattern: str | None) -> re.Pattern:
    """Compile a SQL LIKE pattern into an anchored, case-insensitive regex.

    `%` matches any run and `_` any single character; every other character
    is literal. A missing pattern matches everything.

    >>> bool(like_to_regex('us%').match('USERS'))
    True
    >>> bool(like_to_regex('a_c').match('abbc'))
    False
    """
    if pattern is None:
        return re.compile(r'.*', re.DOTALL)
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile(''.join(parts) + r'\Z', re.IGNORECASE | re.DOTALL)
