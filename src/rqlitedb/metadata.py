"""
Catalog metadata built from SQLite introspection.

Each builder returns a `WireResult` in a fixed layout (table list, column
list, keys, indexes, type catalog) so it reads like any other result
through a `Cursor`. Rows come from:

- `sqlite_master` for tables and views
- `PRAGMA table_info` for columns and primary keys
- `PRAGMA foreign_key_list` for foreign keys
- `PRAGMA index_list` / `PRAGMA index_xinfo` for indexes

Introspection rows are cached per node; pass `bypass_cache=True` to the
pragma helpers, or clear `Cache`, after schema changes made elsewhere.
"""
import logging
from collections.abc import Iterable
from enum import IntEnum

from rqlitedb.cache import cacheable
from rqlitedb.exceptions import UpstreamError
from rqlitedb.result import WireResult, check_result
from rqlitedb.sql import like_to_regex, quote_literal
from rqlitedb.statement import Statement
from rqlitedb.types import RQ_TYPES, TypeTag, resolve_tag

logger = logging.getLogger(__name__)

__all__ = [
    'MetadataSynthesizer',
    'KeyRule',
    'Deferrability',
    'TABLES_LAYOUT',
    'COLUMNS_LAYOUT',
    'PRIMARY_KEYS_LAYOUT',
    'FOREIGN_KEYS_LAYOUT',
    'INDEX_INFO_LAYOUT',
    'TYPE_INFO_LAYOUT',
    'BEST_ROW_LAYOUT',
]


class KeyRule(IntEnum):
    """Foreign key update and delete rule codes."""
    CASCADE = 0
    RESTRICT = 1
    SET_NULL = 2
    NO_ACTION = 3
    SET_DEFAULT = 4

    @classmethod
    def from_action(cls, action: str | None) -> 'KeyRule':
        """Map a pragma action (`CASCADE`, `SET NULL`, ...) to its code.

        Anything outside the known actions, including `NO ACTION` and a
        missing value, is NO_ACTION.
        """
        return _ACTIONS.get((action or '').strip().upper(), cls.NO_ACTION)


_ACTIONS = {
    'CASCADE': KeyRule.CASCADE,
    'RESTRICT': KeyRule.RESTRICT,
    'SET NULL': KeyRule.SET_NULL,
    'SET DEFAULT': KeyRule.SET_DEFAULT,
}


class Deferrability(IntEnum):
    INITIALLY_DEFERRED = 5
    INITIALLY_IMMEDIATE = 6
    NOT_DEFERRABLE = 7


CATALOG = 'main'
TABLE_INDEX_OTHER = 3
COLUMN_NO_NULLS = 0
COLUMN_NULLABLE = 1
TYPE_NULLABLE = 1
TYPE_SEARCHABLE = 3
BEST_ROW_SESSION = 2
BEST_ROW_NOT_PSEUDO = 1
NUM_PREC_RADIX = 10

V = TypeTag.VARCHAR
I = TypeTag.INTEGER
S = TypeTag.SMALLINT
B = TypeTag.BOOLEAN
L = TypeTag.BIGINT

TABLES_LAYOUT = [
    ('TABLE_CAT', V), ('TABLE_SCHEM', V), ('TABLE_NAME', V), ('TABLE_TYPE', V),
    ('REMARKS', V), ('TYPE_CAT', V), ('TYPE_SCHEM', V), ('TYPE_NAME', V),
    ('SELF_REFERENCING_COL_NAME', V), ('REF_GENERATION', V),
]

COLUMNS_LAYOUT = [
    ('TABLE_CAT', V), ('TABLE_SCHEM', V), ('TABLE_NAME', V), ('COLUMN_NAME', V),
    ('DATA_TYPE', I), ('TYPE_NAME', V), ('COLUMN_SIZE', I), ('BUFFER_LENGTH', I),
    ('DECIMAL_DIGITS', I), ('NUM_PREC_RADIX', I), ('NULLABLE', I), ('REMARKS', V),
    ('COLUMN_DEF', V), ('SQL_DATA_TYPE', I), ('SQL_DATETIME_SUB', I), ('CHAR_OCTET_LENGTH', I),
    ('ORDINAL_POSITION', I), ('IS_NULLABLE', V), ('SCOPE_CATALOG', V), ('SCOPE_SCHEMA', V),
    ('SCOPE_TABLE', V), ('SOURCE_DATA_TYPE', I), ('IS_AUTOINCREMENT', V), ('IS_GENERATEDCOLUMN', V),
]

PRIMARY_KEYS_LAYOUT = [
    ('TABLE_CAT', V), ('TABLE_SCHEM', V), ('TABLE_NAME', V),
    ('COLUMN_NAME', V), ('KEY_SEQ', I), ('PK_NAME', V),
]

FOREIGN_KEYS_LAYOUT = [
    ('PKTABLE_CAT', V), ('PKTABLE_SCHEM', V), ('PKTABLE_NAME', V), ('PKCOLUMN_NAME', V),
    ('FKTABLE_CAT', V), ('FKTABLE_SCHEM', V), ('FKTABLE_NAME', V), ('FKCOLUMN_NAME', V),
    ('KEY_SEQ', S), ('UPDATE_RULE', S), ('DELETE_RULE', S),
    ('FK_NAME', V), ('PK_NAME', V), ('DEFERRABILITY', S),
]

INDEX_INFO_LAYOUT = [
    ('TABLE_CAT', V), ('TABLE_SCHEM', V), ('TABLE_NAME', V),
    ('NON_UNIQUE', B), ('INDEX_QUALIFIER', V), ('INDEX_NAME', V), ('TYPE', S),
    ('ORDINAL_POSITION', I), ('COLUMN_NAME', V), ('ASC_OR_DESC', V), ('CARDINALITY', L),
    ('PAGES', L), ('FILTER_CONDITION', V),
]

TYPE_INFO_LAYOUT = [
    ('TYPE_NAME', V), ('DATA_TYPE', I), ('PRECISION', I),
    ('LITERAL_PREFIX', V), ('LITERAL_SUFFIX', V),
    ('CREATE_PARAMS', V), ('NULLABLE', S), ('CASE_SENSITIVE', B),
    ('SEARCHABLE', S), ('UNSIGNED_ATTRIBUTE', B), ('FIXED_PREC_SCALE', B),
    ('AUTO_INCREMENT', B), ('LOCAL_TYPE_NAME', V), ('MINIMUM_SCALE', S),
    ('MAXIMUM_SCALE', S), ('SQL_DATA_TYPE', I), ('SQL_DATETIME_SUB', I),
    ('NUM_PREC_RADIX', I),
]

BEST_ROW_LAYOUT = [
    ('SCOPE', S), ('COLUMN_NAME', V), ('DATA_TYPE', I), ('TYPE_NAME', V),
    ('COLUMN_SIZE', I), ('BUFFER_LENGTH', I), ('DECIMAL_DIGITS', S), ('PSEUDO_COLUMN', S),
]

CATALOGS_LAYOUT = [('TABLE_CAT', V)]
SCHEMAS_LAYOUT = [('TABLE_SCHEM', V), ('TABLE_CATALOG', V)]
TABLE_TYPES_LAYOUT = [('TABLE_TYPE', V)]

TABLE_TYPES = ('TABLE', 'VIEW')

KEYWORDS = (
    'ABORT,ACTION,ADD,AFTER,ALL,ALTER,ANALYZE,AND,AS,ASC,ATTACH,AUTOINCREMENT,'
    'BEFORE,BEGIN,BETWEEN,BY,CASCADE,CASE,CAST,CHECK,COLLATE,COLUMN,COMMIT,CONFLICT,'
    'CONSTRAINT,CREATE,CROSS,CURRENT_DATE,CURRENT_TIME,CURRENT_TIMESTAMP,DATABASE,'
    'DEFAULT,DEFERRABLE,DEFERRED,DELETE,DESC,DETACH,DISTINCT,DROP,EACH,ELSE,END,'
    'ESCAPE,EXCEPT,EXCLUSIVE,EXISTS,EXPLAIN,FAIL,FOR,FOREIGN,FROM,FULL,GLOB,GROUP,'
    'HAVING,IF,IGNORE,IMMEDIATE,IN,INDEX,INDEXED,INITIALLY,INNER,INSERT,INSTEAD,'
    'INTERSECT,INTO,IS,ISNULL,JOIN,KEY,LEFT,LIKE,LIMIT,MATCH,NATURAL,NO,NOT,NOTNULL,'
    'NULL,OF,OFFSET,ON,OR,ORDER,OUTER,PLAN,PRAGMA,PRIMARY,QUERY,RAISE,RECURSIVE,'
    'REFERENCES,REGEXP,REINDEX,RELEASE,RENAME,REPLACE,RESTRICT,RIGHT,ROLLBACK,ROW,'
    'SAVEPOINT,SELECT,SET,TABLE,TEMP,TEMPORARY,THEN,TO,TRANSACTION,TRIGGER,UNION,'
    'UNIQUE,UPDATE,USING,VACUUM,VALUES,VIEW,VIRTUAL,WHEN,WHERE,WITH,WITHOUT'
)
NUMERIC_FUNCTIONS = 'abs,coalesce,likelihood,likely,max,min,random,randomblob,round,sign,unlikely,zeroblob'
STRING_FUNCTIONS = (
    'char,concat,concat_ws,format,glob,hex,instr,length,like,lower,ltrim,octet_length,'
    'printf,replace,rtrim,soundex,substr,substring,trim,unicode,unhex,upper'
)
SYSTEM_FUNCTIONS = (
    'changes,iif,ifnull,last_insert_rowid,nullif,quote,sqlite_compileoption_get,'
    'sqlite_compileoption_used,sqlite_offset,sqlite_source_id,sqlite_version,'
    'total_changes,typeof'
)
TIMEDATE_FUNCTIONS = 'date,datetime,julianday,strftime,time'


def _scope_of(client) -> str:
    options = getattr(client, 'options', None)
    baseurl = getattr(options, 'baseurl', None)
    return baseurl or f'{type(client).__name__}@{id(client):x}'


def _matches_all(tables: str | None) -> bool:
    return tables is None or tables == '%'


class MetadataSynthesizer:
    """Builds catalog result sets by querying a node's introspection surface.

    Args:
        client: any transport with `query(statements) -> list[WireResult]`
        scope: cache scope; defaults to the client's base URL
    """

    product_name = 'SQLite'
    driver_name = 'rqlitedb'
    catalog = CATALOG
    identifier_quote = '"'
    search_string_escape = '\\'
    keywords = KEYWORDS
    numeric_functions = NUMERIC_FUNCTIONS
    string_functions = STRING_FUNCTIONS
    system_functions = SYSTEM_FUNCTIONS
    timedate_functions = TIMEDATE_FUNCTIONS
    case_sensitive = False
    current_schema = None

    def __init__(self, client, scope: str | None = None) -> None:
        self.client = client
        self.cache_scope = scope or _scope_of(client)

    def __repr__(self) -> str:
        return f'MetadataSynthesizer(scope={self.cache_scope!r})'

    # ==========================================================================
    # Introspection queries
    # ==========================================================================

    def _select(self, sql: str) -> list[dict[str, str | None]]:
        """Run a read statement and return rows as dicts keyed by lowercase column."""
        results = self.client.query([Statement(sql)])
        if not results:
            raise UpstreamError('Response contained no results', statement=sql)
        result = check_result(results[0], sql)
        names = [name.lower() for name in result.columns]
        return [dict(zip(names, row)) for row in result.values]

    @cacheable('introspection')
    def catalog_entries(self) -> list[dict[str, str | None]]:
        """Tables and views listed in `sqlite_master`, by name."""
        return self._select(
            "SELECT name, type FROM sqlite_master WHERE type IN ('table', 'view') ORDER BY name")

    @cacheable('introspection')
    def table_info(self, table: str) -> list[dict[str, str | None]]:
        return self._select(f'PRAGMA table_info({quote_literal(table)})')

    @cacheable('introspection')
    def foreign_key_list(self, table: str) -> list[dict[str, str | None]]:
        return self._select(f'PRAGMA foreign_key_list({quote_literal(table)})')

    @cacheable('introspection')
    def index_list(self, table: str) -> list[dict[str, str | None]]:
        return self._select(f'PRAGMA index_list({quote_literal(table)})')

    @cacheable('introspection')
    def index_xinfo(self, index: str) -> list[dict[str, str | None]]:
        return self._select(f'PRAGMA index_xinfo({quote_literal(index)})')

    @cacheable('introspection', ttl=3600)
    def database_version(self) -> str:
        """Engine version reported by `sqlite_version()`."""
        rows = self._select('SELECT sqlite_version() AS version')
        return rows[0]['version'] if rows else 'unknown'

    def database_version_info(self) -> tuple[int, int]:
        """Major and minor engine version numbers."""
        parts = self.database_version().split('.')
        major = int(parts[0]) if parts[0].isdigit() else 0
        minor = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 0
        return major, minor

    def user_tables(self) -> list[str]:
        """Names of ordinary tables, without SQLite's internal ones."""
        return [
            row['name'] for row in self.catalog_entries()
            if row['type'] == 'table' and not row['name'].lower().startswith('sqlite')
        ]

    def _table_names(self, pattern: str | None, types: Iterable[str] | None) -> list[tuple[str, str]]:
        wanted = {t.upper() for t in (types or TABLE_TYPES)}
        regex = like_to_regex(None if _matches_all(pattern) else pattern)
        return [
            (row['name'], row['type'].upper()) for row in self.catalog_entries()
            if row['type'].upper() in wanted and regex.match(row['name'])
        ]

    def _key_tables(self, table: str | None) -> list[str]:
        return self.user_tables() if _matches_all(table) else [table]

    # ==========================================================================
    # Fixed result sets
    # ==========================================================================

    def get_catalogs(self) -> WireResult:
        out = WireResult.with_layout(CATALOGS_LAYOUT)
        out.add_row(CATALOG)
        return out

    def get_schemas(self) -> WireResult:
        """SQLite has no schemas; always empty."""
        return WireResult.with_layout(SCHEMAS_LAYOUT)

    def get_table_types(self) -> WireResult:
        out = WireResult.with_layout(TABLE_TYPES_LAYOUT)
        for table_type in TABLE_TYPES:
            out.add_row(table_type)
        return out

    def get_type_info(self) -> WireResult:
        """One row per type tag, in catalog order."""
        out = WireResult.with_layout(TYPE_INFO_LAYOUT)
        for tag in RQ_TYPES:
            prefix = "'" if tag.quoted else None
            out.add_row(
                tag.value, tag.sql_type, tag.precision,
                prefix, prefix,
                None, TYPE_NULLABLE, False,
                TYPE_SEARCHABLE, not tag.signed, False,
                False, tag.value, 0,
                0, 0, 0,
                NUM_PREC_RADIX,
            )
        return out

    # ==========================================================================
    # Tables and columns
    # ==========================================================================

    def get_tables(self, table_pattern: str | None = None,
                   types: Iterable[str] | None = None) -> WireResult:
        """Tables and views whose names match a LIKE pattern.

        Parameters
            table_pattern: LIKE pattern; None or `%` matches every name
            types: any of `TABLE`, `VIEW`; both when omitted
        """
        out = WireResult.with_layout(TABLES_LAYOUT)
        for name, table_type in self._table_names(table_pattern, types):
            out.add_row(CATALOG, None, name, table_type, None, None, None, None, None, None)
        return out

    def get_columns(self, table_pattern: str | None = None,
                    column_pattern: str | None = None) -> WireResult:
        """Columns of matching tables and views, in declaration order.

        ORDINAL_POSITION counts every column of its table, matched or not.
        A column is auto-increment when it is the table's only primary key
        column, has an integer type and no default.
        """
        out = WireResult.with_layout(COLUMNS_LAYOUT)
        column_regex = like_to_regex(None if _matches_all(column_pattern) else column_pattern)
        for table, _ in self._table_names(table_pattern, TABLE_TYPES):
            info = self.table_info(table)
            pk_count = sum(1 for row in info if int(row['pk'] or 0) > 0)
            for ordinal, row in enumerate(info, start=1):
                name = row['name']
                if not column_regex.match(name):
                    continue
                declared = row['type'] or ''
                tag = resolve_tag(declared)
                not_null = int(row['notnull'] or 0) == 1
                default = row['dflt_value']
                is_pk = int(row['pk'] or 0) > 0
                auto_increment = is_pk and pk_count == 1 and tag == TypeTag.INTEGER and default is None
                out.add_row(
                    CATALOG, None, table, name,
                    tag.sql_type, declared, tag.precision, 0,
                    0, NUM_PREC_RADIX, COLUMN_NO_NULLS if not_null else COLUMN_NULLABLE, None,
                    default, tag.sql_type, 0, tag.precision,
                    ordinal, 'NO' if not_null else 'YES', None, None,
                    None, 0, 'YES' if auto_increment else 'NO', 'NO',
                )
        return out

    # ==========================================================================
    # Keys
    # ==========================================================================

    def _primary_key_columns(self, table: str) -> list[str]:
        """Primary key column names in key order."""
        keyed = [(int(row['pk'] or 0), row['name']) for row in self.table_info(table)]
        return [name for pk, name in sorted(keyed) if pk > 0]

    def get_primary_keys(self, table: str | None = None) -> WireResult:
        """Primary key columns; KEY_SEQ counts from 1 within each table."""
        out = WireResult.with_layout(PRIMARY_KEYS_LAYOUT)
        for name in self._key_tables(table):
            for seq, column in enumerate(self._primary_key_columns(name), start=1):
                out.add_row(CATALOG, None, name, column, seq, f'PK_{name}')
        return out

    def _foreign_keys(self, fk_table: str) -> list[tuple]:
        """Foreign key rows of one table, ordered by parent table and key sequence."""
        rows = []
        for row in self.foreign_key_list(fk_table):
            pk_table = row['table']
            seq = int(row['seq'] or 0)
            fk_column = row['from']
            pk_column = row['to']
            if pk_column is None:
                # REFERENCES parent with no column list targets the parent's primary key
                parent_keys = self._primary_key_columns(pk_table)
                pk_column = parent_keys[seq] if seq < len(parent_keys) else None
            rows.append((
                CATALOG, None, pk_table, pk_column,
                CATALOG, None, fk_table, fk_column,
                seq + 1,
                int(KeyRule.from_action(row.get('on_update'))),
                int(KeyRule.from_action(row.get('on_delete'))),
                f'FK_{fk_table}_{fk_column}', f'PK_{pk_table}',
                int(Deferrability.NOT_DEFERRABLE),
            ))
        return sorted(rows, key=lambda r: (r[2].lower(), r[8]))

    def get_imported_keys(self, table: str | None = None) -> WireResult:
        """Foreign keys declared by a table (or by every user table)."""
        out = WireResult.with_layout(FOREIGN_KEYS_LAYOUT)
        for name in self._key_tables(table):
            for row in self._foreign_keys(name):
                out.add_row(*row)
        return out

    def get_exported_keys(self, table: str) -> WireResult:
        """Foreign keys in any user table that reference `table`."""
        out = WireResult.with_layout(FOREIGN_KEYS_LAYOUT)
        rows = []
        for name in self.user_tables():
            rows.extend(r for r in self._foreign_keys(name) if r[2].lower() == table.lower())
        for row in sorted(rows, key=lambda r: (r[6].lower(), r[8])):
            out.add_row(*row)
        return out

    def get_cross_reference(self, parent_table: str, foreign_table: str) -> WireResult:
        """Foreign keys of `foreign_table` that reference `parent_table`."""
        out = WireResult.with_layout(FOREIGN_KEYS_LAYOUT)
        for row in self._foreign_keys(foreign_table):
            if row[2].lower() == parent_table.lower():
                out.add_row(*row)
        return out

    def get_best_row_identifier(self, table: str, nullable: bool = True) -> WireResult:
        """Primary key columns usable as a row identifier.

        With `nullable=False`, columns that allow NULL are left out.
        """
        out = WireResult.with_layout(BEST_ROW_LAYOUT)
        columns = self.get_columns(table)
        position = {name.lower(): i for i, name in enumerate(columns.columns)}
        by_name = {row[position['column_name']]: row for row in columns.values}
        for column in self._primary_key_columns(table):
            row = by_name.get(column)
            if row is None:
                continue
            if not nullable and int(row[position['nullable']]) != COLUMN_NO_NULLS:
                continue
            out.add_row(
                BEST_ROW_SESSION, column, row[position['data_type']], row[position['type_name']],
                row[position['column_size']], row[position['buffer_length']],
                row[position['decimal_digits']], BEST_ROW_NOT_PSEUDO,
            )
        return out

    # ==========================================================================
    # Indexes
    # ==========================================================================

    def get_index_info(self, table: str | None = None, unique: bool = False) -> WireResult:
        """Index columns of a table (or of every user table).

        A rowid primary key has no index of its own and is reported as
        `PK_IDX_<table>`. ORDINAL_POSITION counts from 1 within each index.
        """
        out = WireResult.with_layout(INDEX_INFO_LAYOUT)
        for name in self._key_tables(table):
            indexes = self.index_list(name)
            if not any(row.get('origin') == 'pk' for row in indexes):
                for seq, column in enumerate(self._primary_key_columns(name), start=1):
                    out.add_row(
                        CATALOG, None, name,
                        False, None, f'PK_IDX_{name}', TABLE_INDEX_OTHER,
                        seq, column, 'A', 0,
                        0, None,
                    )
            for index in indexes:
                is_unique = int(index['unique'] or 0) == 1
                if unique and not is_unique:
                    continue
                seq = 0
                for column in self.index_xinfo(index['name']):
                    # cid -1 is the rowid, -2 an expression; key 0 marks auxiliary columns
                    if int(column['cid']) < 0 or int(column.get('key') or 0) != 1:
                        continue
                    seq += 1
                    out.add_row(
                        CATALOG, None, name,
                        not is_unique, None, index['name'], TABLE_INDEX_OTHER,
                        seq, column['name'], 'D' if int(column['desc'] or 0) else 'A', 0,
                        0, None,
                    )
        return out
