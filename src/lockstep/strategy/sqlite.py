"""
SQLite-specific strategy implementation.

SQLite has no information_schema; relations come from `sqlite_master` and
columns from `pragma_table_info`. Declared column types are free-form, so
they are normalized to the PostgreSQL catalog names before resolution.
"""
import logging
import re
from typing import TYPE_CHECKING

from lockstep.strategy.base import DatabaseStrategy, escape_string_literal
from lockstep.strategy.base import register_strategy

if TYPE_CHECKING:
    from lockstep.options import LockstepOptions

logger = logging.getLogger(__name__)

_TYPE_MODIFIER = re.compile(r'\(.*\)')

sqlite_type_aliases: dict[str, str] = {
    'text': 'text',
    'clob': 'text',
    'char': 'character',
    'character': 'character',
    'nchar': 'character',
    'varchar': 'character varying',
    'nvarchar': 'character varying',
    'character varying': 'character varying',
    'int': 'integer',
    'integer': 'integer',
    'tinyint': 'smallint',
    'smallint': 'smallint',
    'mediumint': 'integer',
    'bigint': 'bigint',
    'bool': 'boolean',
    'boolean': 'boolean',
    'time': 'time without time zone',
    'timetz': 'time with time zone',
    'datetime': 'timestamp without time zone',
    'timestamp': 'timestamp without time zone',
    'timestamptz': 'timestamp with time zone',
    }


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite catalog access.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'LockstepOptions') -> str:
        """Build the SQLAlchemy connection URL for SQLite."""
        return f'sqlite:///{options.database}'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def list_relations_sql(self) -> str:
        return ("SELECT name FROM sqlite_master WHERE type IN ('table', 'view') "
                "AND name NOT LIKE 'sqlite_%'")

    def describe_relation_sql(self, name: str) -> str:
        escaped = escape_string_literal(name)
        return f"SELECT name, type FROM pragma_table_info('{escaped}')"

    def normalize_type(self, reported: str) -> str:
        """Map a declared SQLite type such as `VARCHAR(20)` to its catalog name.

        Unrecognized declarations are returned lower-cased.
        """
        declared = _TYPE_MODIFIER.sub('', reported or '').strip().lower()
        return sqlite_type_aliases.get(declared, declared)
