"""
PostgreSQL-specific strategy implementation.

Relation names and column types are read from `information_schema`, which
already reports the type names the type registry understands.
"""
import logging
from typing import TYPE_CHECKING

from lockstep.strategy.base import DatabaseStrategy, escape_string_literal
from lockstep.strategy.base import register_strategy

if TYPE_CHECKING:
    from lockstep.options import LockstepOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL catalog access.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'LockstepOptions') -> str:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query_parts = []
        if options.timeout:
            query_parts.append(f'connect_timeout={options.timeout}')

        url = (f'postgresql+psycopg://{options.username}:{options.password}'
               f'@{options.hostname}:{options.port}/{options.database}')

        if query_parts:
            url += '?' + '&'.join(query_parts)

        return url

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def list_relations_sql(self) -> str:
        return "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"

    def describe_relation_sql(self, name: str) -> str:
        escaped = escape_string_literal(name)
        return ('SELECT column_name, data_type FROM information_schema.columns '
                f"WHERE table_name = '{escaped}'")
