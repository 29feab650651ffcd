"""
Base strategy interface for dialect-specific catalog access.

Each concrete strategy knows how its database reports relation names and
column types, and how to normalize reported type names to the catalog
vocabulary understood by `lockstep.types.resolve_type`. Everything else in
the engine is dialect-neutral.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lockstep.options import LockstepOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


def escape_string_literal(s: str) -> str:
    """Escape a string for use inside a single-quoted SQL literal."""
    return s.replace("'", "''")


class DatabaseStrategy(ABC):
    """Base class for dialect-specific catalog operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @abstractmethod
    def build_connection_url(self, options: 'LockstepOptions') -> str:
        """Build the SQLAlchemy connection URL."""

    def get_engine_kwargs(self, options: 'LockstepOptions') -> dict[str, Any]:
        """Return extra SQLAlchemy create_engine kwargs."""
        return {}

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return the option names that must be set for this dialect."""

    @classmethod
    def validate_options(cls, options: 'LockstepOptions') -> None:
        """Raise ValueError if a required option is missing.
        """
        missing = [name for name in cls.get_required_options()
                   if getattr(options, name, None) in {None, ''}]
        if missing:
            raise ValueError(f'Missing required options for {options.drivername}: {missing}')

    @abstractmethod
    def list_relations_sql(self) -> str:
        """Return the statement listing table and view names, one per row.
        """

    @abstractmethod
    def describe_relation_sql(self, name: str) -> str:
        """Return the statement listing (column name, reported type) pairs of a relation.

        Args:
            name: Relation name as reported by `list_relations_sql`
        """

    def normalize_type(self, reported: str) -> str:
        """Map a reported column type to the catalog type vocabulary.
        """
        return reported

    def select_all_sql(self, name: str) -> str:
        """Return the full fetch statement for a relation.

        The name is substituted verbatim; it must come from the catalog
        listing, never from external input.
        """
        return f'SELECT * FROM {name}'
