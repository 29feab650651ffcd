"""
Dialect strategies for catalog access.

Each supported driver name maps to one `DatabaseStrategy` subclass, which
knows the connection URL, the catalog statements and how to normalize the
column types the catalog reports.
"""
from functools import lru_cache

from lockstep.strategy.base import _STRATEGY_REGISTRY
from lockstep.strategy.base import DatabaseStrategy as DatabaseStrategy
from lockstep.strategy.base import register_strategy as register_strategy
from lockstep.strategy.postgres import PostgresStrategy as PostgresStrategy
from lockstep.strategy.sqlite import SQLiteStrategy as SQLiteStrategy
from lockstep.utils import get_dialect_name


def get_strategy_class(dialect: str) -> type[DatabaseStrategy]:
    """Return the strategy class registered for a driver name.

    Raises ValueError naming the supported drivers when none is registered.
    """
    try:
        return _STRATEGY_REGISTRY[dialect]
    except KeyError:
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {sorted(_STRATEGY_REGISTRY)}') from None


@lru_cache(maxsize=8)
def get_strategy(dialect: str) -> DatabaseStrategy:
    """Shared strategy instance for a driver name."""
    return get_strategy_class(dialect)()


def get_db_strategy(cn) -> DatabaseStrategy:
    """Strategy for the dialect an engine or connection speaks."""
    return get_strategy(get_dialect_name(cn))
