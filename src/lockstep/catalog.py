"""
Metadata catalog queries.

Reads relation names and per-relation column types from the database's
catalog. The SQL comes from the dialect strategy; the results are shaped
here:

- relation names are kept as reported and sorted ascending
- column names are lower-cased so downstream lookups are case-insensitive
- reported type names are resolved to decode descriptors

No retries: failures are raised as CatalogError and the caller decides.
"""
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import sqlalchemy as sa
from lockstep.exceptions import CatalogError
from lockstep.strategy import get_db_strategy
from lockstep.types import DecodeDescriptor, resolve_type

logger = logging.getLogger(__name__)

__all__ = ['list_relations', 'describe_relation']


@contextmanager
def _bound_connection(bind: sa.Engine | sa.Connection) -> Iterator[sa.Connection]:
    """Yield a connection for an engine (checked out for the block) or a connection.
    """
    if isinstance(bind, sa.Engine):
        with bind.connect() as conn:
            yield conn
    else:
        yield bind


def list_relations(bind: sa.Engine | sa.Connection) -> list[str]:
    """Return the sorted table and view names of the default schema.
    """
    strategy = get_db_strategy(bind)
    try:
        with _bound_connection(bind) as conn:
            names = [row[0] for row in conn.execute(sa.text(strategy.list_relations_sql()))]
    except sa.exc.SQLAlchemyError as err:
        raise CatalogError(f'Error listing relations: {err}') from err

    names.sort()
    logger.debug(f'Catalog lists {len(names)} relations')
    return names


def _column_entry(row: Any) -> tuple[str, str]:
    column_name, data_type = row[0], row[1]
    return column_name.lower(), data_type


def describe_relation(bind: sa.Engine | sa.Connection, name: str) -> dict[str, DecodeDescriptor]:
    """Return the column type map of a relation, keyed by lower-cased column name.

    Raises CatalogError naming the relation if the catalog query fails or a
    catalog row cannot be read.
    """
    strategy = get_db_strategy(bind)
    types: dict[str, DecodeDescriptor] = {}
    try:
        with _bound_connection(bind) as conn:
            for row in conn.execute(sa.text(strategy.describe_relation_sql(name))):
                try:
                    column_name, data_type = _column_entry(row)
                except (AttributeError, IndexError, TypeError) as err:
                    raise CatalogError(f'Error describing relation {name}: {err}') from err
                types[column_name] = resolve_type(strategy.normalize_type(data_type))
    except sa.exc.SQLAlchemyError as err:
        raise CatalogError(f'Error describing relation {name}: {err}') from err

    logger.debug(f'Described {name}: {len(types)} columns')
    return types
