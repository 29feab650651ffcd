"""
Lockstep server: relation registry, per-table schema cache and query entry point.

The registry of relation names and each table's column type map are loaded
lazily on first use, under separate locks, and kept until `reset()` is
called. A load is remembered only when it succeeds; a failed load leaves the
state retryable, so the next call queries the catalog again.

Schema changes made in the database after a load are not observed.
"""
import enum
import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self

import sqlalchemy as sa
from lockstep.catalog import describe_relation, list_relations
from lockstep.exceptions import InvalidRelationError
from lockstep.query import ResultSet, StreamingQuery
from lockstep.sink import stream
from lockstep.strategy import get_db_strategy
from lockstep.types import DecodeDescriptor

if TYPE_CHECKING:
    from lockstep.options import LockstepOptions

logger = logging.getLogger(__name__)

__all__ = ['LoadState', 'TableHandle', 'LockstepServer']

_EMPTY_TYPES: Mapping[str, DecodeDescriptor] = MappingProxyType({})


class LoadState(enum.Enum):
    UNLOADED = 'unloaded'
    LOADING = 'loading'
    LOADED = 'loaded'
    FAILED = 'failed'


class TableHandle:
    """One discovered relation and its lazily loaded column type map.
    """

    def __init__(self, server: 'LockstepServer', name: str) -> None:
        self.server = server
        self.name = name
        self.types: Mapping[str, DecodeDescriptor] = _EMPTY_TYPES
        self.state = LoadState.UNLOADED
        self._lock = threading.Lock()  # protects types + state

    @property
    def loaded(self) -> bool:
        return self.state is LoadState.LOADED

    def load_schema(self) -> None:
        """Load the column type map once; concurrent callers wait for the first.

        Raises CatalogError if the describe fails; the handle stays retryable.
        """
        if self.state is LoadState.LOADED:
            return
        with self._lock:
            if self.state is LoadState.LOADED:
                return
            self.state = LoadState.LOADING
            try:
                types = describe_relation(self.server.engine, self.name)
            except Exception:
                self.state = LoadState.FAILED
                raise
            self.types = MappingProxyType(types)
            self.state = LoadState.LOADED
            logger.debug(f'Loaded schema for {self.name}: {sorted(types)}')

    def reset(self) -> None:
        with self._lock:
            self.types = _EMPTY_TYPES
            self.state = LoadState.UNLOADED

    def __repr__(self) -> str:
        return f'TableHandle({self.name!r}, state={self.state.name})'


class LockstepServer:
    """Streams the rows of database tables and views as name-to-value mappings.

    Owns the SQLAlchemy engine for its lifetime. Relation names must come from
    the catalog listing (see `relations()`); they are substituted into the
    fetch statement verbatim.
    """

    def __init__(self, engine: sa.Engine, options: 'LockstepOptions | None' = None) -> None:
        self.engine = engine
        self.options = options
        self.strategy = get_db_strategy(engine)
        self.buffer_size = options.buffer_size if options else 0
        self.poll_interval = options.poll_interval if options else 0.05
        if options is not None:
            self.column_overrides = dict(options.column_overrides)
        else:
            self.column_overrides = {'current_xmin': 'bigint'}
        self.tables: dict[str, TableHandle] = {}
        self.state = LoadState.UNLOADED
        self._lock = threading.Lock()  # protects tables + state

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def loaded(self) -> bool:
        return self.state is LoadState.LOADED

    def ensure_relations_loaded(self) -> dict[str, TableHandle]:
        """Populate the relation registry from the catalog once.

        Returns the registry as loaded. `reset()` installs a new registry
        rather than emptying this one, so the returned mapping stays
        complete for the caller. Raises CatalogError on failure and leaves
        the registry retryable.
        """
        with self._lock:
            if self.state is LoadState.LOADED:
                return self.tables
            self.state = LoadState.LOADING
            try:
                names = list_relations(self.engine)
            except Exception:
                self.state = LoadState.FAILED
                raise
            self.tables = {name: TableHandle(self, name) for name in names}
            self.state = LoadState.LOADED
            logger.debug(f'Loaded {len(names)} relations')
            return self.tables

    def ensure_schema_loaded(self, table: TableHandle) -> None:
        """Load a table's column types; independent of other tables' loads.
        """
        table.load_schema()

    def relations(self) -> list[str]:
        """Return the registry's relation names in ascending order.
        """
        return list(self.ensure_relations_loaded())

    def table(self, name: str) -> TableHandle:
        """Return the handle for a relation, raising InvalidRelationError if unknown.
        """
        try:
            return self.ensure_relations_loaded()[name]
        except KeyError:
            raise InvalidRelationError(name) from None

    def describe(self, name: str) -> Mapping[str, DecodeDescriptor]:
        """Return the column type map of a relation, loading it if needed.
        """
        table = self.table(name)
        self.ensure_schema_loaded(table)
        return table.types

    def query(self, name: str, cancel: threading.Event | None = None) -> ResultSet:
        """Start streaming every row of a relation.

        Unknown names and registry or schema load failures raise here and no
        query is started. Anything that goes wrong after that is reported on
        the returned ResultSet's error stream.
        """
        table = self.table(name)
        self.ensure_schema_loaded(table)

        result_set = ResultSet(name, cancel, buffer_size=self.buffer_size,
                               poll_interval=self.poll_interval)
        StreamingQuery(self, table, result_set).start()
        return result_set

    def stream(self, sink: Any, name: str, column: str = 'name') -> int:
        """Write one column of every row of a relation to a sink.
        """
        return stream(self, sink, name, column=column)

    def reset(self) -> None:
        """Forget the registry and every loaded schema; the next call reloads.
        """
        with self._lock:
            for table in self.tables.values():
                table.reset()
            self.tables = {}
            self.state = LoadState.UNLOADED
        logger.debug('Relation registry reset')

    def close(self) -> None:
        """Dispose of the engine's connections.
        """
        self.engine.dispose()
        logger.debug('Lockstep server closed')
