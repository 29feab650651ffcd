"""
Streaming query execution.

A lockstep query reads every row of one relation on its own thread and
publishes decoded rows to the caller as they are fetched:

    NOT_STARTED -> SCHEMA_ENSURING -> QUERYING -> STREAMING
        -> COMPLETED | FAILED | CANCELLED

Every terminal state closes both streams of the `ResultSet` exactly once.
Failures are published on the error stream before it closes; cancellation
is not an error. Rows already published are final.
"""
import enum
import logging
import threading
import weakref
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from lockstep.channel import Channel
from lockstep.exceptions import LockstepError, QueryError
from lockstep.exceptions import TypeConversionError
from lockstep.types import DecodeDescriptor, DecodeSlot, extract, new_slot
from lockstep.types import resolve_type

if TYPE_CHECKING:
    from lockstep.server import LockstepServer, TableHandle

logger = logging.getLogger(__name__)

__all__ = ['QueryState', 'ResultSet', 'StreamingQuery']

Row = dict[str, Any]


class QueryState(enum.Enum):
    NOT_STARTED = 'not_started'
    SCHEMA_ENSURING = 'schema_ensuring'
    QUERYING = 'querying'
    STREAMING = 'streaming'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def terminal(self) -> bool:
        return self in {QueryState.COMPLETED, QueryState.FAILED, QueryState.CANCELLED}


def _cancel_unfinished(cancel_event: threading.Event, done: threading.Event) -> None:
    if not done.is_set():
        cancel_event.set()


class ResultSet:
    """Caller's handle on a running lockstep query.

    `results` yields decoded rows until the query ends; `errors` yields at
    most one error. Both are `Channel` objects and end iteration when the
    executor closes them. Call `cancel()` to stop the query early. A
    ResultSet that is garbage collected before its query ends cancels it.

    Typical use:

        rs = server.query('domains')
        for row in rs.results:
            ...
        for err in rs.errors:
            raise err
    """

    def __init__(self, relation: str, cancel: threading.Event | None = None,
                 buffer_size: int = 0, poll_interval: float = 0.05) -> None:
        self.relation = relation
        self.cancel_event = cancel if cancel is not None else threading.Event()
        self.results = Channel(buffer_size, cancel=self.cancel_event,
                               poll_interval=poll_interval)
        self.errors = Channel(1, poll_interval=poll_interval)
        self.state = QueryState.NOT_STARTED
        self._error: LockstepError | None = None
        self._done = threading.Event()
        weakref.finalize(self, _cancel_unfinished, self.cancel_event, self._done)

    def cancel(self) -> None:
        """Ask the executor to stop at the next row boundary.
        """
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the executor to reach a terminal state.
        """
        return self._done.wait(timeout)

    def error(self) -> LockstepError | None:
        """Return the error the query failed with, if any.
        """
        return self._error

    def rows(self) -> Iterator[Row]:
        """Yield every row, then raise the query's error if it failed.

        Leaving the loop early cancels the query.
        """
        finished = False
        try:
            yield from self.results
            finished = True
        finally:
            if not finished:
                self.cancel()
        self.join()
        if self._error is not None:
            raise self._error

    __iter__ = rows

    def __enter__(self) -> 'ResultSet':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.done:
            self.cancel()
        self.join()

    def __repr__(self) -> str:
        return f'ResultSet({self.relation!r}, state={self.state.name})'


class StreamingQuery:
    """Executor that fetches one relation and feeds a ResultSet.

    Only a weak reference to the ResultSet is held. The executor shares its
    streams and events directly, so a ResultSet that is garbage collected
    before the query ends cancels the query and releases its connection.
    """

    def __init__(self, server: 'LockstepServer', table: 'TableHandle',
                 result_set: ResultSet) -> None:
        self.server = server
        self.table = table
        self.results = result_set.results
        self.errors = result_set.errors
        self.cancel_event = result_set.cancel_event
        self.state = result_set.state
        self._done = result_set._done
        self._result_set = weakref.ref(result_set)
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, daemon=True,
                                        name=f'lockstep-{self.table.name}')
        self._thread.start()
        return self._thread

    def _transition(self, state: QueryState) -> None:
        logger.debug(f'Lockstep query {self.table.name}: {self.state.name} -> {state.name}')
        self.state = state
        result_set = self._result_set()
        if result_set is not None:
            result_set.state = state

    def _fail(self, err: LockstepError) -> None:
        logger.error(f'Lockstep query {self.table.name} failed: {err}')
        result_set = self._result_set()
        if result_set is not None:
            result_set._error = err
        self._transition(QueryState.FAILED)
        self.errors.put(err)

    def run(self) -> None:
        name = self.table.name
        try:
            self._execute()
        except LockstepError as err:
            self._fail(err)
        except sa.exc.SQLAlchemyError as err:
            wrapped = QueryError(f'Error fetching {name}: {err}')
            wrapped.__cause__ = err
            self._fail(wrapped)
        except Exception as err:
            wrapped = QueryError(f'Unexpected error in lockstep query on {name}: {err!r}')
            wrapped.__cause__ = err
            self._fail(wrapped)
        finally:
            self.results.close()
            self.errors.close()
            self._done.set()

    def _slot_for(self, column: str) -> DecodeSlot:
        override = self.server.column_overrides.get(column)
        if override is not None:
            return new_slot(resolve_type(override))
        descriptor = self.table.types.get(column)
        if descriptor is None:
            logger.warning(f'Column {column} of {self.table.name} missing from cached schema, decoding as text')
            descriptor = DecodeDescriptor.FALLBACK_TEXT
        return new_slot(descriptor)

    def _execute(self) -> None:
        name = self.table.name

        self._transition(QueryState.SCHEMA_ENSURING)
        self.server.ensure_schema_loaded(self.table)

        if self.cancel_event.is_set():
            self._transition(QueryState.CANCELLED)
            return

        self._transition(QueryState.QUERYING)
        sql = self.server.strategy.select_all_sql(name)
        with self.server.engine.connect() as conn:
            try:
                result = conn.execution_options(stream_results=True).execute(sa.text(sql))
            except sa.exc.SQLAlchemyError as err:
                raise QueryError(f'Error starting lockstep query on {name}: {err}') from err

            try:
                columns = [column.lower() for column in result.keys()]
                slots = [self._slot_for(column) for column in columns]
                self._transition(QueryState.STREAMING)

                for raw in result:
                    for column, slot, value in zip(columns, slots, raw):
                        try:
                            slot.fill(value)
                        except TypeConversionError as err:
                            raise TypeConversionError(f'Error in scan of {name}.{column}: {err}') from err

                    if self.cancel_event.is_set():
                        self._transition(QueryState.CANCELLED)
                        return

                    row = {column: extract(slot) for column, slot in zip(columns, slots)}
                    if not self.results.put(row):
                        self._transition(QueryState.CANCELLED)
                        return
            finally:
                result.close()

        self._transition(QueryState.COMPLETED)
