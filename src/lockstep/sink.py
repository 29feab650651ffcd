"""
Convenience helper writing one column of a relation to an output sink.
"""
import logging
import threading
from typing import TYPE_CHECKING, Any

from lockstep.exceptions import ValidationError

if TYPE_CHECKING:
    from lockstep.server import LockstepServer

logger = logging.getLogger(__name__)

__all__ = ['stream']


def stream(server: 'LockstepServer', sink: Any, name: str, column: str = 'name') -> int:
    """Stream a relation and write `column` of every row to `sink` as text.

    `sink` needs a `write(str)` method. A failing write cancels the query and
    the write's exception is raised. NULL values are written as ''. If the
    query itself fails, its error is raised after the rows already written.

    Returns the number of rows written.
    """
    cancel = threading.Event()
    result_set = server.query(name, cancel)
    written = 0
    try:
        for row in result_set.results:
            if column not in row:
                raise ValidationError(f'relation {name!r} has no column {column!r}')
            value = row[column]
            sink.write('' if value is None else str(value))
            written += 1
    except BaseException:
        cancel.set()
        raise

    result_set.join()
    err = result_set.error()
    if err is not None:
        raise err
    logger.debug(f'Streamed {written} rows of {name}.{column}')
    return written
