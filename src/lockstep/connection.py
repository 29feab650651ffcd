"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function returning a `LockstepServer` for a database
2. `open_db()` which builds and verifies the engine for a set of options
3. Engine creation and reuse through a thread-safe registry
"""
import atexit
import logging
import threading
from collections.abc import Callable
from dataclasses import fields
from typing import Any

import sqlalchemy as sa
from lockstep.exceptions import ConnectionFailure
from lockstep.options import LockstepOptions
from lockstep.server import LockstepServer
from lockstep.strategy import get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

__all__ = [
    'connect',
    'open_db',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def get_engine_for_options(options: LockstepOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = strategy.build_connection_url(options)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))
        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_pre_ping'] = True
        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def open_db(options: LockstepOptions, **kwargs: Any) -> Engine:
    """Build the engine for `options` and verify a connection can be opened.

    Raises ConnectionFailure (chaining the driver error) if it cannot.
    """
    engine = get_engine_for_options(options, **kwargs)
    try:
        with engine.connect() as conn:
            conn.execute(sa.text('SELECT 1'))
    except sa.exc.SQLAlchemyError as err:
        logger.critical(f'database_connection_error: {err}',
                        extra={'event': 'database_connection_error'})
        raise ConnectionFailure(f'Could not connect to {options.drivername} database {options.database}: {err}') from err
    return engine


@load_options(cls=LockstepOptions)
def connect(options: LockstepOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> LockstepServer:
    """Connect to a database and return a LockstepServer for it

    Args:
        options: Can be:
                - LockstepOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        LockstepServer owning the engine
    """
    if isinstance(options, LockstepOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=LockstepOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = open_db(options)
    return LockstepServer(engine, options)
