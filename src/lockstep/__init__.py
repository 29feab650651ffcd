"""
Stream the rows of database tables and views without declaring row shapes.

Relation names and column types are discovered from the database catalog at
runtime; every row is decoded into a plain dict using the discovered types.

    server = lockstep.connect('postgresql', config=config)
    for row in server.query('domains'):
        ...
"""
__version__ = '0.1.0'

from lockstep.channel import Channel
from lockstep.connection import connect, dispose_all_engines, open_db
from lockstep.exceptions import CatalogError, ChannelClosed, ConnectionFailure
from lockstep.exceptions import DbConnectionError, InvalidRelationError
from lockstep.exceptions import LockstepError, ProgrammingError, QueryError
from lockstep.exceptions import TypeConversionError, ValidationError
from lockstep.options import LockstepOptions
from lockstep.query import QueryState, ResultSet
from lockstep.server import LoadState, LockstepServer, TableHandle
from lockstep.sink import stream
from lockstep.types import DecodeDescriptor, extract, resolve_type

__all__ = [
    'connect',
    'open_db',
    'dispose_all_engines',
    'LockstepOptions',
    'LockstepServer',
    'TableHandle',
    'LoadState',
    'ResultSet',
    'QueryState',
    'Channel',
    'stream',
    'DecodeDescriptor',
    'resolve_type',
    'extract',
    'LockstepError',
    'ConnectionFailure',
    'CatalogError',
    'ValidationError',
    'InvalidRelationError',
    'QueryError',
    'TypeConversionError',
    'ChannelClosed',
    'DbConnectionError',
    'ProgrammingError',
]
