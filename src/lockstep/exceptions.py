"""
Lockstep-specific exception classes.
"""
import sqlite3

import psycopg
import sqlalchemy.exc


class LockstepError(Exception):
    """Base class for all lockstep errors.
    """


class ConnectionFailure(LockstepError):
    """Error establishing the database connection.
    """


class CatalogError(LockstepError):
    """Error reading relation names or column types from the metadata catalog.
    """


class ValidationError(LockstepError):
    """Error in input validation.
    """


class InvalidRelationError(ValidationError):
    """Relation name is not present in the loaded registry.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f'invalid relation name: {name!r}')
        self.name = name


class QueryError(LockstepError):
    """Error starting the row fetch of a relation.
    """


class TypeConversionError(LockstepError):
    """Error decoding a fetched value into its column's decode target.
    """


class ChannelClosed(LockstepError):
    """Publish attempted on a closed result or error stream.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sqlalchemy.exc.OperationalError,
    sqlalchemy.exc.InterfaceError,
    ConnectionFailure,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    sqlalchemy.exc.DBAPIError,
    QueryError,
    )
