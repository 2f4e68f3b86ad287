"""
Database-specific exception classes.

Driver errors are translated into this hierarchy at the cursor and connect
boundaries, so callers only ever need to catch `DatabaseError` subclasses.
"""
import sqlite3
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import psycopg
import sqlalchemy as sa

T = TypeVar('T')


class DatabaseError(Exception):
    """Base class for all coursedb errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.
    """


class IntegrityViolationError(DatabaseError):
    """Database constraint violation error.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class NotFoundError(DatabaseError):
    """Query returned no row where exactly one was expected.
    """


class TransactionError(DatabaseError):
    """Transaction used outside its open state or bypassed.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sa.exc.OperationalError,
    sa.exc.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    IntegrityViolationError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    QueryError,
    )

# sqlite3 reports "no such table" as OperationalError, so only psycopg
# operational errors mean a lost connection once a statement is running.
_ExecutionConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    )


def translate_error(err: Exception) -> DatabaseError:
    """Map a driver exception raised while executing a statement to our hierarchy.
    """
    if isinstance(err, DatabaseError):
        return err
    if isinstance(err, IntegrityError):
        return IntegrityViolationError(str(err))
    if isinstance(err, _ExecutionConnectionError):
        return ConnectionFailure(str(err))
    return QueryError(str(err))


def translate_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Re-raise driver exceptions from `func` as `DatabaseError` subclasses.
    """
    @wraps(func)
    def inner(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except DatabaseError:
            raise
        except (*IntegrityError, *ProgrammingError, *_ExecutionConnectionError,
                sqlite3.Error, psycopg.Error) as err:
            raise translate_error(err) from err
    return inner


def translate_connect_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Re-raise failures while opening a connection as `ConnectionFailure`.
    """
    @wraps(func)
    def inner(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except DatabaseError:
            raise
        except (*DbConnectionError, sqlite3.Error, psycopg.Error, sa.exc.DBAPIError) as err:
            raise ConnectionFailure(str(err)) from err
    return inner
