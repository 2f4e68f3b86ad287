"""
Course catalog data access: a micro-ORM over PostgreSQL and SQLite.

All query operations can be called either as:
- Module functions: db.select(cn, sql, *args)
- ConnectionWrapper or Transaction methods: cn.select(sql, *args)
"""
__version__ = '0.1.0'

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from coursedb.connection import ConnectionWrapper, connect
from coursedb.exceptions import ConnectionFailure, DatabaseError
from coursedb.exceptions import DbConnectionError, IntegrityError
from coursedb.exceptions import IntegrityViolationError, NotFoundError
from coursedb.exceptions import ProgrammingError, QueryError
from coursedb.exceptions import TransactionError, ValidationError
from coursedb.mapping import SplitOn, relation
from coursedb.options import DatabaseOptions, SchemaNames
from coursedb.transaction import Transaction
from coursedb.transaction import Transaction as transaction
from coursedb.transaction import TransactionState

T = TypeVar('T')


def execute(cn: Any, sql: str, *args: Any) -> int:
    """Execute a SQL statement and return affected row count.
    """
    return cn.execute(sql, *args)


def select(cn: Any, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a SELECT query.
    """
    return cn.select(sql, *args, **kwargs)


def select_many(cn: Any, sql: str, *args: Any, **kwargs: Any) -> list[Any]:
    """Execute a batch and return its result sets in order.
    """
    return cn.select_many(sql, *args, **kwargs)


def select_column(cn: Any, sql: str, *args: Any) -> list[Any]:
    """Execute a query and return a single column as a list.
    """
    return cn.select_column(sql, *args)


def select_row(cn: Any, sql: str, *args: Any) -> Any:
    """Execute a query and return a single row.

    Raises NotFoundError for zero rows and ValidationError for several.
    """
    return cn.select_row(sql, *args)


def select_row_or_none(cn: Any, sql: str, *args: Any) -> Any | None:
    return cn.select_row_or_none(sql, *args)


def select_scalar(cn: Any, sql: str, *args: Any) -> Any:
    return cn.select_scalar(sql, *args)


def select_scalar_or_none(cn: Any, sql: str, *args: Any) -> Any | None:
    return cn.select_scalar_or_none(sql, *args)


def query(cn: Any, cls: type[T], sql: str, *args: Any) -> list[T]:
    """Execute a query and map every row to `cls`.
    """
    return cn.query(cls, sql, *args)


def query_row(cn: Any, cls: type[T], sql: str, *args: Any) -> T:
    return cn.query_row(cls, sql, *args)


def query_row_or_none(cn: Any, cls: type[T], sql: str, *args: Any) -> T | None:
    return cn.query_row_or_none(cls, sql, *args)


def query_split(cn: Any, types: Sequence[type], sql: str, *args: Any,
                split_on: SplitOn = 'Id',
                combine: Callable[..., T] | None = None) -> list:
    """Execute a joined query and map each row to one object per type.
    """
    return cn.query_split(types, sql, *args, split_on=split_on, combine=combine)


def query_multiple(cn: Any, types: Sequence[type | Sequence[type]], sql: str, *args: Any,
                   split_on: SplitOn = 'Id',
                   combine: Callable[..., Any] | None = None) -> tuple[list, ...]:
    """Execute a batch and map each result set to its type, or split it
    into one object per type when the entry is itself a sequence of types.
    """
    return cn.query_multiple(types, sql, *args, split_on=split_on, combine=combine)


def call_procedure(cn: Any, name: str, **params: Any) -> int:
    return cn.call_procedure(name, **params)


def query_procedure(cn: Any, cls: type[T], name: str, **params: Any) -> list[T]:
    return cn.query_procedure(cls, name, **params)


__all__ = [
    'connect',
    'ConnectionWrapper',
    'transaction',
    'Transaction',
    'TransactionState',
    'DatabaseOptions',
    'SchemaNames',
    'relation',
    'execute',
    'select',
    'select_many',
    'select_column',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'select_scalar_or_none',
    'query',
    'query_row',
    'query_row_or_none',
    'query_split',
    'query_multiple',
    'call_procedure',
    'query_procedure',
    'IntegrityError',
    'ProgrammingError',
    'DbConnectionError',
    'ConnectionFailure',
    'ValidationError',
    'DatabaseError',
    'IntegrityViolationError',
    'NotFoundError',
    'QueryError',
    'TransactionError',
]
