"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class that wraps SQLAlchemy connections with query methods
3. Engine creation and management through a thread-safe registry

SQLAlchemy only manages engines and pooling; statements run on the driver
connection directly, which stays in auto-commit mode unless a `Transaction`
is open on it.
"""
import atexit
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import fields
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from coursedb import queries
from coursedb.cursor import Cursor
from coursedb.exceptions import TransactionError, translate_connect_errors
from coursedb.mapping import SplitOn
from coursedb.options import DatabaseOptions
from coursedb.strategy import DatabaseStrategy, get_strategy
from coursedb.transaction import Transaction
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import attrdict, load_options

__all__ = [
    'ConnectionWrapper',
    'connect',
    'configure_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    if options.drivername == 'sqlite':
        return url_creator(
            drivername='sqlite',
            database=options.database
        )

    elif options.drivername == 'postgresql':
        query_args = {}
        if options.timeout:
            query_args['connect_timeout'] = str(options.timeout)

        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query_args
        )

    raise ValueError(f'Unsupported database type: {options.drivername}')


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.

    Engines are shared between connections with equal options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        url = create_url_from_options(options)
        strategy = get_strategy(options.drivername)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

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


class ConnectionWrapper:
    """Wraps a SQLAlchemy connection object to track calls and execution time

    This class provides a thin wrapper around SQLAlchemy connection objects that:
    1. Tracks query execution counts and timing
    2. Hands out cursors on the driver connection
    3. Supports context manager protocol for explicit resource management
    4. Refuses to run statements while a transaction owns the connection
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.strategy: DatabaseStrategy = get_strategy(options.drivername)
        self.calls = 0
        self.time = 0.0
        self.active_transaction: Transaction | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f'<ConnectionWrapper {self.dialect} {state} calls={self.calls}>'

    @property
    def driver_connection(self) -> Any:
        """The DB-API connection of the underlying driver."""
        return self.sa_connection.connection.driver_connection

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self.strategy.dialect_name

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    def cursor(self, tuple_rows: bool = False) -> Cursor:
        """Get a wrapped cursor for this connection.

        Raises
            TransactionError: If a transaction is open on this connection;
            statements must go through the transaction until it ends
        """
        if self.active_transaction is not None:
            raise TransactionError('Connection is owned by an open transaction, use the transaction handle')
        return self._open_cursor(tuple_rows)

    def _open_cursor(self, tuple_rows: bool = False) -> Cursor:
        if self.closed:
            raise TransactionError('Connection is closed')
        raw = self.strategy.create_cursor(self.driver_connection, tuple_rows=tuple_rows)
        return Cursor(raw, self, self.strategy)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def close(self) -> None:
        """Close the SQLAlchemy connection, rolling back an abandoned transaction.
        """
        if self.closed:
            return
        try:
            if self.active_transaction is not None:
                logger.warning('Closing connection with an open transaction, rolling back')
                self.active_transaction.rollback()
        finally:
            self.sa_connection.close()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')

    def transaction(self) -> Transaction:
        """Create a transaction scope on this connection; begins on enter.
        """
        return Transaction(self)

    def execute(self, sql: str, *args: Any) -> int:
        """Execute a SQL statement and return affected row count.
        """
        return queries.execute(self, sql, *args)

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        """Execute a SELECT query.
        """
        return queries.select(self, sql, *args, **kwargs)

    def select_many(self, sql: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Execute a batch and return its result sets in order.
        """
        return queries.select_many(self, sql, *args, **kwargs)

    def select_column(self, sql: str, *args: Any) -> list[Any]:
        return queries.select_column(self, sql, *args)

    def select_row(self, sql: str, *args: Any) -> attrdict:
        return queries.select_row(self, sql, *args)

    def select_row_or_none(self, sql: str, *args: Any) -> attrdict | None:
        return queries.select_row_or_none(self, sql, *args)

    def select_scalar(self, sql: str, *args: Any) -> Any:
        return queries.select_scalar(self, sql, *args)

    def select_scalar_or_none(self, sql: str, *args: Any) -> Any | None:
        return queries.select_scalar_or_none(self, sql, *args)

    def query(self, cls: type[T], sql: str, *args: Any) -> list[T]:
        """Execute a query and map every row to `cls`.
        """
        return queries.query(self, cls, sql, *args)

    def query_row(self, cls: type[T], sql: str, *args: Any) -> T:
        return queries.query_row(self, cls, sql, *args)

    def query_row_or_none(self, cls: type[T], sql: str, *args: Any) -> T | None:
        return queries.query_row_or_none(self, cls, sql, *args)

    def query_split(self, types: Sequence[type], sql: str, *args: Any,
                    split_on: SplitOn = 'Id',
                    combine: Callable[..., T] | None = None) -> list:
        """Execute a joined query and map each row to several objects.
        """
        return queries.query_split(self, types, sql, *args, split_on=split_on, combine=combine)

    def query_multiple(self, types: Sequence[type | Sequence[type]], sql: str, *args: Any,
                       split_on: SplitOn = 'Id',
                       combine: Callable[..., Any] | None = None) -> tuple[list, ...]:
        """Execute a batch and map each result set to its type.
        """
        return queries.query_multiple(self, types, sql, *args, split_on=split_on, combine=combine)

    def call_procedure(self, name: str, **params: Any) -> int:
        """Run a stored procedure for its side effects.
        """
        return queries.call_procedure(self, name, **params)

    def query_procedure(self, cls: type[T], name: str, **params: Any) -> list[T]:
        """Run a stored procedure and map its result set to `cls`.
        """
        return queries.query_procedure(self, cls, name, **params)


def configure_connection(sa_connection: sa.engine.Connection,
                         strategy: DatabaseStrategy) -> None:
    """Configure a SQLAlchemy connection with database-specific settings.
    """
    strategy.configure_connection(sa_connection.connection.driver_connection)


@load_options(cls=DatabaseOptions)
@translate_connect_errors
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Connection pooling options:
        use_pool: Whether to use connection pooling (default: False)
        pool_max_connections: Maximum connections in pool (default: 5)
        pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
        pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    Returns
        ConnectionWrapper in auto-commit mode

    Raises
        ConnectionFailure: If the database cannot be reached
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = get_engine_for_options(options)
    strategy = get_strategy(options.drivername)

    sa_connection = engine.connect()
    configure_connection(sa_connection, strategy)
    logger.debug(f'Connected to {options.drivername} database {options.database}')

    return ConnectionWrapper(sa_connection, options)
