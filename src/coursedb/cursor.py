"""
Database cursor wrapper for PostgreSQL and SQLite.

Implements the parts of the Python DB-API 2.0 specification (PEP-249) the
query layer needs, adding SQL logging, timing, placeholder conversion and
error translation.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any

from coursedb.exceptions import ValidationError, translate_errors
from coursedb.sql import count_positional, placeholder_names, split_statements
from coursedb.types import Column, RowAdapter, columns_from_cursor_description

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(self, operation, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.connwrapper.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Cursor wrapper shared by all dialects.

    Uses the strategy pattern to handle dialect-specific behaviors like
    placeholder conversion (%s vs ?) automatically.
    """

    def __init__(self, cursor: Any, connection_wrapper: Any, strategy: Any) -> None:
        """Initialize cursor wrapper.

        Args:
            cursor: The underlying database cursor
            connection_wrapper: The connection wrapper that created this cursor
            strategy: Database strategy of the connection
        """
        self.dbapi_cursor = cursor
        self.connwrapper = connection_wrapper
        self.strategy = strategy

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    def __enter__(self) -> 'Cursor':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def description(self) -> list[tuple] | None:
        """Column descriptions for last query."""
        return self.dbapi_cursor.description

    @property
    def rowcount(self) -> int:
        """Number of rows produced/affected by last operation."""
        return self.dbapi_cursor.rowcount

    def close(self) -> None:
        """Close cursor."""
        self.dbapi_cursor.close()

    @translate_errors
    def fetchall(self) -> list[Any]:
        """Fetch all remaining rows."""
        return self.dbapi_cursor.fetchall()

    @dumpsql
    @translate_errors
    def execute(self, operation: str, args: tuple | dict | None = None) -> int:
        """Execute a single statement and return the driver's row count.

        `operation` uses pyformat placeholders; they are converted to the
        dialect's style here.
        """
        operation = self.strategy.standardize_sql(operation)
        if args:
            self.dbapi_cursor.execute(operation, args)
        else:
            self.dbapi_cursor.execute(operation)
        return self.dbapi_cursor.rowcount

    def execute_batch(self, operation: str, args: tuple | dict | None = None) -> Iterator[None]:
        """Execute each statement of a batch in order on this cursor.

        Yields after every statement so the caller can consume that
        statement's result set before the next one runs. Named parameters are
        shared by all statements; positional parameters are consumed in order.
        """
        statements = split_statements(operation)

        if isinstance(args, dict) or not args:
            for stmt in statements:
                if args:
                    self.execute(stmt, {name: args[name] for name in placeholder_names(stmt)})
                else:
                    self.execute(stmt)
                yield
            return

        placeholder_count = sum(count_positional(stmt) for stmt in statements)
        if len(args) != placeholder_count:
            raise ValidationError(
                f'Parameter count mismatch: SQL needs {placeholder_count} '
                f'but {len(args)} were provided'
            )

        param_index = 0
        for stmt in statements:
            count = count_positional(stmt)
            self.execute(stmt, tuple(args[param_index:param_index + count]))
            param_index += count
            yield


def extract_column_info(cursor: Cursor) -> list[Column]:
    """Extract column information from the cursor description."""
    return columns_from_cursor_description(cursor)


def load_data(cursor: Cursor, columns: list[Column] | None = None,
              **kwargs: Any) -> Any:
    """Data loader callable that processes cursor results into the configured format."""
    if columns is None:
        columns = extract_column_info(cursor)

    data_loader = cursor.connwrapper.options.data_loader

    if cursor.description is None:
        return data_loader([], columns, **kwargs)

    data = [RowAdapter(row).to_dict() for row in cursor.fetchall()]
    return data_loader(data, columns, **kwargs)
