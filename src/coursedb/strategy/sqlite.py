"""
SQLite-specific strategy implementation.

SQLite has no stored procedures, and its driver only runs one statement per
execute call, so batches are always split client-side.
"""
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from coursedb.exceptions import QueryError
from coursedb.sql import standardize_placeholders
from coursedb.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from coursedb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    supports_procedures = False

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        }

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        conn.execute('PRAGMA foreign_keys = ON')
        self.enable_autocommit(conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = None

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = 'DEFERRED'

    def begin(self, raw_conn: Any) -> None:
        """Start an explicit transaction.

        The connection stays in auto-commit mode at the driver level; an
        explicit BEGIN is honored by commit() and rollback().
        """
        raw_conn.execute('BEGIN')

    def end(self, raw_conn: Any) -> None:
        """Nothing to restore, the connection never left auto-commit mode.
        """

    def create_cursor(self, raw_conn: Any, tuple_rows: bool = False) -> Any:
        """Create a cursor returning sqlite3.Row or tuple rows.
        """
        cursor = raw_conn.cursor()
        cursor.row_factory = None if tuple_rows else sqlite3.Row
        return cursor

    def standardize_sql(self, sql: str) -> str:
        """Convert %s and %(name)s placeholders to ? and :name.
        """
        return standardize_placeholders(sql, dialect='sqlite')

    def procedure_call_sql(self, name: str, params: list[str]) -> str:
        raise QueryError(f'SQLite does not support stored procedures (called {name!r})')

    def procedure_query_sql(self, name: str, params: list[str]) -> str:
        raise QueryError(f'SQLite does not support stored procedures (called {name!r})')
