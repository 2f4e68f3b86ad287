"""
PostgreSQL-specific strategy implementation.

Procedures are invoked with named argument notation (`CALL proc(a => %(a)s)`)
so parameter order never matters; read procedures are set-returning functions
selected from like a table.
"""
import logging
from typing import TYPE_CHECKING, Any

from coursedb.strategy.base import DatabaseStrategy, register_strategy
from psycopg.rows import dict_row, tuple_row

if TYPE_CHECKING:
    from coursedb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL."""
        if options.appname:
            return {'connect_args': {'application_name': options.appname}}
        return {}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for PostgreSQL.
        """
        self.enable_autocommit(conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = False

    def begin(self, raw_conn: Any) -> None:
        """psycopg opens the transaction implicitly on the next statement.
        """
        self.disable_autocommit(raw_conn)

    def end(self, raw_conn: Any) -> None:
        """Return the connection to auto-commit mode.
        """
        self.enable_autocommit(raw_conn)

    def create_cursor(self, raw_conn: Any, tuple_rows: bool = False) -> Any:
        """Create a cursor returning dict or tuple rows.
        """
        return raw_conn.cursor(row_factory=tuple_row if tuple_rows else dict_row)

    def standardize_sql(self, sql: str) -> str:
        """psycopg understands pyformat placeholders natively.
        """
        return sql

    def procedure_call_sql(self, name: str, params: list[str]) -> str:
        return f'CALL {self._named_arguments(name, params)}'

    def procedure_query_sql(self, name: str, params: list[str]) -> str:
        return f'SELECT * FROM {self._named_arguments(name, params)}'
