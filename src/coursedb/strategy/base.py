"""
Base strategy interface for database operations.

Defines the abstract base class that all database-specific strategy implementations
must inherit from. The strategy pattern allows for encapsulating database-specific
behaviors while presenting a consistent interface to the rest of the application.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from coursedb.sql import quote_identifier as sql_quote_identifier
from coursedb.sql import validate_identifier

if TYPE_CHECKING:
    from coursedb.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for database-specific operations.
    """

    supports_procedures = True

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return dialect-specific SQLAlchemy create_engine kwargs.
        """

    @abstractmethod
    def configure_connection(self, conn: Any) -> None:
        """Configure a freshly opened driver connection.

        Leaves the connection in auto-commit mode.
        """

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for the driver connection.
        """

    @abstractmethod
    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for the driver connection.
        """

    @abstractmethod
    def begin(self, raw_conn: Any) -> None:
        """Open a transaction on the driver connection.
        """

    @abstractmethod
    def end(self, raw_conn: Any) -> None:
        """Restore the connection after its transaction was committed or rolled back.
        """

    @abstractmethod
    def create_cursor(self, raw_conn: Any, tuple_rows: bool = False) -> Any:
        """Create a driver cursor.

        Rows come back as mappings keyed by column name unless `tuple_rows`
        is set, in which case they are plain tuples (duplicate column names
        in joined results survive only in that form).
        """

    @abstractmethod
    def standardize_sql(self, sql: str) -> str:
        """Convert pyformat placeholders to the driver's style.
        """

    @abstractmethod
    def procedure_call_sql(self, name: str, params: list[str]) -> str:
        """SQL that runs a stored procedure for its side effects.
        """

    @abstractmethod
    def procedure_query_sql(self, name: str, params: list[str]) -> str:
        """SQL that runs a stored procedure and yields its result set.
        """

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return option names that must be set for this dialect."""

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate that all required options are present.

        Raises
            ValueError: If a required option is missing
        """
        for field in cls.get_required_options():
            if not getattr(options, field, None):
                raise ValueError(f'{field} is required for {options.drivername}')

    def quote_identifier(self, identifier: str) -> str:
        """Quote a table or column name for this dialect.
        """
        return sql_quote_identifier(identifier, self.dialect_name)

    def _named_arguments(self, name: str, params: list[str]) -> str:
        """Render `name(p => %(p)s, ...)` with every value bound by name.
        """
        validate_identifier(name)
        for param in params:
            validate_identifier(param)
        args = ', '.join(f'{param} => %({param})s' for param in params)
        return f'{name}({args})'
