"""
Transaction handling for database operations.

A `Transaction` owns its connection between begin and commit/rollback: the
bare connection refuses to hand out cursors meanwhile, so a statement that
forgets to go through the transaction fails loudly instead of running
outside it.
"""
import enum
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Self, TypeVar

from coursedb import queries
from coursedb.cursor import Cursor
from coursedb.exceptions import TransactionError, translate_errors
from coursedb.mapping import SplitOn

from libb import attrdict

if TYPE_CHECKING:
    from coursedb.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

T = TypeVar('T')


class TransactionState(enum.Enum):
    PENDING = 'pending'
    OPEN = 'open'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Nested transactions on one connection are not supported. Leaving the
    block commits when the transaction is still open, or rolls back when an
    exception escaped.

    Examples
        with transaction(cn) as tx:
            tx.execute('delete from ...', args)
            tx.execute('update from ...', args)
    """

    def __init__(self, cn: 'ConnectionWrapper') -> None:
        self.connection = cn
        self.state = TransactionState.PENDING

    def __repr__(self) -> str:
        return f'<Transaction {self.state.value} on {self.connection!r}>'

    @property
    def options(self) -> Any:
        return self.connection.options

    @property
    def dialect(self) -> str:
        return self.connection.dialect

    @property
    def strategy(self) -> Any:
        return self.connection.strategy

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN

    def _require_open(self) -> None:
        if self.state is not TransactionState.OPEN:
            raise TransactionError(f'Transaction is {self.state.value}, not open')

    @translate_errors
    def begin(self) -> Self:
        """Open the transaction on the connection.

        Raises
            TransactionError: If this handle was already used, or another
            transaction is open on the connection
        """
        if self.state is not TransactionState.PENDING:
            raise TransactionError(f'Transaction is {self.state.value}, cannot begin again')
        if isinstance(self.connection, Transaction) or self.connection.active_transaction is not None:
            raise TransactionError('Nested transactions are not supported')

        self.connection.strategy.begin(self.connection.driver_connection)
        self.connection.active_transaction = self
        self.state = TransactionState.OPEN
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    @translate_errors
    def commit(self) -> None:
        """Commit and close the transaction.
        """
        self._require_open()
        try:
            self.connection.driver_connection.commit()
            self.state = TransactionState.COMMITTED
            logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            self._release()

    @translate_errors
    def rollback(self) -> None:
        """Roll back and close the transaction.
        """
        self._require_open()
        try:
            self.connection.driver_connection.rollback()
            logger.warning('Rolling back the current transaction')
        finally:
            self.state = TransactionState.ROLLED_BACK
            self._release()

    def _release(self) -> None:
        self.connection.active_transaction = None
        try:
            if self.state is TransactionState.OPEN:
                # commit failed; leave no half-finished transaction behind
                self.state = TransactionState.ROLLED_BACK
                self.connection.driver_connection.rollback()
        finally:
            self.connection.strategy.end(self.connection.driver_connection)
        logger.debug(f'Transaction cleanup complete for connection {id(self.connection)}')

    def __enter__(self) -> Self:
        return self.begin()

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if not self.is_open:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    def cursor(self, tuple_rows: bool = False) -> Cursor:
        """Cursor on the transaction's connection.
        """
        self._require_open()
        return self.connection._open_cursor(tuple_rows)

    def addcall(self, elapsed: float) -> None:
        self.connection.addcall(elapsed)

    def execute(self, sql: str, *args: Any) -> int:
        """Execute SQL within transaction context"""
        return queries.execute(self, sql, *args)

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        """Execute SELECT query within transaction context"""
        return queries.select(self, sql, *args, **kwargs)

    def select_many(self, sql: str, *args: Any, **kwargs: Any) -> list[Any]:
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
        return queries.query(self, cls, sql, *args)

    def query_row(self, cls: type[T], sql: str, *args: Any) -> T:
        return queries.query_row(self, cls, sql, *args)

    def query_row_or_none(self, cls: type[T], sql: str, *args: Any) -> T | None:
        return queries.query_row_or_none(self, cls, sql, *args)

    def query_split(self, types: Sequence[type], sql: str, *args: Any,
                    split_on: SplitOn = 'Id',
                    combine: Callable[..., T] | None = None) -> list:
        return queries.query_split(self, types, sql, *args, split_on=split_on, combine=combine)

    def query_multiple(self, types: Sequence[type | Sequence[type]], sql: str, *args: Any,
                       split_on: SplitOn = 'Id',
                       combine: Callable[..., Any] | None = None) -> tuple[list, ...]:
        return queries.query_multiple(self, types, sql, *args, split_on=split_on, combine=combine)

    def call_procedure(self, name: str, **params: Any) -> int:
        return queries.call_procedure(self, name, **params)

    def query_procedure(self, cls: type[T], name: str, **params: Any) -> list[T]:
        return queries.query_procedure(self, cls, name, **params)
