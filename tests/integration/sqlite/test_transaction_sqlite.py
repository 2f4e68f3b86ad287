import sqlite3

import coursedb as db
import pytest
from coursedb import catalog
from coursedb.connection import ConnectionWrapper
from coursedb.exceptions import IntegrityViolationError, QueryError, TransactionError
from coursedb.strategy import SQLiteStrategy
from coursedb.transaction import Transaction
from coursedb.transaction import TransactionState


def test_create_and_rollback_leaves_no_row(sqlite_conn, make_category):
    """Insert inside a transaction, roll back, the row is gone"""
    category = make_category()

    assert catalog.create_category_and_rollback(sqlite_conn, category) == 1
    assert catalog.get_category(sqlite_conn, category.id) is None


def test_transaction_commit_persists(sqlite_options, make_category):
    """Leaving the block commits; a second connection sees the row"""
    category = make_category()

    with db.connect(sqlite_options) as cn:
        with db.transaction(cn) as tx:
            catalog.create_category(tx, category)
            assert tx.state is TransactionState.OPEN
        assert tx.state is TransactionState.COMMITTED

    with db.connect(sqlite_options) as cn:
        assert catalog.get_category(cn, category.id) == category


def test_transaction_rolls_back_on_error(sqlite_conn, make_category):
    """An exception escaping the block rolls back everything in it"""
    first, second = make_category('First'), make_category('Second')

    with pytest.raises(IntegrityViolationError):
        with db.transaction(sqlite_conn) as tx:
            catalog.create_category(tx, first)
            catalog.create_category(tx, second)
            catalog.create_category(tx, first)

    assert tx.state is TransactionState.ROLLED_BACK
    assert catalog.get_category(sqlite_conn, first.id) is None
    assert catalog.get_category(sqlite_conn, second.id) is None


def test_reads_inside_transaction_see_uncommitted_rows(sqlite_conn, make_category):
    category = make_category()
    with db.transaction(sqlite_conn) as tx:
        catalog.create_category(tx, category)
        assert catalog.get_category(tx, category.id) == category
        tx.rollback()


def test_bare_connection_refused_while_transaction_open(sqlite_conn, make_category):
    """Forgetting to pass the transaction fails instead of running outside it"""
    with db.transaction(sqlite_conn):
        with pytest.raises(TransactionError):
            catalog.create_category(sqlite_conn, make_category())
        with pytest.raises(TransactionError):
            catalog.list_categories(sqlite_conn)

    assert catalog.list_categories(sqlite_conn)


def test_nested_transaction_rejected(sqlite_conn):
    with db.transaction(sqlite_conn):
        with pytest.raises(TransactionError, match='Nested'):
            sqlite_conn.transaction().begin()


def test_closed_handle_rejected(sqlite_conn, make_category):
    with db.transaction(sqlite_conn) as tx:
        pass

    with pytest.raises(TransactionError):
        catalog.create_category(tx, make_category())
    with pytest.raises(TransactionError):
        tx.commit()
    with pytest.raises(TransactionError):
        tx.begin()


def test_explicit_commit_inside_block(sqlite_conn, make_category):
    category = make_category()
    with db.transaction(sqlite_conn) as tx:
        catalog.create_category(tx, category)
        tx.commit()
        assert not tx.is_open

    assert catalog.get_category(sqlite_conn, category.id) == category


def test_close_with_open_transaction_rolls_back(sqlite_options, make_category):
    category = make_category()
    cn = db.connect(sqlite_options)
    tx = db.transaction(cn).begin()
    catalog.create_category(tx, category)
    cn.close()

    assert tx.state is TransactionState.ROLLED_BACK
    with db.connect(sqlite_options) as cn:
        assert catalog.get_category(cn, category.id) is None


def test_close_releases_connection_when_rollback_fails(sqlite_options, monkeypatch):
    cn = db.connect(sqlite_options)
    db.transaction(cn).begin()

    def failing_rollback(self):
        raise QueryError('rollback failed')

    monkeypatch.setattr(Transaction, 'rollback', failing_rollback)
    with pytest.raises(QueryError):
        cn.close()
    assert cn.closed


class _BrokenDriverConnection:
    """Driver connection whose commit and rollback both fail"""

    def commit(self):
        raise sqlite3.OperationalError('disk I/O error')

    def rollback(self):
        raise sqlite3.OperationalError('disk I/O error')


def test_failed_commit_still_restores_connection(sqlite_conn, monkeypatch):
    tx = db.transaction(sqlite_conn).begin()
    restored = []
    monkeypatch.setattr(SQLiteStrategy, 'end', lambda self, raw_conn: restored.append(raw_conn))
    monkeypatch.setattr(ConnectionWrapper, 'driver_connection', property(lambda self: _BrokenDriverConnection()))

    with pytest.raises(QueryError):
        tx.commit()

    assert len(restored) == 1
    assert tx.state is TransactionState.ROLLED_BACK
    assert sqlite_conn.active_transaction is None


def test_rollback_routine_inside_transaction_is_nested(sqlite_conn, make_category):
    category = make_category()
    with db.transaction(sqlite_conn) as tx:
        with pytest.raises(TransactionError, match='Nested'):
            catalog.create_category_and_rollback(tx, category)
        tx.rollback()
    assert catalog.get_category(sqlite_conn, category.id) is None
