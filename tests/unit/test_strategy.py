import sqlite3

import pytest
from coursedb.exceptions import QueryError, ValidationError
from coursedb.options import DatabaseOptions
from coursedb.strategy import PostgresStrategy, SQLiteStrategy, get_available_dialects
from coursedb.strategy import get_strategy, is_supported_dialect


def test_registry():
    assert set(get_available_dialects()) == {'sqlite', 'postgresql'}
    assert is_supported_dialect('sqlite')
    assert not is_supported_dialect('mssql')
    assert get_strategy('sqlite') is get_strategy('sqlite')
    assert isinstance(get_strategy('postgresql'), PostgresStrategy)


def test_unknown_dialect():
    with pytest.raises(ValueError, match='Unsupported dialect'):
        get_strategy('oracle')


class TestPostgresStrategy:

    strategy = PostgresStrategy()

    def test_procedure_call_uses_named_arguments(self):
        sql = self.strategy.procedure_call_sql('spDeleteCategory', ['category_id'])
        assert sql == 'CALL spDeleteCategory(category_id => %(category_id)s)'

    def test_procedure_query_selects_from_function(self):
        sql = self.strategy.procedure_query_sql('catalog.spGetCourses', ['category_id', 'level'])
        assert sql == 'SELECT * FROM catalog.spGetCourses(category_id => %(category_id)s, level => %(level)s)'

    def test_procedure_without_params(self):
        assert self.strategy.procedure_call_sql('spRefresh', []) == 'CALL spRefresh()'

    @pytest.mark.parametrize(('name', 'params'), [
        ('sp; DROP TABLE Category', []),
        ('spDelete', ['id) ; --']),
    ])
    def test_invalid_names_rejected(self, name, params):
        with pytest.raises(ValidationError):
            self.strategy.procedure_call_sql(name, params)

    def test_placeholders_unchanged(self):
        assert self.strategy.standardize_sql('SELECT %(a)s') == 'SELECT %(a)s'

    def test_engine_kwargs_application_name(self):
        options = DatabaseOptions(drivername='postgresql', hostname='h', username='u',
                                  password='p', database='d', port=5432, appname='catalog')
        assert self.strategy.get_engine_kwargs(options) == {'connect_args': {'application_name': 'catalog'}}


class TestSQLiteStrategy:

    strategy = SQLiteStrategy()

    def test_procedures_unsupported(self):
        assert not self.strategy.supports_procedures
        with pytest.raises(QueryError):
            self.strategy.procedure_call_sql('spDeleteCategory', ['category_id'])
        with pytest.raises(QueryError):
            self.strategy.procedure_query_sql('spGetCoursesByCategory', ['category_id'])

    def test_placeholders_converted(self):
        assert self.strategy.standardize_sql('SELECT %(a)s, %s') == 'SELECT :a, ?'

    def test_configured_connection_autocommits(self):
        cn = sqlite3.connect(':memory:')
        self.strategy.configure_connection(cn)
        assert cn.isolation_level is None
        assert cn.execute('PRAGMA foreign_keys').fetchone()[0] == 1

        self.strategy.begin(cn)
        assert cn.in_transaction
        cn.rollback()
        assert not cn.in_transaction
        cn.close()

    def test_cursor_row_shapes(self):
        cn = sqlite3.connect(':memory:')
        dict_cursor = self.strategy.create_cursor(cn)
        dict_cursor.execute('SELECT 1 AS Id')
        assert dict_cursor.fetchone()['Id'] == 1

        tuple_cursor = self.strategy.create_cursor(cn, tuple_rows=True)
        tuple_cursor.execute('SELECT 1 AS Id, 2 AS Id')
        assert tuple_cursor.fetchone() == (1, 2)
        cn.close()


@pytest.mark.parametrize('strategy', [PostgresStrategy(), SQLiteStrategy()])
def test_quote_identifier_for_dialect(strategy):
    assert strategy.quote_identifier('Order') == '"Order"'
