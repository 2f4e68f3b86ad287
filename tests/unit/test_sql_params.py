"""Tests for SQL parameter processing: IN expansion, placeholder styles,
batch splitting and LIKE patterns.
"""
import numpy as np
import pandas as pd
import pytest
from coursedb.exceptions import ValidationError
from coursedb.sql import like_pattern, placeholder_names, prepare_query
from coursedb.sql import process_sql_params, split_statements
from coursedb.sql import quote_identifier, standardize_placeholders, validate_identifier


class TestNamedInClause:
    """Sequence-valued named parameters expand to one placeholder per value."""

    def test_expands_to_sized_placeholder_list(self):
        sql, args = process_sql_params(
            'SELECT * FROM Category WHERE Id IN %(ids)s', {'ids': ['a', 'b', 'c']})
        assert sql == 'SELECT * FROM Category WHERE Id IN (%(ids_0)s, %(ids_1)s, %(ids_2)s)'
        assert args == {'ids_0': 'a', 'ids_1': 'b', 'ids_2': 'c'}

    def test_existing_parentheses_are_kept(self):
        sql, args = process_sql_params(
            'SELECT * FROM Category WHERE Id IN (%(ids)s)', {'ids': ('a', 'b')})
        assert sql == 'SELECT * FROM Category WHERE Id IN (%(ids_0)s, %(ids_1)s)'
        assert args == {'ids_0': 'a', 'ids_1': 'b'}

    def test_single_value(self):
        sql, args = process_sql_params('SELECT 1 WHERE x IN %(ids)s', {'ids': ['only']})
        assert sql == 'SELECT 1 WHERE x IN (%(ids_0)s)'
        assert args == {'ids_0': 'only'}

    def test_other_named_values_pass_through(self):
        sql, args = process_sql_params(
            'SELECT * FROM Course WHERE CategoryId IN %(ids)s AND Level = %(level)s',
            {'ids': [1, 2], 'level': 3})
        assert sql.endswith('IN (%(ids_0)s, %(ids_1)s) AND Level = %(level)s')
        assert args == {'ids_0': 1, 'ids_1': 2, 'level': 3}

    @pytest.mark.parametrize('empty', [[], ()])
    def test_empty_sequence_raises(self, empty):
        with pytest.raises(ValidationError, match='empty sequence'):
            process_sql_params('SELECT * FROM Category WHERE Id IN %(ids)s', {'ids': empty})


class TestPositionalInClause:

    def test_expands_positional_sequence(self):
        sql, args = process_sql_params('SELECT * FROM t WHERE id IN %s', ((1, 2, 3),))
        assert sql == 'SELECT * FROM t WHERE id IN (%s, %s, %s)'
        assert args == (1, 2, 3)

    def test_empty_positional_sequence_raises(self):
        with pytest.raises(ValidationError):
            process_sql_params('SELECT * FROM t WHERE id IN %s AND x = %s', ([], 1))


class TestParameterValidation:

    def test_missing_named_value(self):
        with pytest.raises(ValidationError, match='title'):
            process_sql_params('UPDATE t SET a = %(title)s WHERE id = %(id)s', {'id': 1})

    def test_named_placeholder_with_positional_args(self):
        with pytest.raises(ValidationError):
            process_sql_params('SELECT * FROM t WHERE id = %(id)s', (1, 2))

    def test_no_args_leaves_sql_untouched(self):
        sql = "SELECT * FROM t WHERE name LIKE 'a%'"
        assert process_sql_params(sql, ()) == (sql, ())

    def test_percent_in_literal_escaped_for_postgres(self):
        sql, _ = process_sql_params(
            "SELECT * FROM t WHERE a LIKE 'x%' AND id = %(id)s", {'id': 1}, 'postgresql')
        assert "'x%%'" in sql

    def test_percent_in_literal_kept_for_sqlite(self):
        sql, _ = process_sql_params(
            "SELECT * FROM t WHERE a LIKE 'x%' AND id = %(id)s", {'id': 1}, 'sqlite')
        assert "'x%'" in sql


def test_prepare_query_converts_numpy_and_pandas_values():
    _, args = prepare_query(
        'INSERT INTO t VALUES (%(a)s, %(b)s, %(c)s, %(d)s)',
        {'a': np.int64(5), 'b': np.float64('nan'), 'c': np.bool_(True), 'd': pd.NaT},
        'postgresql')
    assert args == {'a': 5, 'b': None, 'c': True, 'd': None}
    assert type(args['a']) is int


class TestStandardizePlaceholders:

    def test_sqlite_named_and_positional(self):
        sql = 'SELECT * FROM t WHERE a = %(a)s AND b = %s'
        assert standardize_placeholders(sql, 'sqlite') == 'SELECT * FROM t WHERE a = :a AND b = ?'

    def test_sqlite_ignores_literals(self):
        sql = "SELECT '%(a)s', %(a)s"
        assert standardize_placeholders(sql, 'sqlite') == "SELECT '%(a)s', :a"

    def test_postgres_unchanged(self):
        sql = 'SELECT * FROM t WHERE a = %(a)s'
        assert standardize_placeholders(sql, 'postgresql') == sql


class TestSplitStatements:

    def test_splits_on_semicolons(self):
        assert split_statements('SELECT 1; SELECT 2;') == ['SELECT 1', 'SELECT 2']

    def test_semicolons_inside_literals_and_dollar_bodies(self):
        sql = "SELECT 'a;b'; CREATE FUNCTION f() AS $$ SELECT 1; $$; SELECT 3"
        assert split_statements(sql) == [
            "SELECT 'a;b'",
            'CREATE FUNCTION f() AS $$ SELECT 1; $$',
            'SELECT 3',
        ]

    def test_placeholder_names_per_statement(self):
        first, second = split_statements('SELECT %(a)s; SELECT %(b)s, %(a)s')
        assert placeholder_names(first) == ['a']
        assert placeholder_names(second) == ['b', 'a']


class TestLikePattern:

    @pytest.mark.parametrize(('fragment', 'mode', 'expected'), [
        ('python', 'contains', '%python%'),
        ('python', 'prefix', 'python%'),
        ('python', 'suffix', '%python'),
        ('100%', 'contains', '%100\\%%'),
        ('snake_case', 'contains', '%snake\\_case%'),
        ('back\\slash', 'contains', '%back\\\\slash%'),
    ])
    def test_wildcards_escaped(self, fragment, mode, expected):
        assert like_pattern(fragment, mode) == expected

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            like_pattern('x', 'anywhere')


@pytest.mark.parametrize('name', ['spDeleteCategory', 'catalog.vwCourses', '_private1'])
def test_valid_identifiers(name):
    assert validate_identifier(name) == name


@pytest.mark.parametrize('name', ['drop table x', 'sp;--', '1abc', 'a.b.c', '', None])
def test_invalid_identifiers(name):
    with pytest.raises(ValidationError):
        validate_identifier(name)


@pytest.mark.parametrize(('dialect', 'name', 'expected'), [
    ('postgresql', 'Order', '"Order"'),
    ('sqlite', 'Order', '"Order"'),
    ('sqlite', 'we"ird', '"we""ird"'),
])
def test_quote_identifier(dialect, name, expected):
    assert quote_identifier(name, dialect) == expected


def test_quote_identifier_unknown_dialect():
    with pytest.raises(ValueError, match='Unknown dialect'):
        quote_identifier('Order', 'oracle')
