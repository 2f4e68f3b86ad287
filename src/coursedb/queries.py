"""
Query operations for database access.

Every function takes `cn`, which is either a `ConnectionWrapper` or an open
`Transaction`; both hand out cursors bound to the same driver connection.
Parameters are bound, never formatted into SQL text: pass positional values
for `%s` placeholders or a single dict for `%(name)s` placeholders.
"""
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from coursedb.cursor import extract_column_info, load_data
from coursedb.exceptions import NotFoundError, ValidationError
from coursedb.mapping import SplitOn, bind, bind_all, bind_columns, find_boundaries
from coursedb.mapping import split_row
from coursedb.options import use_iterdict_data_loader
from coursedb.sql import prepare_query
from coursedb.types import RowAdapter

from libb import attrdict, is_null

T = TypeVar('T')

logger = logging.getLogger(__name__)


def execute(cn: Any, sql: str, *args: Any) -> int:
    """Execute a SQL statement with the given parameters and return affected row count.
    """
    processed_sql, processed_args = prepare_query(sql, args, cn.dialect)
    with cn.cursor() as cursor:
        rowcount = cursor.execute(processed_sql, processed_args)
    logger.debug(f'Executed statement affecting {rowcount} rows')
    return rowcount


def select(cn: Any, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a SELECT query and load the rows with the connection's data loader.
    """
    processed_sql, processed_args = prepare_query(sql, args, cn.dialect)
    with cn.cursor() as cursor:
        cursor.execute(processed_sql, processed_args)
        result = load_data(cursor, **kwargs)
    logger.debug(f'Select query returned {len(result)} rows')
    return result


def select_many(cn: Any, sql: str, *args: Any, **kwargs: Any) -> list[Any]:
    """Execute a batch of statements and return one result per statement.

    Result sets come back in the order the statements appear in the batch;
    each is fully read before the next statement runs.
    """
    processed_sql, processed_args = prepare_query(sql, args, cn.dialect)
    result_sets = []
    with cn.cursor() as cursor:
        for _ in cursor.execute_batch(processed_sql, processed_args):
            columns = extract_column_info(cursor)
            result_sets.append(load_data(cursor, columns=columns, **kwargs))
    logger.debug(f'Batch returned {len(result_sets)} result sets')
    return result_sets


@use_iterdict_data_loader
def select_column(cn: Any, sql: str, *args: Any) -> list[Any]:
    """Execute a query and return the first column as a list.
    """
    data = select(cn, sql, *args)
    return [RowAdapter(row).get_value() for row in data]


@use_iterdict_data_loader
def select_row(cn: Any, sql: str, *args: Any) -> attrdict:
    """Execute a query and return a single row as an attribute dictionary.

    Raises
        NotFoundError: If the query returns no rows
        ValidationError: If the query returns several rows
    """
    data = select(cn, sql, *args)
    if not data:
        raise NotFoundError('Expected one row, got 0')
    if len(data) > 1:
        raise ValidationError(f'Expected one row, got {len(data)}')
    return RowAdapter(data[0]).to_attrdict()


@use_iterdict_data_loader
def select_row_or_none(cn: Any, sql: str, *args: Any) -> attrdict | None:
    """Execute a query and return a single row or None if no rows found.
    """
    data = select(cn, sql, *args)
    if len(data) == 1:
        return RowAdapter(data[0]).to_attrdict()
    if len(data) > 1:
        raise ValidationError(f'Expected at most one row, got {len(data)}')
    return None


def select_scalar(cn: Any, sql: str, *args: Any) -> Any:
    """Execute a query and return a single scalar value.
    """
    return RowAdapter(select_row(cn, sql, *args)).get_value()


def select_scalar_or_none(cn: Any, sql: str, *args: Any) -> Any | None:
    """Execute a query and return a single scalar value or None.
    """
    row = select_row_or_none(cn, sql, *args)
    if row is None:
        return None
    val = RowAdapter(row).get_value()
    return None if is_null(val) else val


@use_iterdict_data_loader
def query(cn: Any, cls: type[T], sql: str, *args: Any) -> list[T]:
    """Execute a query and bind every row to `cls`.
    """
    return bind_all(cls, select(cn, sql, *args))


@use_iterdict_data_loader
def query_row(cn: Any, cls: type[T], sql: str, *args: Any) -> T:
    """Execute a query expected to return exactly one row, bound to `cls`.
    """
    return bind(cls, select_row(cn, sql, *args))


@use_iterdict_data_loader
def query_row_or_none(cn: Any, cls: type[T], sql: str, *args: Any) -> T | None:
    """Execute a query and bind the single row to `cls`, or return None.
    """
    row = select_row_or_none(cn, sql, *args)
    return None if row is None else bind(cls, row)


def _split_rows(types: Sequence[type], columns: Sequence[str], rows: Sequence[Sequence[Any]],
                split_on: SplitOn, combine: Callable[..., Any] | None) -> list:
    boundaries = find_boundaries(columns, split_on, len(types))
    logger.debug(f'Splitting {len(rows)} rows at columns {boundaries}')
    result = []
    for values in rows:
        objects = split_row(types, columns, tuple(values), boundaries)
        result.append(combine(*objects) if combine else objects)
    return result


def query_split(cn: Any, types: Sequence[type], sql: str, *args: Any,
                split_on: SplitOn = 'Id',
                combine: Callable[..., T] | None = None) -> list[T] | list[tuple]:
    """Execute a joined query and split every row into one object per type.

    `split_on` marks where each entity after the first starts (see
    `coursedb.mapping.find_boundaries`). `combine` receives the objects of
    one row and returns the mapped result; without it the tuple of objects is
    returned. Rows are mapped in result-set order.
    """
    if len(types) < 2:
        raise ValidationError('query_split needs at least two types')

    processed_sql, processed_args = prepare_query(sql, args, cn.dialect)
    with cn.cursor(tuple_rows=True) as cursor:
        cursor.execute(processed_sql, processed_args)
        columns = [col.name for col in extract_column_info(cursor)]
        rows = cursor.fetchall()

    return _split_rows(types, columns, rows, split_on, combine)


def query_multiple(cn: Any, types: Sequence[type | Sequence[type]], sql: str, *args: Any,
                   split_on: SplitOn = 'Id',
                   combine: Callable[..., Any] | None = None) -> tuple[list, ...]:
    """Execute a batch and bind each result set to the matching entry of `types`.

    An entry that is itself a sequence of types splits every row of its set
    the way `query_split` does, using `split_on` and `combine`.
    """
    processed_sql, processed_args = prepare_query(sql, args, cn.dialect)
    result_sets = []
    with cn.cursor(tuple_rows=True) as cursor:
        for _ in cursor.execute_batch(processed_sql, processed_args):
            if cursor.description is None:
                result_sets.append(([], []))
                continue
            columns = [col.name for col in extract_column_info(cursor)]
            result_sets.append((columns, cursor.fetchall()))
    logger.debug(f'Batch returned {len(result_sets)} result sets')

    if len(result_sets) != len(types):
        raise ValidationError(f'Batch returned {len(result_sets)} result sets for {len(types)} types')

    mapped = []
    for entry, (columns, rows) in zip(types, result_sets):
        if isinstance(entry, type):
            mapped.append([bind_columns(entry, columns, values) for values in rows])
        else:
            mapped.append(_split_rows(entry, columns, rows, split_on, combine))
    return tuple(mapped)


def call_procedure(cn: Any, name: str, **params: Any) -> int:
    """Run a stored procedure for its side effects.

    Returns the row count reported by the driver, -1 when it reports none.
    """
    sql = cn.strategy.procedure_call_sql(name, list(params))
    return execute(cn, sql, params)


@use_iterdict_data_loader
def query_procedure(cn: Any, cls: type[T], name: str, **params: Any) -> list[T]:
    """Run a stored procedure and bind its result set to `cls`.
    """
    sql = cn.strategy.procedure_query_sql(name, list(params))
    return bind_all(cls, select(cn, sql, params))
