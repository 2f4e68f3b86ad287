import datetime
import sqlite3

import numpy as np
import pandas as pd
import pytest
from coursedb.types import Column, RowAdapter, TypeConverter


@pytest.mark.parametrize(('value', 'expected'), [
    (np.int32(7), 7),
    (np.float32(1.5), 1.5),
    (np.bool_(False), False),
    (float('nan'), None),
    (np.float64('nan'), None),
    (pd.NA, None),
    (pd.NaT, None),
    (np.datetime64('NaT'), None),
    ('text', 'text'),
    (None, None),
])
def test_convert_value(value, expected):
    assert TypeConverter.convert_value(value) == expected


def test_convert_timestamps():
    ts = pd.Timestamp('2024-03-01 10:30')
    assert TypeConverter.convert_value(ts) == datetime.datetime(2024, 3, 1, 10, 30)
    assert TypeConverter.convert_value(np.datetime64('2024-03-01T10:30')) == datetime.datetime(2024, 3, 1, 10, 30)


def test_convert_params_keeps_container_type():
    assert TypeConverter.convert_params((np.int64(1), 'a')) == (1, 'a')
    assert TypeConverter.convert_params([np.int64(1)]) == [1]
    assert TypeConverter.convert_params({'a': np.float64('nan')}) == {'a': None}


def test_column_from_sqlite_description():
    cn = sqlite3.connect(':memory:')
    cursor = cn.execute('SELECT 1 AS Id, 2 AS Title')
    columns = [Column.from_cursor_description(d) for d in cursor.description]
    assert Column.get_names(columns) == ['Id', 'Title']
    cn.close()


def test_row_adapter_sqlite_row():
    cn = sqlite3.connect(':memory:')
    cn.row_factory = sqlite3.Row
    row = cn.execute("SELECT 'x' AS Id, 'y' AS Title").fetchone()
    adapter = RowAdapter(row)
    assert adapter.to_dict() == {'Id': 'x', 'Title': 'y'}
    assert adapter.get_value() == 'x'
    assert adapter.to_attrdict().Title == 'y'
    cn.close()


def test_row_adapter_tuple():
    assert RowAdapter((3, 4)).get_value() == 3
