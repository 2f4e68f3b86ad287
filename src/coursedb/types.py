"""
Type handling for database operations.

This module provides:
- TypeConverter: Convert Python values to database-compatible formats
- Column: Column metadata from cursor descriptions
- RowAdapter: Convert database rows to dictionaries
"""
import datetime
import math
from typing import Any, Self

import numpy as np
import pandas as pd

from libb import attrdict

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> float | int | bool | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    return val.item()


class TypeConverter:
    """Universal type conversion for database parameters.

    Values read out of pandas frames or NumPy arrays are turned back into
    plain Python values, and missing markers (NaN, NaT, pd.NA) become None.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


class Column:
    """Database column metadata."""

    def __init__(self, name: str, type_code: Any = None):
        self.name = name
        self.type_code = type_code

    @classmethod
    def from_cursor_description(cls, description_item: Any) -> Self:
        """Create a Column from a DB-API cursor description item.

        psycopg yields Column objects with attributes, sqlite3 yields 7-tuples.
        """
        name = getattr(description_item, 'name', None)
        if name is None:
            name = description_item[0]
        type_code = getattr(description_item, 'type_code', None)
        if type_code is None and not hasattr(description_item, 'name'):
            type_code = description_item[1]
        return cls(name=name, type_code=type_code)

    def __repr__(self) -> str:
        return f'Column(name={self.name!r}, type_code={self.type_code!r})'

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]


def columns_from_cursor_description(cursor: Any) -> list[Column]:
    """Create Column objects from cursor description."""
    if cursor.description is None:
        return []
    return [Column.from_cursor_description(desc) for desc in cursor.description]


class RowAdapter:
    """Simple row adapter for converting database rows to dictionaries."""

    def __init__(self, row: Any):
        self.row = row

    def to_dict(self) -> dict[str, Any]:
        """Convert row to dictionary."""
        # sqlite3.Row
        if hasattr(self.row, 'keys') and callable(self.row.keys):
            return {key: self.row[key] for key in self.row.keys()}  # noqa: SIM118
        if isinstance(self.row, dict):
            return self.row
        if hasattr(self.row, '_asdict'):
            return self.row._asdict()
        return self.row

    def get_value(self, key: str | None = None) -> Any:
        """Get a value from the row, the first column when no key is given."""
        if key is not None:
            return self.row[key]

        if hasattr(self.row, 'keys') and callable(self.row.keys):
            keys = list(self.row.keys())
            if keys:
                return self.row[keys[0]]
        if hasattr(self.row, '__getitem__'):
            return self.row[0]
        return self.row

    def to_attrdict(self) -> attrdict:
        return attrdict(self.to_dict())
