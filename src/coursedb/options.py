from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Self

import pandas as pd
import sqlalchemy as sa
from coursedb.strategy import get_available_dialects, get_strategy_class
from coursedb.strategy import is_supported_dialect
from coursedb.types import Column

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'SchemaNames',
    'pandas_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]


def use_iterdict_data_loader(func):
    """Temporarily use default dict loader over user-specified loader"""

    @wraps(func)
    def inner(*args, **kwargs):
        cn = args[0]

        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader

        try:
            return func(*args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def pandas_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=Column.get_names(columns))

    return pd.DataFrame.from_records(list(data), columns=Column.get_names(columns))


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    data_loader: Callable[..., Any] | None = None
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader

    @classmethod
    def from_url(cls, url: str, **kw: Any) -> Self:
        """Build options from a SQLAlchemy-style URL.

        >>> DatabaseOptions.from_url('sqlite:///catalog.db').database
        'catalog.db'
        >>> opts = DatabaseOptions.from_url('postgresql+psycopg://u:p@db:5433/courses')
        >>> (opts.drivername, opts.hostname, opts.port, opts.database)
        ('postgresql', 'db', 5433, 'courses')
        """
        parsed = sa.engine.make_url(url)
        params = {
            'drivername': parsed.get_backend_name(),
            'hostname': parsed.host,
            'username': parsed.username,
            'password': parsed.password,
            'database': parsed.database,
            'port': parsed.port or (5432 if parsed.get_backend_name() == 'postgresql' else 0),
        }
        if 'connect_timeout' in parsed.query:
            params['timeout'] = int(parsed.query['connect_timeout'])
        params.update(kw)
        return cls(**params)


@dataclass
class SchemaNames:
    """Names of the schema objects a deployment defines itself.

    The view and the procedures are external to this package; only their
    names and parameter names are assumed.
    """
    course_view: str = 'vwCourses'
    delete_category_procedure: str = 'spDeleteCategory'
    courses_by_category_procedure: str = 'spGetCoursesByCategory'
