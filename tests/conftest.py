import logging
import pathlib
import site

import pytest
from coursedb.connection import dispose_all_engines

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def debug_logs(caplog):
    """Capture coursedb logs at DEBUG so failing tests show the SQL they ran."""
    caplog.set_level(logging.DEBUG, logger='coursedb')


@pytest.fixture(scope='session', autouse=True)
def dispose_engines():
    """Release pooled driver connections once the session ends."""
    yield
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.values',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
