import logging
import pathlib
import sys

import coursedb as db
import pytest
from coursedb import schema

from libb import Setting

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
sys.path.insert(0, str(HERE.parent))
import config

logger = logging.getLogger(__name__)


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container using testcontainers.

    Skips every PostgreSQL test when no container runtime is available.
    """
    testcontainers_postgres = pytest.importorskip('testcontainers.postgres')
    container = testcontainers_postgres.PostgresContainer(
        image='postgres:16',
        username=config.postgresql.username,
        password=config.postgresql.password,
        dbname=config.postgresql.database,
    )

    try:
        container.start()
    except Exception as e:
        pytest.skip(f'PostgreSQL container unavailable: {e}')

    Setting.unlock()
    config.postgresql.hostname = container.get_container_host_ip()
    config.postgresql.port = int(container.get_exposed_port(5432))
    Setting.lock()

    logger.info(
        f'PostgreSQL container started at '
        f'{config.postgresql.hostname}:{config.postgresql.port}'
    )

    def finalizer():
        container.stop()
        logger.info('PostgreSQL container stopped')

    request.addfinalizer(finalizer)
    return container


@pytest.fixture
def pg_conn(psql_docker):
    """
    Connection fixture with function scope for clean tests.
    Each test gets a fresh connection with a reinstalled and reseeded schema.
    """
    cn = db.connect('postgresql', config=config)
    try:
        schema.install(cn)
        schema.seed(cn)
        yield cn
    finally:
        cn.close()


@pytest.fixture
def pg_options(pg_conn):
    """Options of the seeded PostgreSQL database."""
    return pg_conn.options
