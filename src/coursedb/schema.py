"""
Sample schema installer.

Creates the catalog tables, the course view and, on PostgreSQL, the write
procedure and the set-returning read function, then seeds a small fixed data
set. Table and column names are PascalCase and unquoted (PostgreSQL folds
them to lowercase); only "Order" is quoted because it is a keyword.
"""
import dataclasses
import logging
from typing import Any

from coursedb.models import Career, CareerItem, Category, Course
from coursedb.options import SchemaNames
from coursedb.sql import validate_identifier

logger = logging.getLogger(__name__)

TABLES = ('CareerItem', 'Career', 'Course', 'Category')

_TABLE_DDL = {
    'Category': """
CREATE TABLE Category (
    Id VARCHAR(36) PRIMARY KEY,
    Title VARCHAR(160) NOT NULL,
    Url VARCHAR(1024) NOT NULL,
    Summary VARCHAR(2000) NOT NULL DEFAULT '',
    "Order" INTEGER NOT NULL DEFAULT 0,
    Description TEXT NOT NULL DEFAULT '',
    Featured BOOLEAN NOT NULL DEFAULT FALSE
)""",
    'Course': """
CREATE TABLE Course (
    Id VARCHAR(36) PRIMARY KEY,
    Tag VARCHAR(20) NOT NULL,
    Title VARCHAR(160) NOT NULL,
    Summary VARCHAR(2000) NOT NULL DEFAULT '',
    Url VARCHAR(1024) NOT NULL,
    Level INTEGER NOT NULL DEFAULT 0,
    DurationInMinutes INTEGER NOT NULL DEFAULT 0,
    Active BOOLEAN NOT NULL DEFAULT FALSE,
    Featured BOOLEAN NOT NULL DEFAULT FALSE,
    CategoryId VARCHAR(36) NOT NULL REFERENCES Category (Id)
)""",
    'Career': """
CREATE TABLE Career (
    Id VARCHAR(36) PRIMARY KEY,
    Title VARCHAR(160) NOT NULL,
    Summary VARCHAR(2000) NOT NULL DEFAULT '',
    Url VARCHAR(1024) NOT NULL,
    DurationInMinutes INTEGER NOT NULL DEFAULT 0,
    Active BOOLEAN NOT NULL DEFAULT FALSE,
    Featured BOOLEAN NOT NULL DEFAULT FALSE
)""",
    'CareerItem': """
CREATE TABLE CareerItem (
    Id VARCHAR(36) PRIMARY KEY,
    CareerId VARCHAR(36) NOT NULL REFERENCES Career (Id),
    CourseId VARCHAR(36) NOT NULL REFERENCES Course (Id),
    Title VARCHAR(160) NOT NULL,
    Description TEXT NOT NULL DEFAULT '',
    "Order" INTEGER NOT NULL DEFAULT 0
)""",
}

_CREATE_ORDER = ('Category', 'Course', 'Career', 'CareerItem')

# columns that are keywords and must be quoted wherever they appear
RESERVED_COLUMNS = frozenset({'Order'})

_SEED_CATEGORY_IDS = (
    'c0a8012e-0001-4f6a-9d1e-000000000001',
    'c0a8012e-0001-4f6a-9d1e-000000000002',
    'c0a8012e-0001-4f6a-9d1e-000000000003',
)
_SEED_COURSE_IDS = (
    'c0a8012e-0002-4f6a-9d1e-000000000001',
    'c0a8012e-0002-4f6a-9d1e-000000000002',
    'c0a8012e-0002-4f6a-9d1e-000000000003',
    'c0a8012e-0002-4f6a-9d1e-000000000004',
)
_SEED_CAREER_IDS = (
    'c0a8012e-0003-4f6a-9d1e-000000000001',
    'c0a8012e-0003-4f6a-9d1e-000000000002',
    'c0a8012e-0003-4f6a-9d1e-000000000003',
)

SEED_CATEGORIES = (
    Category(_SEED_CATEGORY_IDS[0], 'Backend', 'backend', 'Server side development',
             1, 'APIs, databases and services', True),
    Category(_SEED_CATEGORY_IDS[1], 'Frontend', 'frontend', 'Browser development',
             2, 'Markup, styling and scripting', False),
    Category(_SEED_CATEGORY_IDS[2], 'Mobile', 'mobile', 'Apps for phones',
             3, 'Native and cross-platform apps', False),
)

SEED_COURSES = (
    Course(_SEED_COURSE_IDS[0], 'py101', 'Python Fundamentals', 'Syntax and standard library',
           'python-fundamentals', 1, 180, True, True, _SEED_CATEGORY_IDS[0]),
    Course(_SEED_COURSE_IDS[1], 'sql201', 'SQL for Developers', 'Queries, joins and indexes',
           'sql-for-developers', 2, 240, True, False, _SEED_CATEGORY_IDS[0]),
    Course(_SEED_COURSE_IDS[2], 'css101', 'CSS Layout', 'Flexbox and grid',
           'css-layout', 1, 120, True, False, _SEED_CATEGORY_IDS[1]),
    Course(_SEED_COURSE_IDS[3], 'flt101', 'Flutter_100% Basics', 'Widgets from scratch',
           'flutter-basics', 1, 90, False, False, _SEED_CATEGORY_IDS[2]),
)

SEED_CAREERS = (
    Career(_SEED_CAREER_IDS[0], 'Backend Developer', 'From scripts to services',
           'backend-developer', 420, True, True),
    Career(_SEED_CAREER_IDS[1], 'Frontend Developer', 'Pages that look right',
           'frontend-developer', 120, True, False),
    Career(_SEED_CAREER_IDS[2], 'Mobile Developer', 'Coming soon',
           'mobile-developer', 0, False, False),
)

SEED_CAREER_ITEMS = (
    CareerItem('c0a8012e-0004-4f6a-9d1e-000000000001', _SEED_CAREER_IDS[0], _SEED_COURSE_IDS[0],
               'Learn Python', 'Language basics', 1),
    CareerItem('c0a8012e-0004-4f6a-9d1e-000000000002', _SEED_CAREER_IDS[0], _SEED_COURSE_IDS[1],
               'Learn SQL', 'Talking to databases', 2),
    CareerItem('c0a8012e-0004-4f6a-9d1e-000000000003', _SEED_CAREER_IDS[1], _SEED_COURSE_IDS[2],
               'Learn CSS', 'Layout fundamentals', 1),
)


def column_name(field_name: str) -> str:
    """Column for a model field: `duration_in_minutes` -> `DurationInMinutes`.

    >>> column_name('category_id')
    'CategoryId'
    >>> column_name('order')
    'Order'
    """
    return ''.join(part.capitalize() for part in field_name.split('_'))


def _insert_column(cn: Any, field_name: str) -> str:
    column = column_name(field_name)
    if column in RESERVED_COLUMNS:
        return cn.strategy.quote_identifier(column)
    return column


def insert_entity(cn: Any, table: str, entity: Any) -> int:
    """Insert the bindable fields of a model instance as one row.

    Keyword columns are quoted for the connection's dialect.
    """
    validate_identifier(table)
    values = {f.name: getattr(entity, f.name) for f in dataclasses.fields(entity)
              if not f.metadata.get('relation')}
    columns = ', '.join(_insert_column(cn, name) for name in values)
    placeholders = ', '.join(f'%({name})s' for name in values)
    return cn.execute(f'INSERT INTO {table} ({columns}) VALUES ({placeholders})', values)


def _view_sql(names: SchemaNames) -> str:
    return f"""
CREATE VIEW {names.course_view} AS
SELECT Id, Tag, Title, Summary, Url, Level, DurationInMinutes, Active, Featured, CategoryId
FROM Course
WHERE Active
"""


def _procedure_sql(names: SchemaNames) -> list[str]:
    return [
        f"""
CREATE OR REPLACE PROCEDURE {names.delete_category_procedure}(category_id TEXT)
LANGUAGE plpgsql
AS $$
BEGIN
    DELETE FROM Category WHERE Id = category_id;
END;
$$""",
        f"""
CREATE OR REPLACE FUNCTION {names.courses_by_category_procedure}(category_id TEXT)
RETURNS SETOF Course
LANGUAGE sql STABLE
AS $$
    SELECT * FROM Course WHERE CategoryId = category_id ORDER BY Title;
$$""",
    ]


def _drop_sql(cn: Any, names: SchemaNames) -> list[str]:
    statements = [f'DROP VIEW IF EXISTS {names.course_view}']
    if cn.dialect == 'postgresql':
        statements.append(f'DROP PROCEDURE IF EXISTS {names.delete_category_procedure}(TEXT)')
        statements.append(f'DROP FUNCTION IF EXISTS {names.courses_by_category_procedure}(TEXT)')
    # views and functions installed under other names still depend on the tables
    cascade = ' CASCADE' if cn.dialect == 'postgresql' else ''
    statements.extend(f'DROP TABLE IF EXISTS {table}{cascade}' for table in TABLES)
    return statements


def install(cn: Any, names: SchemaNames | None = None) -> None:
    """Drop and recreate the sample tables, view and procedures.
    """
    names = names or SchemaNames()
    for identifier in (names.course_view, names.delete_category_procedure,
                       names.courses_by_category_procedure):
        validate_identifier(identifier)

    statements = _drop_sql(cn, names)
    statements.extend(_TABLE_DDL[table] for table in _CREATE_ORDER)
    statements.append(_view_sql(names))
    if cn.dialect == 'postgresql':
        statements.extend(_procedure_sql(names))

    for sql in statements:
        cn.execute(sql)
    logger.info(f'Installed catalog schema on {cn.dialect} ({len(statements)} statements)')


def seed(cn: Any) -> None:
    """Insert the fixed sample rows.
    """
    rows = [('Category', SEED_CATEGORIES), ('Course', SEED_COURSES),
            ('Career', SEED_CAREERS), ('CareerItem', SEED_CAREER_ITEMS)]
    for table, entities in rows:
        for entity in entities:
            insert_entity(cn, table, entity)
        logger.debug(f'Seeded {len(entities)} rows into {table}')
