"""
Demonstration driver.

Runs every catalog routine in its own connection and reports what each one
returned. Database errors become failed outcomes instead of aborting the run.
"""
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from coursedb import catalog, schema
from coursedb.connection import connect
from coursedb.exceptions import DatabaseError
from coursedb.models import Category, new_id
from coursedb.options import DatabaseOptions, SchemaNames, pandas_data_loader
from coursedb.strategy import get_strategy

logger = logging.getLogger(__name__)

DEFAULT_URL = 'sqlite:///coursedb.db'


@dataclass(frozen=True)
class Outcome:
    """Result of one demonstration: a value, or the error it raised."""
    name: str
    value: Any = None
    error: DatabaseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _sample_category(title: str) -> Category:
    return Category(new_id(), title, title.lower().replace(' ', '-'),
                    f'{title} summary', 9, f'{title} description', False)


def _create_read(cn: Any) -> Category | None:
    category = _sample_category('Demo Create')
    catalog.create_category(cn, category)
    return catalog.get_category(cn, category.id)


def _update_read(cn: Any) -> Category | None:
    category = _sample_category('Demo Update')
    catalog.create_category(cn, category)
    catalog.update_category(cn, replace(category, title='Demo Updated', featured=True))
    return catalog.get_category(cn, category.id)


def _delete_read(cn: Any) -> Category | None:
    category = _sample_category('Demo Delete')
    catalog.create_category(cn, category)
    catalog.delete_category(cn, category.id)
    return catalog.get_category(cn, category.id)


def _delete_with_procedure(cn: Any, names: SchemaNames) -> int:
    category = _sample_category('Demo Procedure')
    catalog.create_category(cn, category)
    return catalog.delete_category_with_procedure(cn, category.id, names)


def _rollback_read(cn: Any) -> tuple[int, Category | None]:
    category = _sample_category('Demo Rollback')
    inserted = catalog.create_category_and_rollback(cn, category)
    return inserted, catalog.get_category(cn, category.id)


def demonstrations(names: SchemaNames) -> list[tuple[str, Callable[[Any], Any], bool]]:
    """(name, routine, needs stored procedures) for every demonstration.
    """
    first_category = schema.SEED_CATEGORIES[0].id
    return [
        ('create category', _create_read, False),
        ('list categories', catalog.list_categories, False),
        ('get category', lambda cn: catalog.require_category(cn, first_category), False),
        ('update category', _update_read, False),
        ('delete category', _delete_read, False),
        ('delete category with procedure', lambda cn: _delete_with_procedure(cn, names), True),
        ('courses by category with procedure',
         lambda cn: catalog.list_courses_by_category_with_procedure(cn, first_category, names), True),
        ('courses from view', lambda cn: catalog.list_courses_from_view(cn, names), False),
        ('career items with course (one to one)', catalog.list_career_items_with_course, False),
        ('careers with items (one to many)', catalog.list_careers, False),
        ('categories and courses (multiple result sets)', catalog.read_categories_and_courses, False),
        ('categories by ids (IN)',
         lambda cn: catalog.list_categories_by_ids(cn, [c.id for c in schema.SEED_CATEGORIES[:2]]), False),
        ('search courses (LIKE)', lambda cn: catalog.search_courses(cn, '100%'), False),
        ('create category and rollback', _rollback_read, False),
    ]


def run_one(options: DatabaseOptions, name: str, routine: Callable[[Any], Any]) -> Outcome:
    """Run one routine on a fresh connection, capturing database errors.
    """
    try:
        with connect(options) as cn:
            value = routine(cn)
    except DatabaseError as err:
        logger.error(f'{name}: {type(err).__name__}: {err}')
        return Outcome(name, error=err)
    logger.info(f'{name}: {_describe(value)}')
    return Outcome(name, value=value)


def run(options: DatabaseOptions, names: SchemaNames | None = None) -> list[Outcome]:
    """Run every demonstration supported by the dialect, in order.
    """
    names = names or SchemaNames()
    strategy = get_strategy(options.drivername)
    outcomes = []
    for name, routine, needs_procedures in demonstrations(names):
        if needs_procedures and not strategy.supports_procedures:
            logger.info(f'{name}: skipped, {options.drivername} has no stored procedures')
            continue
        outcomes.append(run_one(options, name, routine))
    return outcomes


def category_report(options: DatabaseOptions) -> Any:
    """Categories as a DataFrame, read through the pandas loader.
    """
    report_options = replace(options, data_loader=pandas_data_loader)
    with connect(report_options) as cn:
        return cn.select('SELECT Title, Url, "Order", Featured FROM Category ORDER BY "Order", Title')


def _describe(value: Any) -> str:
    if isinstance(value, list):
        return f'{len(value)} item(s)'
    if isinstance(value, tuple) and all(isinstance(v, list) for v in value):
        return ', '.join(f'{len(v)} item(s)' for v in value)
    return repr(value)


def main() -> int:
    """Install the sample schema, run the demonstrations, print the categories.
    """
    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    url = os.getenv('COURSEDB_URL', DEFAULT_URL)
    names = SchemaNames()
    try:
        options = DatabaseOptions.from_url(url)
        with connect(options) as cn:
            schema.install(cn, names)
            schema.seed(cn)
    except (DatabaseError, ValueError) as err:
        logger.error(f'Could not prepare the database at {url}: {err}')
        return 1

    outcomes = run(options, names)

    try:
        print(category_report(options).to_string(index=False))
    except DatabaseError as err:
        logger.error(f'Could not read the category report: {err}')
        return 1

    failed = [o.name for o in outcomes if not o.ok]
    if failed:
        logger.error(f'{len(failed)} demonstration(s) failed: {", ".join(failed)}')
        return 1
    logger.info(f'All {len(outcomes)} demonstrations succeeded')
    return 0


if __name__ == '__main__':
    sys.exit(main())
