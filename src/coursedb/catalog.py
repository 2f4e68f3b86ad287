"""
Catalog data access routines.

Each routine receives an open connection (or transaction handle), runs one
statement, batch or procedure and maps the result to catalog models. Values
are always bound as named parameters.
"""
import logging
from collections.abc import Sequence
from typing import Any

from coursedb.exceptions import NotFoundError
from coursedb.mapping import combine_with, group_children
from coursedb.models import Career, CareerItem, Category, Course
from coursedb.options import SchemaNames
from coursedb.sql import like_pattern
from coursedb.transaction import Transaction

logger = logging.getLogger(__name__)

_CATEGORY_COLUMNS = 'Id, Title, Url, Summary, "Order", Description, Featured'
_COURSE_COLUMNS = 'Id, Tag, Title, Summary, Url, Level, DurationInMinutes, Active, Featured, CategoryId'


def _category_params(category: Category) -> dict[str, Any]:
    return {
        'id': category.id,
        'title': category.title,
        'url': category.url,
        'summary': category.summary,
        'order': category.order,
        'description': category.description,
        'featured': category.featured,
    }


# =============================================================================
# Category CRUD
# =============================================================================

def create_category(cn: Any, category: Category) -> int:
    """Insert a category, returning the affected row count.
    """
    sql = """
INSERT INTO Category (Id, Title, Url, Summary, "Order", Description, Featured)
VALUES (%(id)s, %(title)s, %(url)s, %(summary)s, %(order)s, %(description)s, %(featured)s)
"""
    return cn.execute(sql, _category_params(category))


def list_categories(cn: Any) -> list[Category]:
    return cn.query(Category, f'SELECT {_CATEGORY_COLUMNS} FROM Category ORDER BY "Order", Title')


def get_category(cn: Any, category_id: str) -> Category | None:
    sql = f'SELECT {_CATEGORY_COLUMNS} FROM Category WHERE Id = %(id)s'
    return cn.query_row_or_none(Category, sql, {'id': category_id})


def require_category(cn: Any, category_id: str) -> Category:
    """Like `get_category`, but a missing row raises NotFoundError.
    """
    category = get_category(cn, category_id)
    if category is None:
        raise NotFoundError(f'Category {category_id} not found')
    return category


def update_category(cn: Any, category: Category) -> int:
    """Overwrite every column of the category with the same id.
    """
    sql = """
UPDATE Category
SET Title = %(title)s,
    Url = %(url)s,
    Summary = %(summary)s,
    "Order" = %(order)s,
    Description = %(description)s,
    Featured = %(featured)s
WHERE Id = %(id)s
"""
    return cn.execute(sql, _category_params(category))


def delete_category(cn: Any, category_id: str) -> int:
    return cn.execute('DELETE FROM Category WHERE Id = %(id)s', {'id': category_id})


# =============================================================================
# Stored procedures
# =============================================================================

def execute_procedure(cn: Any, name: str, **params: Any) -> int:
    """Run a write procedure; returns the driver's row count (-1 if unreported).
    """
    return cn.call_procedure(name, **params)


def query_procedure(cn: Any, cls: type, name: str, **params: Any) -> list:
    """Run a read procedure and map its rows to `cls`.
    """
    return cn.query_procedure(cls, name, **params)


def delete_category_with_procedure(cn: Any, category_id: str,
                                   names: SchemaNames | None = None) -> int:
    names = names or SchemaNames()
    return execute_procedure(cn, names.delete_category_procedure, category_id=category_id)


def list_courses_by_category_with_procedure(cn: Any, category_id: str,
                                            names: SchemaNames | None = None) -> list[Course]:
    names = names or SchemaNames()
    return query_procedure(cn, Course, names.courses_by_category_procedure, category_id=category_id)


# =============================================================================
# Views and joins
# =============================================================================

def list_courses_from_view(cn: Any, names: SchemaNames | None = None) -> list[Course]:
    names = names or SchemaNames()
    return cn.query(Course, f'SELECT {_COURSE_COLUMNS} FROM {names.course_view} ORDER BY Title')


_CAREER_ITEM_WITH_COURSE = """
SELECT ci.Id, ci.CareerId, ci.CourseId, ci.Title, ci.Description, ci."Order",
       c.Id, c.Tag, c.Title, c.Summary, c.Url, c.Level, c.DurationInMinutes,
       c.Active, c.Featured, c.CategoryId
FROM CareerItem ci
INNER JOIN Course c ON c.Id = ci.CourseId
"""


def list_career_items_with_course(cn: Any) -> list[CareerItem]:
    """Career items with their course, split from one joined row at `Id`.
    """
    sql = _CAREER_ITEM_WITH_COURSE + 'ORDER BY ci.CareerId, ci."Order"'
    return cn.query_split((CareerItem, Course), sql, split_on='Id',
                          combine=combine_with('course'))


def list_careers(cn: Any) -> list[Career]:
    """Careers with their items, read as two result sets and grouped in memory.

    Each item row carries its course and is split at `Id` like the
    one-to-one read.
    """
    sql = """
SELECT Id, Title, Summary, Url, DurationInMinutes, Active, Featured
FROM Career
ORDER BY Title;
""" + _CAREER_ITEM_WITH_COURSE + 'ORDER BY ci.CareerId, ci."Order"'
    careers, items = cn.query_multiple((Career, (CareerItem, Course)), sql,
                                       split_on='Id', combine=combine_with('course'))
    return group_children(careers, items, attach='items', child_key='career_id')


# =============================================================================
# Multiple result sets
# =============================================================================

def read_categories_and_courses(cn: Any) -> tuple[list[Category], list[Course]]:
    """Categories and courses from one batch, in the order issued.
    """
    sql = f"""
SELECT {_CATEGORY_COLUMNS} FROM Category ORDER BY "Order", Title;
SELECT {_COURSE_COLUMNS} FROM Course ORDER BY Title
"""
    categories, courses = cn.query_multiple((Category, Course), sql)
    return categories, courses


# =============================================================================
# Filters
# =============================================================================

def list_categories_by_ids(cn: Any, ids: Sequence[str]) -> list[Category]:
    """Categories whose id is in `ids`; an empty sequence raises ValidationError.
    """
    sql = f'SELECT {_CATEGORY_COLUMNS} FROM Category WHERE Id IN %(ids)s ORDER BY "Order", Title'
    return cn.query(Category, sql, {'ids': list(ids)})


def search_courses(cn: Any, fragment: str) -> list[Course]:
    """Courses whose title contains `fragment` literally.
    """
    sql = f"""
SELECT {_COURSE_COLUMNS}
FROM Course
WHERE Title LIKE %(pattern)s ESCAPE '\\'
ORDER BY Title
"""
    return cn.query(Course, sql, {'pattern': like_pattern(fragment)})


# =============================================================================
# Transactions
# =============================================================================

def create_category_and_rollback(cn: Any, category: Category) -> int:
    """Insert a category inside a transaction and roll it back.

    Returns the row count the insert reported before the rollback.
    """
    with Transaction(cn) as tx:
        inserted = create_category(tx, category)
        logger.info(f'Inserted {inserted} row(s) inside the transaction, rolling back')
        tx.rollback()
    return inserted
