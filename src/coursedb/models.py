"""
Catalog entities.

Plain frozen dataclasses; columns bind to fields by name (see
`coursedb.mapping`). Related entities live in `relation()` fields and are
attached after the row is mapped.
"""
import uuid
from dataclasses import dataclass

from coursedb.mapping import relation


def new_id() -> str:
    """Fresh identifier for a catalog row."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Category:
    id: str = ''
    title: str = ''
    url: str = ''
    summary: str = ''
    order: int = 0
    description: str = ''
    featured: bool = False


@dataclass(frozen=True)
class Course:
    id: str = ''
    tag: str = ''
    title: str = ''
    summary: str = ''
    url: str = ''
    level: int = 0
    duration_in_minutes: int = 0
    active: bool = False
    featured: bool = False
    category_id: str = ''


@dataclass(frozen=True)
class CareerItem:
    """Step of a career; `course` is filled by splitting a joined row."""
    id: str = ''
    career_id: str = ''
    course_id: str = ''
    title: str = ''
    description: str = ''
    order: int = 0
    course: Course | None = relation()


@dataclass(frozen=True)
class Career:
    id: str = ''
    title: str = ''
    summary: str = ''
    url: str = ''
    duration_in_minutes: int = 0
    active: bool = False
    featured: bool = False
    items: tuple[CareerItem, ...] = relation(default=())
