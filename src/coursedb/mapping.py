"""
Row to object mapping.

Rows are bound to dataclasses by column name: names are compared ignoring case
and underscores, so a `DurationInMinutes` column fills `duration_in_minutes`.
Columns without a matching field are ignored and fields without a matching
column keep their defaults. Fields declared with `relation()` are never bound
from columns; they hold related entities attached after mapping.

Joined rows holding several entities are split at explicit column
boundaries (`split_on`). Splitting is by position: if the boundary does not
match the real column layout, values silently land in the wrong entity.
Only a boundary column that does not exist at all is reported.
"""
import dataclasses
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import lru_cache
from typing import Any, TypeVar, get_type_hints

from coursedb.exceptions import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar('T')

SplitOn = str | int | Sequence[str | int]


def relation(default: Any = None) -> Any:
    """Declare a dataclass field that holds related entities.
    """
    return dataclasses.field(default=default, metadata={'relation': True})


def _normalize(name: str) -> str:
    return name.replace('_', '').lower()


@lru_cache(maxsize=64)
def _bindable_fields(cls: type) -> dict[str, tuple[str, Any]]:
    """Map normalized column names to (field name, field type) for `cls`.
    """
    hints = get_type_hints(cls)
    return {
        _normalize(f.name): (f.name, hints.get(f.name))
        for f in dataclasses.fields(cls)
        if not f.metadata.get('relation')
    }


def _coerce(value: Any, ftype: Any) -> Any:
    # SQLite stores booleans as 0/1
    if ftype is bool and value is not None and not isinstance(value, bool):
        return bool(value)
    return value


def bind_columns(cls: type[T], names: Sequence[str], values: Sequence[Any]) -> T:
    """Construct `cls` from parallel column names and values.

    When a column name repeats, the first occurrence wins.
    """
    fields = _bindable_fields(cls)
    kwargs: dict[str, Any] = {}
    for name, value in zip(names, values):
        target = fields.get(_normalize(name))
        if target is None:
            continue
        fname, ftype = target
        if fname not in kwargs:
            kwargs[fname] = _coerce(value, ftype)
    return cls(**kwargs)


def bind(cls: type[T], row: Mapping[str, Any]) -> T:
    """Construct `cls` from a row mapping.
    """
    return bind_columns(cls, list(row.keys()), list(row.values()))


def bind_all(cls: type[T], rows: Iterable[Mapping[str, Any]]) -> list[T]:
    """Construct one `cls` per row, in row order.
    """
    return [bind(cls, row) for row in rows]


def find_boundaries(columns: Sequence[str], split_on: SplitOn, count: int) -> list[int]:
    """Return the column index at which each of `count` entities starts.

    The first entity always starts at 0. `split_on` names the first column
    of each following entity, either once for all boundaries (`'Id'`) or one
    per boundary (`['Id', 'CourseId']`); integers are taken as absolute
    column indexes. A name matches its first occurrence after the first
    column of the previous entity.

    >>> find_boundaries(['Id', 'Title', 'Id', 'Tag'], 'Id', 2)
    [0, 2]
    >>> find_boundaries(['Id', 'Title', 'Id', 'Tag'], 3, 2)
    [0, 3]
    """
    if isinstance(split_on, (str, int)):
        markers = [split_on] * (count - 1)
    else:
        markers = list(split_on)
        if len(markers) != count - 1:
            raise ValidationError(
                f'Expected {count - 1} split columns for {count} types, got {len(markers)}')

    boundaries = [0]
    for marker in markers:
        previous = boundaries[-1]
        if isinstance(marker, int):
            if not previous < marker < len(columns):
                raise ValidationError(f'Split index {marker} outside columns {previous + 1}..{len(columns) - 1}')
            boundaries.append(marker)
            continue
        target = marker.lower()
        index = next((i for i in range(previous + 1, len(columns))
                      if columns[i].lower() == target), None)
        if index is None:
            raise ValidationError(f'Split column {marker!r} not found after column {previous}')
        boundaries.append(index)
    return boundaries


def split_row(types: Sequence[type], columns: Sequence[str], values: Sequence[Any],
              boundaries: Sequence[int]) -> tuple:
    """Bind each column segment of a flattened row to its type.
    """
    edges = [*boundaries, len(columns)]
    return tuple(
        bind_columns(cls, columns[edges[i]:edges[i + 1]], values[edges[i]:edges[i + 1]])
        for i, cls in enumerate(types)
    )


def group_children(parents: Sequence[T], children: Iterable[Any], attach: str,
                   child_key: str, parent_key: str = 'id') -> list[T]:
    """Attach children to their parent by foreign-key match.

    Both sequences must be fully materialized. Parent order and child order
    within each parent follow the input order. Children whose key matches
    no parent are logged and left out.
    """
    grouped: dict[Any, list[Any]] = defaultdict(list)
    for child in children:
        grouped[getattr(child, child_key)].append(child)

    result = []
    for parent in parents:
        key = getattr(parent, parent_key)
        result.append(dataclasses.replace(parent, **{attach: tuple(grouped.pop(key, ()))}))

    orphans = sum(len(v) for v in grouped.values())
    if orphans:
        logger.warning(f'{orphans} child rows reference no loaded parent: {sorted(map(str, grouped))}')

    return result


def combine_with(field_name: str) -> Callable[[Any, Any], Any]:
    """Combiner placing the second entity into `field_name` of the first.
    """
    def combine(parent, related):
        return dataclasses.replace(parent, **{field_name: related})
    return combine
