"""
Filter conditions and orderings shared by storage-level and in-memory
filtering.

Every condition can test a loaded object (``matches``). Conditions the
SQLite layer can evaluate also render a WHERE fragment (``to_sql``); the
rest return None and run after the rows are loaded. Moving a condition into
the database is a matter of giving it a ``to_sql``; callers don't change.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from .errors import InvalidArgument
from .properties import unwrap_value
from .types import GraphObject, ObjectType


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality over JSON values; booleans never equal numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list, tuple)) or isinstance(b, (dict, list, tuple)):
        return False
    return a == b


class Condition(ABC):
    """One conjunct of a filter."""

    def to_sql(self) -> Optional[tuple[str, list[Any]]]:
        """WHERE fragment and parameters, or None if only ``matches`` applies."""
        return None

    @abstractmethod
    def matches(self, obj: GraphObject) -> bool:
        """Whether ``obj`` satisfies the condition."""


@dataclass(frozen=True)
class TypeIs(Condition):
    object_type: ObjectType

    def to_sql(self):
        return "type = ?", [self.object_type.value]

    def matches(self, obj):
        return obj.type is self.object_type


@dataclass(frozen=True)
class ArchivedIs(Condition):
    archived: bool

    def to_sql(self):
        return "archived = ?", [int(self.archived)]

    def matches(self, obj):
        return obj.archived == self.archived


@dataclass(frozen=True)
class CreatedBetween(Condition):
    """Inclusive range over the UTC creation day (YYYY-MM-DD strings).

    Both bounds compare against the derived day, never the raw timestamp,
    so an end bound of ``2025-01-15`` includes 23:59 that day.
    """
    start: Optional[str] = None
    end: Optional[str] = None

    column = "created_date"

    def _day(self, obj: GraphObject) -> str:
        return obj.metadata.created_date

    def to_sql(self):
        clauses, params = [], []
        if self.start is not None:
            clauses.append(f"{self.column} >= ?")
            params.append(self.start)
        if self.end is not None:
            clauses.append(f"{self.column} <= ?")
            params.append(self.end)
        if not clauses:
            return "1 = 1", []
        return " AND ".join(clauses), params

    def matches(self, obj):
        day = self._day(obj)
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True)
class UpdatedBetween(CreatedBetween):
    """Inclusive range over the UTC last-modified day."""

    column = "updated_date"

    def _day(self, obj: GraphObject) -> str:
        return obj.metadata.updated_date


@dataclass(frozen=True)
class TitleIs(Condition):
    title: str

    def to_sql(self):
        return "title = ?", [self.title]

    def matches(self, obj):
        return obj.title == self.title


@dataclass(frozen=True)
class IdIn(Condition):
    ids: frozenset[str]

    def to_sql(self):
        if not self.ids:
            return "0 = 1", []
        placeholders = ",".join("?" * len(self.ids))
        return f"id IN ({placeholders})", sorted(self.ids)

    def matches(self, obj):
        return obj.id in self.ids


@dataclass(frozen=True)
class PropertyEquals(Condition):
    """``properties[key]`` exists and its unwrapped value equals ``expected``."""
    key: str
    expected: Any

    def matches(self, obj):
        if self.key not in obj.properties:
            return False
        return deep_equal(unwrap_value(obj.properties[self.key]), self.expected)


@dataclass(frozen=True)
class HasAllTags(Condition):
    """Object carries every requested tag.

    ``tagged_ids`` is the intersection of the tagged-object id sets of the
    requested tag names, resolved before filtering.
    """
    names: tuple[str, ...]
    tagged_ids: frozenset[str] = field(default_factory=frozenset)

    def matches(self, obj):
        return obj.id in self.tagged_ids


def split(conditions: Iterable[Condition]) -> tuple[list[Condition], list[Condition]]:
    """Partition into (storage-evaluable, residual), preserving order."""
    pushdown, residual = [], []
    for cond in conditions:
        (pushdown if cond.to_sql() is not None else residual).append(cond)
    return pushdown, residual


def where_clause(conditions: Sequence[Condition]) -> tuple[str, list[Any]]:
    """AND together the SQL fragments of storage-evaluable conditions."""
    clauses, params = [], []
    for cond in conditions:
        rendered = cond.to_sql()
        if rendered is None:
            raise ValueError(f"Condition cannot be evaluated in storage: {cond!r}")
        sql, p = rendered
        clauses.append(f"({sql})")
        params.extend(p)
    if not clauses:
        return "", []
    return "WHERE " + " AND ".join(clauses), params


# Sort field (as callers name it) -> (column, object accessor)
SORT_FIELDS = {
    "createdAt": ("created_at", lambda o: o.created_at),
    "updatedAt": ("updated_at", lambda o: o.updated_at),
    "title": ("title", lambda o: o.title),
    "type": ("type", lambda o: o.type.value),
}


@dataclass(frozen=True)
class Ordering:
    """Sort order with ``id`` as tie-breaker, identical in SQL and in memory."""
    field: str = "createdAt"
    descending: bool = True

    def __post_init__(self):
        if self.field not in SORT_FIELDS:
            raise InvalidArgument(f"Unknown sort field: {self.field!r}")

    def to_sql(self) -> str:
        column = SORT_FIELDS[self.field][0]
        direction = "DESC" if self.descending else "ASC"
        return f"ORDER BY {column} {direction}, id {direction}"

    def sort(self, objects: Iterable[GraphObject]) -> list[GraphObject]:
        accessor = SORT_FIELDS[self.field][1]
        return sorted(objects, key=lambda o: (accessor(o), o.id), reverse=self.descending)


def apply_limit(objects: list[GraphObject], limit: Optional[int]) -> list[GraphObject]:
    """Truncate to ``limit``; None or non-positive means unbounded."""
    if limit is not None and limit > 0:
        return objects[:limit]
    return objects
