"""
Saved queries and their execution.

A query object stores filters, a sort and a limit. Executing it turns the
filters into conditions, pushes what SQLite can evaluate into one SELECT,
and applies the rest (property equality, tag intersection) to the loaded
rows before sorting and truncating.

Saved and ad-hoc queries take the same path: ``test_query`` builds the same
properties a saved query would hold and runs them through ``execute``.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Optional

import pydantic
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
)

from .errors import InvalidDate, NotFound, UnsupportedQueryType, ValidationError
from .object_store import ObjectStore
from .predicates import (
    ArchivedIs,
    Condition,
    CreatedBetween,
    HasAllTags,
    Ordering,
    PropertyEquals,
    TypeIs,
    apply_limit,
    split,
)
from .properties import SortSpec, _format_errors
from .relation_store import RelationStore
from .types import (
    GraphObject,
    ObjectType,
    RelationType,
    format_date_string,
    parse_utc_timestamp,
    validate_date_string,
)

logger = logging.getLogger(__name__)

# Query kinds the engine can run. Others may be stored but not executed.
SUPPORTED_QUERY_TYPES = ("object-type",)


def _to_day(value: str) -> str:
    """Normalize a date or datetime string to its UTC day."""
    try:
        if len(value) == 10:
            return validate_date_string(value)
        return format_date_string(parse_utc_timestamp(value))
    except (InvalidDate, ValueError):
        raise ValueError(f"not a date or datetime: {value!r}") from None


DayStr = Annotated[StrictStr, AfterValidator(_to_day)]


class DateRange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: Optional[DayStr] = None
    end: Optional[DayStr] = None


class QueryFilters(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    object_type: Optional[ObjectType] = Field(default=None, alias="objectType")
    properties: Optional[dict[StrictStr, Any]] = None
    tags: Optional[list[StrictStr]] = None
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    archived: Optional[StrictBool] = None


class QueryProperties(BaseModel):
    """Properties of a ``query`` object. Unknown keys pass through."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    query_type: StrictStr = Field(alias="queryType")
    filters: Optional[QueryFilters] = None
    sort: Optional[SortSpec] = None
    limit: Optional[StrictInt] = None
    group_by: Optional[StrictStr] = Field(default=None, alias="groupBy")


def parse_query_properties(properties: dict[str, Any]) -> QueryProperties:
    try:
        return QueryProperties.model_validate(properties)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid query: {_format_errors(e)}") from e


@dataclass(frozen=True)
class QueryPlan:
    """Conditions split by where they run, plus order and limit."""
    pushdown: list[Condition]
    residual: list[Condition]
    ordering: Ordering
    limit: Optional[int]


class QueryEngine:
    """Runs query objects and ad-hoc filters against the stores."""

    def __init__(self, objects: ObjectStore, relations: RelationStore, tags):
        """
        Args:
            objects: Object store
            relations: Relation store
            tags: Tags service, used to resolve tag names
        """
        self._objects = objects
        self._relations = relations
        self._tags = tags

    def _tagged_with_all(self, names: list[str]) -> frozenset[str]:
        # Intersection of the tagged-object sets; an unknown name empties it
        result: Optional[set[str]] = None
        for name in names:
            tag = self._tags.find_tag_by_name(name)
            if tag is None:
                logger.debug("Query tag %r does not exist", name)
                return frozenset()
            ids = self._relations.source_ids(tag.id, RelationType.TAGGED_WITH)
            result = ids if result is None else result & ids
            if not result:
                return frozenset()
        return frozenset(result or ())

    def plan(self, spec: QueryProperties) -> QueryPlan:
        filters = spec.filters or QueryFilters()
        conditions: list[Condition] = []
        if filters.object_type is not None:
            conditions.append(TypeIs(filters.object_type))
        conditions.append(ArchivedIs(filters.archived if filters.archived is not None else False))
        if filters.date_range is not None:
            conditions.append(CreatedBetween(filters.date_range.start, filters.date_range.end))
        for key, value in (filters.properties or {}).items():
            conditions.append(PropertyEquals(key, value))
        if filters.tags:
            conditions.append(HasAllTags(tuple(filters.tags), self._tagged_with_all(filters.tags)))

        sort = spec.sort or SortSpec()
        pushdown, residual = split(conditions)
        return QueryPlan(
            pushdown=pushdown,
            residual=residual,
            ordering=Ordering(sort.field, descending=sort.order == "desc"),
            limit=spec.limit,
        )

    def execute(self, spec: QueryProperties) -> list[GraphObject]:
        """
        Run validated query properties.

        Raises:
            UnsupportedQueryType: queryType is not one the engine runs
        """
        if spec.query_type not in SUPPORTED_QUERY_TYPES:
            raise UnsupportedQueryType(spec.query_type)

        plan = self.plan(spec)
        if not plan.residual:
            return self._objects.select(plan.pushdown, plan.ordering, plan.limit)

        # Limit must wait until every residual condition has run
        rows = self._objects.select(plan.pushdown, plan.ordering)
        for cond in plan.residual:
            rows = [obj for obj in rows if cond.matches(obj)]
        return apply_limit(plan.ordering.sort(rows), plan.limit)

    def execute_query(self, query: GraphObject) -> list[GraphObject]:
        """
        Run a stored query object.

        Raises:
            NotFound: ``query`` is not a query object
            UnsupportedQueryType: queryType is not one the engine runs
        """
        if query.type is not ObjectType.QUERY:
            raise NotFound(f"Query {query.id} not found")
        results = self.execute(parse_query_properties(query.properties))
        logger.debug("Query %s returned %d objects", query.id, len(results))
        return results

    def test_query(
        self,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[GraphObject]:
        """Run filters without saving them, exactly as a saved query would run."""
        properties: dict[str, Any] = {"queryType": "object-type"}
        if filters is not None:
            properties["filters"] = filters
        if sort is not None:
            properties["sort"] = sort
        if limit is not None:
            properties["limit"] = limit
        return self.execute(parse_query_properties(properties))
