"""
Data types for the knowledge graph.

Objects and relations are plain frozen dataclasses: read-only snapshots of
a row. To change one, go through the store, which returns a new snapshot.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import InvalidDate, ValidationError


MAX_TITLE_LENGTH = 500

# Timestamps are UTC with fixed-width microseconds so string order is time order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ObjectType(str, Enum):
    """Closed set of node kinds. ``custom`` is the open bucket."""
    PROJECT = "project"
    TASK = "task"
    PAGE = "page"
    RESOURCE = "resource"
    WEBLINK = "weblink"
    PERSON = "person"
    CALENDAR_ENTRY = "calendar-entry"
    DAILY_NOTE = "daily-note"
    KNOWLEDGE_BIT = "knowledge-bit"
    PERSONAL_BIT = "personal-bit"
    HABIT = "habit"
    FINANCIAL_ENTRY = "financial-entry"
    CUSTOM = "custom"
    TAG = "tag"
    COLLECTION = "collection"
    QUERY = "query"


class RelationType(str, Enum):
    """Closed set of edge kinds."""
    PARENT_OF = "parent_of"
    CHILD_OF = "child_of"
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"
    ASSIGNED_TO = "assigned_to"
    MEMBER_OF = "member_of"
    REFERENCES = "references"
    CONTAINS = "contains"
    ATTENDS = "attends"
    KNOWS = "knows"
    CREATED_ON = "created_on"
    TAGGED_WITH = "tagged_with"


class Direction(str, Enum):
    FROM = "from"
    TO = "to"
    BOTH = "both"


def parse_object_type(value: "str | ObjectType") -> ObjectType:
    try:
        return ObjectType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ObjectType)
        raise ValidationError(f"Unknown object type {value!r} (allowed: {allowed})") from None


def parse_relation_type(value: "str | RelationType") -> RelationType:
    try:
        return RelationType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in RelationType)
        raise ValidationError(f"Unknown relation type {value!r} (allowed: {allowed})") from None


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime in the canonical stored form (UTC, no suffix).

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime."""
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def day_of(ts: str) -> str:
    """The UTC calendar day (YYYY-MM-DD) of a stored timestamp."""
    return ts[:10]


def format_date_string(dt: datetime) -> str:
    """Render a datetime as its UTC YYYY-MM-DD day."""
    return format_timestamp(dt)[:10]


def validate_date_string(value: str) -> str:
    """
    Check that ``value`` is a real calendar day in YYYY-MM-DD form.

    ``2025-02-30`` is rejected rather than rolled over to March.

    Raises:
        InvalidDate: with the offending string attached
    """
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidDate(value, "expected YYYY-MM-DD")
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise InvalidDate(value, "date does not exist in calendar") from None
    if parsed.isoformat() != value:
        raise InvalidDate(value, "date does not exist in calendar")
    return value


def validate_title(title: str) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title must be a non-empty string")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def dump_json(value: Any, what: str) -> str:
    """Serialize a metadata mapping for storage.

    Raises:
        ValidationError: the value holds something JSON cannot represent
    """
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{what} must be JSON-serializable: {e}") from None


@dataclass(frozen=True)
class ObjectMetadata:
    """
    Per-object bookkeeping.

    ``tags`` is the legacy string list kept for compatibility; tag
    membership proper lives in ``tagged_with`` relations.
    """
    created_at: str
    updated_at: str
    tags: tuple[str, ...] = ()
    favorited: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def created_date(self) -> str:
        return day_of(self.created_at)

    @property
    def updated_date(self) -> str:
        return day_of(self.updated_at)

    def to_dict(self) -> dict[str, Any]:
        d = dict(self.extra)
        d.update({
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "tags": list(self.tags),
            "favorited": self.favorited,
        })
        return d


@dataclass(frozen=True)
class GraphObject:
    """
    A typed node in the knowledge graph.

    Attributes:
        id: opaque identifier (uuid4 hex string)
        type: the node kind
        title: 1-500 characters
        content: free text body, may be empty
        properties: JSON-compatible mapping, validated per object type
        archived: soft-delete flag
        metadata: timestamps, legacy tags, favorited
    """
    id: str
    type: ObjectType
    title: str
    content: str
    properties: dict[str, Any]
    archived: bool
    metadata: ObjectMetadata

    @property
    def created_at(self) -> str:
        return self.metadata.created_at

    @property
    def updated_at(self) -> str:
        return self.metadata.updated_at

    @property
    def created_date(self) -> str:
        return self.metadata.created_date

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "properties": self.properties,
            "archived": self.archived,
            "metadata": self.metadata.to_dict(),
        }

    def __str__(self) -> str:
        flag = " (archived)" if self.archived else ""
        return f"{self.id} [{self.type.value}] {self.title}{flag}"


@dataclass(frozen=True)
class Relation:
    """A directed, typed edge between two objects."""
    id: str
    from_object_id: str
    to_object_id: str
    relation_type: RelationType
    metadata: dict[str, Any]
    created_at: str

    def other_end(self, object_id: str) -> str:
        """The endpoint that is not ``object_id``; a self-loop yields the object itself."""
        if self.from_object_id == object_id:
            return self.to_object_id
        return self.from_object_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromObjectId": self.from_object_id,
            "toObjectId": self.to_object_id,
            "relationType": self.relation_type.value,
            "metadata": self.metadata,
            "createdAt": self.created_at,
        }