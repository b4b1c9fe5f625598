"""
Object store using SQLite.

The object store is the source of truth for:
- Object identity and type
- Title, content, properties (validated per object type)
- Archival state
- Timestamps (set by the store, never by the caller)

Relations between objects live in the relation store, in the same database
file, so deleting an object cascades to its edges.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from .db import Database
from .errors import Conflict, NotFound, ValidationError
from .predicates import (
    ArchivedIs,
    Condition,
    CreatedBetween,
    Ordering,
    TypeIs,
    UpdatedBetween,
    where_clause,
)
from .properties import validate_properties
from .types import (
    GraphObject,
    ObjectMetadata,
    ObjectType,
    dump_json,
    format_timestamp,
    parse_object_type,
    utc_now,
    validate_date_string,
    validate_title,
)

logger = logging.getLogger(__name__)

_COLUMNS = "id, type, title, content, properties, metadata, archived, created_at, updated_at"


def _row_to_object(row: sqlite3.Row) -> GraphObject:
    meta = json.loads(row["metadata"])
    tags = meta.pop("tags", [])
    favorited = meta.pop("favorited", False)
    return GraphObject(
        id=row["id"],
        type=ObjectType(row["type"]),
        title=row["title"],
        content=row["content"],
        properties=json.loads(row["properties"]),
        archived=bool(row["archived"]),
        metadata=ObjectMetadata(
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            tags=tuple(tags),
            favorited=bool(favorited),
            extra=meta,
        ),
    )


def _validate_metadata(metadata: Optional[dict]) -> dict[str, Any]:
    metadata = dict(metadata or {})
    # Timestamps belong to the store
    metadata.pop("createdAt", None)
    metadata.pop("updatedAt", None)
    tags = metadata.get("tags", [])
    if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("metadata.tags must be a list of strings")
    # Ordered set: keep first occurrence
    metadata["tags"] = list(dict.fromkeys(tags))
    favorited = metadata.get("favorited", False)
    if not isinstance(favorited, bool):
        raise ValidationError("metadata.favorited must be a boolean")
    metadata["favorited"] = favorited
    return metadata


def _integrity_error(e: sqlite3.IntegrityError, what: str) -> Exception:
    msg = str(e)
    if "idx_daily_note_unique_date" in msg:
        return Conflict(f"{what}: a daily note for that date already exists")
    if "UNIQUE" in msg:
        return Conflict(f"{what}: {msg}")
    return ValidationError(f"{what}: {msg}")


class ObjectStore:
    """
    SQLite-backed store for graph objects.

    Timestamps come from ``clock`` so tests can pin "now".
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        """
        Args:
            db: Shared database
            clock: Returns the current time as an aware datetime
        """
        self._db = db
        self._clock = clock
        self._listeners: list[Callable[[GraphObject], Any]] = []

    def _now(self) -> str:
        """Current timestamp in canonical format."""
        return format_timestamp(self._clock())

    def subscribe(self, listener: Callable[[GraphObject], Any]) -> None:
        """Call ``listener(obj)`` after every successful create."""
        self._listeners.append(listener)

    def _notify_created(self, obj: GraphObject) -> None:
        # Runs after the row is committed. A failing listener is logged and
        # does not undo or fail the create.
        for listener in self._listeners:
            try:
                listener(obj)
            except Exception:
                logger.warning("Post-create hook failed for %s %s",
                               obj.type.value, obj.id, exc_info=True)

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def create(
        self,
        type: "ObjectType | str",
        title: str,
        content: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
        *,
        created_at: Optional[datetime] = None,
    ) -> GraphObject:
        """
        Insert a new object.

        Args:
            type: Object type
            title: 1-500 characters
            content: Optional body text
            properties: Property map, validated against the object type
            metadata: Optional ``tags`` (legacy) and ``favorited``
            created_at: Creation time; defaults to the store clock

        Returns:
            The stored GraphObject

        Raises:
            ValidationError: bad title, properties or metadata
            Conflict: a live daily note already exists for the same date
        """
        object_type = parse_object_type(type)
        validate_title(title)
        if content is not None and not isinstance(content, str):
            raise ValidationError("content must be a string")
        props = validate_properties(object_type, properties)
        meta = _validate_metadata(metadata)

        now = format_timestamp(created_at) if created_at else self._now()
        object_id = str(uuid.uuid4())
        try:
            self._db.execute(f"""
                INSERT INTO objects ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """, (
                object_id, object_type.value, title, content or "",
                json.dumps(props, ensure_ascii=False),
                dump_json(meta, "metadata"),
                now, now,
            ))
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e, f"Cannot create {object_type.value}") from e

        logger.debug("Created %s %s", object_type.value, object_id)
        obj = self.get_by_id(object_id)
        self._notify_created(obj)
        return obj

    def update(
        self,
        id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> GraphObject:
        """
        Update fields of an existing object.

        ``updated_at`` is refreshed even when nothing else changes.
        ``properties`` replaces the whole map; ``metadata`` merges.

        Raises:
            NotFound: no object with that id
            ValidationError: bad title or properties
        """
        existing = self.get_by_id(id)
        sets, params = ["updated_at = ?"], [self._now()]

        if title is not None:
            sets.append("title = ?")
            params.append(validate_title(title))
        if content is not None:
            if not isinstance(content, str):
                raise ValidationError("content must be a string")
            sets.append("content = ?")
            params.append(content)
        if properties is not None:
            props = validate_properties(existing.type, properties)
            sets.append("properties = ?")
            params.append(json.dumps(props, ensure_ascii=False))
        if metadata is not None:
            merged = {**existing.metadata.extra,
                      "tags": list(existing.metadata.tags),
                      "favorited": existing.metadata.favorited}
            merged.update(metadata)
            sets.append("metadata = ?")
            params.append(dump_json(_validate_metadata(merged), "metadata"))

        params.append(id)
        try:
            self._db.execute(
                f"UPDATE objects SET {', '.join(sets)} WHERE id = ?", params
            )
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e, f"Cannot update {id}") from e
        return self.get_by_id(id)

    def set_archived(self, id: str, archived: bool) -> GraphObject:
        """
        Soft-delete or restore an object.

        Raises:
            NotFound: no object with that id
            Conflict: restoring a daily note whose date is taken by a live note
        """
        try:
            cursor = self._db.execute("""
                UPDATE objects
                SET archived = ?, updated_at = ?
                WHERE id = ?
            """, (int(archived), self._now(), id))
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e, f"Cannot unarchive {id}") from e
        if cursor.rowcount == 0:
            raise NotFound(f"Object {id} not found")
        return self.get_by_id(id)

    def archive(self, id: str) -> GraphObject:
        return self.set_archived(id, True)

    def unarchive(self, id: str) -> GraphObject:
        return self.set_archived(id, False)

    def delete(self, id: str) -> None:
        """
        Hard-delete an object; its relations go with it.

        Raises:
            NotFound: no object with that id
        """
        cursor = self._db.execute("DELETE FROM objects WHERE id = ?", (id,))
        if cursor.rowcount == 0:
            raise NotFound(f"Object {id} not found")
        logger.debug("Deleted object %s", id)

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, id: str) -> Optional[GraphObject]:
        """
        Get an object by ID.

        Returns:
            GraphObject if found, None otherwise
        """
        row = self._db.fetchone(
            f"SELECT {_COLUMNS} FROM objects WHERE id = ?", (id,)
        )
        if row is None:
            return None
        return _row_to_object(row)

    def get_by_id(self, id: str) -> GraphObject:
        """Like get(), but raises NotFound for an unknown id."""
        obj = self.get(id)
        if obj is None:
            raise NotFound(f"Object {id} not found")
        return obj

    def get_many(self, ids: Sequence[str]) -> dict[str, GraphObject]:
        """
        Get multiple objects by ID.

        Returns:
            Dict mapping id → GraphObject (missing IDs omitted)
        """
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        rows = self._db.fetchall(
            f"SELECT {_COLUMNS} FROM objects WHERE id IN ({placeholders})",
            tuple(ids),
        )
        return {row["id"]: _row_to_object(row) for row in rows}

    def exists(self, id: str) -> bool:
        """Check if an object exists."""
        return self._db.fetchone(
            "SELECT 1 FROM objects WHERE id = ?", (id,)
        ) is not None

    def select(
        self,
        conditions: Sequence[Condition] = (),
        ordering: Optional[Ordering] = None,
        limit: Optional[int] = None,
    ) -> list[GraphObject]:
        """
        Run storage-evaluable conditions as one SELECT.

        Args:
            conditions: Conditions that all render to SQL
            ordering: Sort order (defaults to newest first)
            limit: Row cap; None or non-positive means unbounded
        """
        where, params = where_clause(conditions)
        ordering = ordering or Ordering()
        sql = f"SELECT {_COLUMNS} FROM objects {where} {ordering.to_sql()}"
        if limit is not None and limit > 0:
            sql += " LIMIT ?"
            params.append(limit)
        return [_row_to_object(row) for row in self._db.fetchall(sql, params)]

    def list_by_type(
        self,
        type: "ObjectType | str",
        *,
        archived: Optional[bool] = False,
        created_date_range: Optional[tuple[Optional[str], Optional[str]]] = None,
        sort: Optional[Ordering] = None,
        limit: Optional[int] = None,
    ) -> list[GraphObject]:
        """
        List objects of one type.

        Args:
            type: Object type
            archived: Archival state to match; None for both
            created_date_range: Inclusive (start, end) YYYY-MM-DD creation days
            sort: Ordering, newest first by default
            limit: Maximum number to return (None for all)
        """
        conditions: list[Condition] = [TypeIs(parse_object_type(type))]
        if archived is not None:
            conditions.append(ArchivedIs(archived))
        if created_date_range is not None:
            start, end = created_date_range
            conditions.append(CreatedBetween(
                validate_date_string(start) if start else None,
                validate_date_string(end) if end else None,
            ))
        return self.select(conditions, sort, limit)

    def list_recent(
        self,
        type: "ObjectType | str | None" = None,
        *,
        archived: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[GraphObject]:
        """Page through objects, most recently updated first."""
        conditions: list[Condition] = []
        if type is not None:
            conditions.append(TypeIs(parse_object_type(type)))
        if archived is not None:
            conditions.append(ArchivedIs(archived))
        where, params = where_clause(conditions)
        rows = self._db.fetchall(f"""
            SELECT {_COLUMNS} FROM objects {where}
            ORDER BY updated_at DESC, id DESC
            LIMIT ? OFFSET ?
        """, (*params, limit, offset))
        return [_row_to_object(row) for row in rows]

    def created_on(self, day: str) -> list[GraphObject]:
        """Objects whose UTC creation day is ``day``, newest first."""
        day = validate_date_string(day)
        return self.select([CreatedBetween(day, day)])

    def modified_on(self, day: str) -> list[GraphObject]:
        """Objects whose UTC last-modified day is ``day``, most recent first."""
        day = validate_date_string(day)
        return self.select([UpdatedBetween(day, day)], Ordering("updatedAt"))

    def find_daily_note(self, day: str) -> Optional[GraphObject]:
        """The live daily note for ``day``, if any."""
        row = self._db.fetchone(f"""
            SELECT {_COLUMNS} FROM objects
            WHERE type = 'daily-note' AND archived = 0
              AND json_extract(properties, '$.date.value') = ?
            LIMIT 1
        """, (day,))
        if row is None:
            return None
        return _row_to_object(row)

    def count(self, type: "ObjectType | str | None" = None) -> int:
        """Count objects, optionally of one type."""
        if type is None:
            row = self._db.fetchone("SELECT COUNT(*) FROM objects")
        else:
            row = self._db.fetchone(
                "SELECT COUNT(*) FROM objects WHERE type = ?",
                (parse_object_type(type).value,),
            )
        return row[0]
