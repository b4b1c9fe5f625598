"""
Relation store using SQLite.

Relations are directed, typed edges between two objects. Both endpoints
must exist when the edge is written; deleting either endpoint deletes the
edge (foreign key cascade). ``tagged_with`` and ``member_of`` edges are
unique per (from, to) pair.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from .db import Database
from .errors import Conflict, InvalidArgument, NotFound, ValidationError
from .types import (
    Direction,
    Relation,
    RelationType,
    dump_json,
    format_timestamp,
    parse_relation_type,
    utc_now,
)

logger = logging.getLogger(__name__)

_COLUMNS = "id, from_object_id, to_object_id, relation_type, metadata, created_at"


def _row_to_relation(row: sqlite3.Row) -> Relation:
    return Relation(
        id=row["id"],
        from_object_id=row["from_object_id"],
        to_object_id=row["to_object_id"],
        relation_type=RelationType(row["relation_type"]),
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
    )


class RelationStore:
    """SQLite-backed store for directed edges between objects."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self._db = db
        self._clock = clock

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def create(
        self,
        from_id: str,
        to_id: str,
        relation_type: "RelationType | str",
        metadata: Optional[dict[str, Any]] = None,
    ) -> Relation:
        """
        Insert an edge ``from_id -> to_id``.

        Raises:
            NotFound: either endpoint does not exist
            Conflict: a unique edge kind already links the pair
            ValidationError: unknown relation type or non-dict metadata
        """
        rtype = parse_relation_type(relation_type)
        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            raise ValidationError("relation metadata must be a mapping")
        metadata_json = dump_json(metadata, "relation metadata")

        relation_id = str(uuid.uuid4())
        now = format_timestamp(self._clock())
        try:
            self._db.execute(f"""
                INSERT INTO relations ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                relation_id, from_id, to_id, rtype.value,
                metadata_json, now,
            ))
        except sqlite3.IntegrityError as e:
            msg = str(e)
            if "FOREIGN KEY" in msg:
                missing = [i for i in (from_id, to_id) if not self._object_exists(i)]
                raise NotFound(
                    f"Object {', '.join(missing) or from_id} not found"
                ) from e
            if "UNIQUE" in msg:
                raise Conflict(
                    f"{from_id} already has a {rtype.value} relation to {to_id}"
                ) from e
            raise ValidationError(f"Cannot create relation: {msg}") from e

        logger.debug("Created relation %s %s -> %s", rtype.value, from_id, to_id)
        return Relation(
            id=relation_id,
            from_object_id=from_id,
            to_object_id=to_id,
            relation_type=rtype,
            metadata=metadata,
            created_at=now,
        )

    def delete(
        self,
        id: Optional[str] = None,
        *,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None,
        relation_type: "RelationType | str | None" = None,
    ) -> int:
        """
        Delete edges by id, or by any combination of endpoint and type.

        Returns:
            Number of edges deleted (0 is not an error)

        Raises:
            InvalidArgument: no criteria given
        """
        clauses, params = [], []
        if id is not None:
            clauses.append("id = ?")
            params.append(id)
        if from_id is not None:
            clauses.append("from_object_id = ?")
            params.append(from_id)
        if to_id is not None:
            clauses.append("to_object_id = ?")
            params.append(to_id)
        if relation_type is not None:
            clauses.append("relation_type = ?")
            params.append(parse_relation_type(relation_type).value)
        if not clauses:
            raise InvalidArgument("Refusing to delete relations without criteria")

        cursor = self._db.execute(
            f"DELETE FROM relations WHERE {' AND '.join(clauses)}", params
        )
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def _object_exists(self, id: str) -> bool:
        return self._db.fetchone(
            "SELECT 1 FROM objects WHERE id = ?", (id,)
        ) is not None

    def get(self, id: str) -> Optional[Relation]:
        row = self._db.fetchone(
            f"SELECT {_COLUMNS} FROM relations WHERE id = ?", (id,)
        )
        return _row_to_relation(row) if row else None

    def find(
        self,
        object_id: str,
        relation_type: "RelationType | str | None" = None,
        direction: "Direction | str" = Direction.BOTH,
    ) -> list[Relation]:
        """
        Edges touching ``object_id``.

        Args:
            object_id: Anchor object
            relation_type: Restrict to one edge kind
            direction: ``from`` (outgoing), ``to`` (incoming) or ``both``

        Returns:
            Relations ordered by creation time, oldest first. With ``both``,
            a self-loop appears once.
        """
        direction = Direction(direction)
        if direction is Direction.FROM:
            anchor, params = "from_object_id = ?", [object_id]
        elif direction is Direction.TO:
            anchor, params = "to_object_id = ?", [object_id]
        else:
            anchor, params = "(from_object_id = ? OR to_object_id = ?)", [object_id, object_id]

        sql = f"SELECT {_COLUMNS} FROM relations WHERE {anchor}"
        if relation_type is not None:
            sql += " AND relation_type = ?"
            params.append(parse_relation_type(relation_type).value)
        sql += " ORDER BY created_at, id"
        return [_row_to_relation(row) for row in self._db.fetchall(sql, params)]

    def related_ids(
        self,
        object_id: str,
        relation_type: "RelationType | str | None" = None,
        direction: "Direction | str" = Direction.BOTH,
    ) -> list[str]:
        """Ids at the other end of each matching edge, first-seen order, no repeats."""
        seen: dict[str, None] = {}
        for rel in self.find(object_id, relation_type, direction):
            seen.setdefault(rel.other_end(object_id), None)
        return list(seen)

    def exists(
        self,
        from_id: str,
        to_id: str,
        relation_type: "RelationType | str",
    ) -> bool:
        """Check if a specific directed edge exists."""
        return self._db.fetchone("""
            SELECT 1 FROM relations
            WHERE from_object_id = ? AND to_object_id = ? AND relation_type = ?
            LIMIT 1
        """, (from_id, to_id, parse_relation_type(relation_type).value)) is not None

    def source_ids(self, to_id: str, relation_type: "RelationType | str") -> set[str]:
        """Ids of every object with an edge of ``relation_type`` into ``to_id``."""
        rows = self._db.fetchall("""
            SELECT from_object_id FROM relations
            WHERE to_object_id = ? AND relation_type = ?
        """, (to_id, parse_relation_type(relation_type).value))
        return {row["from_object_id"] for row in rows}

    def count(self, relation_type: "RelationType | str | None" = None) -> int:
        """Count relations, optionally of one type."""
        if relation_type is None:
            row = self._db.fetchone("SELECT COUNT(*) FROM relations")
        else:
            row = self._db.fetchone(
                "SELECT COUNT(*) FROM relations WHERE relation_type = ?",
                (parse_relation_type(relation_type).value,),
            )
        return row[0]
