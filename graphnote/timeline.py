"""
Timeline: daily notes and automatic ``created_on`` links.

Every object created gets linked to the daily note for its creation day
(UTC). Daily notes are themselves objects, one live note per date, created
on first reference.
"""

import logging
from datetime import datetime
from typing import Optional

from .errors import Conflict, NotFound
from .object_store import ObjectStore
from .predicates import IdIn, Ordering
from .relation_store import RelationStore
from .types import (
    GraphObject,
    ObjectType,
    Relation,
    RelationType,
    format_date_string,
    validate_date_string,
)

logger = logging.getLogger(__name__)


def daily_note_title(day: str) -> str:
    return f"Daily Note - {day}"


def today_string(now: datetime) -> str:
    """Format ``now`` as its UTC YYYY-MM-DD day."""
    return format_date_string(now)


class Timeline:
    """Daily-note resolution, auto-linking, and day-indexed lookups."""

    def __init__(self, objects: ObjectStore, relations: RelationStore):
        self._objects = objects
        self._relations = relations

    def attach(self) -> None:
        """Start auto-linking every object the object store creates."""
        self._objects.subscribe(self.on_object_created)

    def find_daily_note(self, day: str) -> Optional[GraphObject]:
        """The live daily note for ``day`` without creating one.

        Raises:
            InvalidDate: malformed or non-existent calendar date
        """
        return self._objects.find_daily_note(validate_date_string(day))

    def get_or_create_daily_note(self, day: str) -> GraphObject:
        """
        Get or create the daily note for ``day``.

        The database allows one live daily note per date. If a concurrent
        creator inserts first, our insert fails and we return theirs.

        Args:
            day: Date string in YYYY-MM-DD format

        Raises:
            InvalidDate: malformed or non-existent calendar date
        """
        validate_date_string(day)

        existing = self._objects.find_daily_note(day)
        if existing is not None:
            return existing

        try:
            note = self._objects.create(
                ObjectType.DAILY_NOTE,
                daily_note_title(day),
                "",
                {"date": {"type": "date", "value": day}},
            )
        except Conflict:
            winner = self._objects.find_daily_note(day)
            if winner is None:
                raise
            logger.debug("Lost daily note race for %s, using %s", day, winner.id)
            return winner

        logger.info("Created daily note %s for %s", note.id, day)
        return note

    def on_object_created(self, obj: GraphObject) -> Optional[Relation]:
        """
        Link a new object to the daily note of its creation day.

        The day comes from the object's own creation timestamp. Daily notes
        are not linked (they would link to themselves).

        Returns:
            The ``created_on`` relation, or None for daily notes
        """
        if obj.type is ObjectType.DAILY_NOTE:
            return None
        note = self.get_or_create_daily_note(obj.created_date)
        return self._relations.create(
            obj.id, note.id, RelationType.CREATED_ON, {"auto": True},
        )

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def objects_created_on_date(self, day: str) -> list[GraphObject]:
        """Objects whose creation day is ``day``, newest first."""
        return self._objects.created_on(day)

    def objects_modified_on_date(self, day: str) -> list[GraphObject]:
        """Objects whose last-modified day is ``day``, most recent first."""
        return self._objects.modified_on(day)

    def daily_note_timeline(self, daily_note_id: str) -> list[GraphObject]:
        """
        Objects with a ``created_on`` edge to the given daily note,
        oldest first.

        Raises:
            NotFound: no daily note with that id
        """
        note = self._objects.get(daily_note_id)
        if note is None or note.type is not ObjectType.DAILY_NOTE:
            raise NotFound(f"Daily note {daily_note_id} not found")
        ids = self._relations.source_ids(daily_note_id, RelationType.CREATED_ON)
        return self._objects.select(
            [IdIn(frozenset(ids))], Ordering("createdAt", descending=False)
        )
