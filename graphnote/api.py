"""
Core API for the knowledge graph.

Graph is the single entry point: it opens (or creates) a store, wires the
object and relation stores to the timeline, tag, collection and query
services, and exposes their operations.

Example:
    with Graph("~/notes") as g:
        task = g.create_object("task", "Write report")
        g.objects_created_on_date(task.created_date)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from .backend import create_stores
from .config import StoreConfig, get_store_path, load_or_create_config
from .errors import NotFound
from .logging_config import configure_ops_log, remove_ops_log
from .predicates import Ordering
from .query import QueryEngine
from .tagging import Collections, Tags
from .timeline import Timeline, today_string
from .types import (
    Direction,
    GraphObject,
    ObjectType,
    Relation,
    RelationType,
    utc_now,
)

logger = logging.getLogger(__name__)


class Graph:
    """
    Personal knowledge graph: typed objects, typed relations, daily-note
    timeline, tags, collections and saved queries.
    """

    def __init__(
        self,
        store_path: Optional["str | Path"] = None,
        *,
        config: Optional[StoreConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        auto_link: Optional[bool] = None,
    ) -> None:
        """
        Initialize or open an existing graph store.

        Args:
            store_path: Store directory. Falls back to GRAPHNOTE_STORE_PATH,
                then ~/.graphnote.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            clock: Source of "now" for timestamps; inject a fixed clock in tests.
            auto_link: Override the config's ``timeline.auto_link``.
        """
        if config is not None:
            self._config = config
        else:
            self._config = load_or_create_config(get_store_path(store_path))
        self._store_path = self._config.path
        self._clock = clock

        bundle = create_stores(self._config, clock)
        self._db = bundle.db
        self._is_local = bundle.is_local
        self.objects = bundle.objects
        self.relations = bundle.relations

        self._ops_log_handler = None
        if self._is_local:
            self._ops_log_handler = configure_ops_log(self._store_path)

        self.timeline = Timeline(self.objects, self.relations)
        self.tags = Tags(self.objects, self.relations)
        self.collections = Collections(self.objects, self.relations)
        self.queries = QueryEngine(self.objects, self.relations, self.tags)

        if auto_link is None:
            auto_link = self._config.auto_link
        if auto_link:
            self.timeline.attach()

        logger.debug("Opened graph at %s", self._store_path)

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    def today(self) -> str:
        """Today's UTC date per the graph clock."""
        return today_string(self._clock())

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def create_object(
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
        Create an object. Unless it is a daily note, it is then linked to
        the daily note for its creation day.
        """
        obj = self.objects.create(
            type, title, content, properties, metadata, created_at=created_at,
        )
        logger.info("Created %s %s", obj.type.value, obj.id)
        return obj

    def get(self, id: str) -> Optional[GraphObject]:
        return self.objects.get(id)

    def get_by_id(self, id: str) -> GraphObject:
        return self.objects.get_by_id(id)

    def update(self, id: str, **changes: Any) -> GraphObject:
        """Update title, content, properties or metadata of an object."""
        obj = self.objects.update(id, **changes)
        logger.info("Updated %s", id)
        return obj

    def archive(self, id: str) -> GraphObject:
        obj = self.objects.archive(id)
        logger.info("Archived %s", id)
        return obj

    def unarchive(self, id: str) -> GraphObject:
        obj = self.objects.unarchive(id)
        logger.info("Unarchived %s", id)
        return obj

    def delete(self, id: str) -> None:
        """Hard-delete an object and every relation touching it."""
        self.objects.delete(id)
        logger.info("Deleted %s", id)

    def list_by_type(
        self,
        type: "ObjectType | str",
        *,
        archived: Optional[bool] = False,
        created_date_range: Optional[tuple[Optional[str], Optional[str]]] = None,
        sort: Optional[dict[str, str]] = None,
        limit: Optional[int] = None,
    ) -> list[GraphObject]:
        """
        List objects of one type.

        ``sort`` takes the same ``{"field": ..., "order": ...}`` shape as a
        saved query.
        """
        ordering = None
        if sort is not None:
            ordering = Ordering(
                sort.get("field", "createdAt"),
                descending=sort.get("order", "desc") == "desc",
            )
        return self.objects.list_by_type(
            type, archived=archived, created_date_range=created_date_range,
            sort=ordering, limit=limit,
        )

    def list_recent(
        self,
        type: "ObjectType | str | None" = None,
        *,
        archived: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[GraphObject]:
        return self.objects.list_recent(type, archived=archived, limit=limit, offset=offset)

    def count(self, type: "ObjectType | str | None" = None) -> int:
        return self.objects.count(type)

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def relate(
        self,
        from_id: str,
        to_id: str,
        relation_type: "RelationType | str",
        metadata: Optional[dict[str, Any]] = None,
    ) -> Relation:
        relation = self.relations.create(from_id, to_id, relation_type, metadata)
        logger.info("Related %s -%s-> %s", from_id, relation.relation_type.value, to_id)
        return relation

    def find_relations(
        self,
        object_id: str,
        relation_type: "RelationType | str | None" = None,
        direction: "Direction | str" = Direction.BOTH,
    ) -> list[Relation]:
        return self.relations.find(object_id, relation_type, direction)

    def related_objects(
        self,
        object_id: str,
        relation_type: "RelationType | str | None" = None,
        direction: "Direction | str" = Direction.BOTH,
    ) -> list[GraphObject]:
        """Objects at the other end of each matching relation."""
        ids = self.relations.related_ids(object_id, relation_type, direction)
        found = self.objects.get_many(ids)
        return [found[i] for i in ids if i in found]

    def relation_exists(
        self, from_id: str, to_id: str, relation_type: "RelationType | str"
    ) -> bool:
        return self.relations.exists(from_id, to_id, relation_type)

    def delete_relations(
        self,
        id: Optional[str] = None,
        *,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None,
        relation_type: "RelationType | str | None" = None,
    ) -> int:
        removed = self.relations.delete(
            id, from_id=from_id, to_id=to_id, relation_type=relation_type,
        )
        logger.info("Deleted %d relation(s)", removed)
        return removed

    # -------------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------------

    def get_or_create_daily_note(self, day: str) -> GraphObject:
        return self.timeline.get_or_create_daily_note(day)

    def find_daily_note(self, day: str) -> Optional[GraphObject]:
        return self.timeline.find_daily_note(day)

    def objects_created_on_date(self, day: str) -> list[GraphObject]:
        return self.timeline.objects_created_on_date(day)

    def objects_modified_on_date(self, day: str) -> list[GraphObject]:
        return self.timeline.objects_modified_on_date(day)

    def daily_note_timeline(self, daily_note_id: str) -> list[GraphObject]:
        return self.timeline.daily_note_timeline(daily_note_id)

    # -------------------------------------------------------------------------
    # Tags and collections
    # -------------------------------------------------------------------------

    def create_tag(self, title: str, **kwargs: Any) -> GraphObject:
        return self.tags.create_tag(title, **kwargs)

    def list_tags(self) -> list[GraphObject]:
        return self.tags.list_tags()

    def get_tag(self, tag_id: str) -> GraphObject:
        return self.tags.get_tag(tag_id)

    def find_tag_by_name(self, name: str) -> Optional[GraphObject]:
        return self.tags.find_tag_by_name(name)

    def tag_object(self, object_id: str, tag_id: str) -> Relation:
        return self.tags.tag_object(object_id, tag_id)

    def untag_object(self, object_id: str, tag_id: str) -> bool:
        return self.tags.untag_object(object_id, tag_id)

    def objects_by_tag(self, tag_id: str) -> list[GraphObject]:
        return self.tags.objects_by_tag(tag_id)

    def tags_for_object(self, object_id: str) -> list[GraphObject]:
        return self.tags.tags_for_object(object_id)

    def create_collection(
        self, title: str, object_type: "ObjectType | str", **kwargs: Any
    ) -> GraphObject:
        return self.collections.create_collection(title, object_type, **kwargs)

    def list_collections(
        self, object_type: "ObjectType | str | None" = None
    ) -> list[GraphObject]:
        return self.collections.list_collections(object_type)

    def get_collection(self, collection_id: str) -> GraphObject:
        return self.collections.get_collection(collection_id)

    def add_object_to_collection(self, object_id: str, collection_id: str) -> Relation:
        return self.collections.add_object(object_id, collection_id)

    def remove_object_from_collection(self, object_id: str, collection_id: str) -> bool:
        return self.collections.remove_object(object_id, collection_id)

    def objects_in_collection(self, collection_id: str) -> list[GraphObject]:
        return self.collections.objects_in_collection(collection_id)

    def collections_for_object(self, object_id: str) -> list[GraphObject]:
        return self.collections.collections_for_object(object_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def create_query(
        self,
        title: str,
        properties: dict[str, Any],
        content: Optional[str] = None,
    ) -> GraphObject:
        """Save a query. ``properties`` holds queryType, filters, sort and limit."""
        return self.create_object(ObjectType.QUERY, title, content, properties)

    def list_queries(self) -> list[GraphObject]:
        """Live saved queries, newest first."""
        return self.objects.list_by_type(ObjectType.QUERY)

    def get_query(self, query_id: str) -> GraphObject:
        """
        Raises:
            NotFound: no query with that id
        """
        query = self.objects.get(query_id)
        if query is None or query.type is not ObjectType.QUERY:
            raise NotFound(f"Query {query_id} not found")
        return query

    def update_query(
        self,
        query_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> GraphObject:
        self.get_query(query_id)
        return self.objects.update(
            query_id, title=title, content=content, properties=properties,
        )

    def delete_query(self, query_id: str) -> None:
        self.get_query(query_id)
        self.objects.delete(query_id)

    def execute_query(self, query_id: str) -> list[GraphObject]:
        """
        Run a saved query against the current store.

        Raises:
            NotFound: no query with that id
            UnsupportedQueryType: the query's queryType cannot be executed
        """
        return self.queries.execute_query(self.get_query(query_id))

    def test_query(
        self,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[GraphObject]:
        """Preview a query without saving it."""
        return self.queries.test_query(filters, sort, limit)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database and detach the operations log."""
        if getattr(self, "_db", None) is not None:
            self._db.close()
            self._db = None
        if getattr(self, "_ops_log_handler", None) is not None:
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass  # Suppress errors during garbage collection
