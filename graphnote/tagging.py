"""
Tags and collections, both built on relations.

Tags group across types: an object is tagged when it has a ``tagged_with``
edge to a tag object. Collections group within one type: an object is a
member when it has a ``member_of`` edge to a collection object, and only
objects of the collection's ``objectType`` may join.
"""

import logging
from typing import Any, Optional

from .errors import NotFound, TypeMismatch
from .object_store import ObjectStore
from .predicates import ArchivedIs, IdIn, Ordering, TitleIs, TypeIs
from .relation_store import RelationStore
from .types import GraphObject, ObjectType, Relation, RelationType, parse_object_type

logger = logging.getLogger(__name__)


def _linked_objects(
    objects: ObjectStore,
    relations: RelationStore,
    to_id: str,
    relation_type: RelationType,
) -> list[GraphObject]:
    """Live objects with an edge of ``relation_type`` into ``to_id``, newest first."""
    ids = relations.source_ids(to_id, relation_type)
    return objects.select([IdIn(frozenset(ids)), ArchivedIs(False)])


def _linked_targets(
    objects: ObjectStore,
    relations: RelationStore,
    from_id: str,
    relation_type: RelationType,
    target_type: ObjectType,
) -> list[GraphObject]:
    ids = relations.related_ids(from_id, relation_type, "from")
    return objects.select([IdIn(frozenset(ids)), TypeIs(target_type)])


class Tags:
    """Tag objects and ``tagged_with`` edges."""

    def __init__(self, objects: ObjectStore, relations: RelationStore):
        self._objects = objects
        self._relations = relations

    def create_tag(
        self,
        title: str,
        *,
        content: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        **extra: Any,
    ) -> GraphObject:
        props = {k: v for k, v in {
            "color": color, "icon": icon,
            "description": description, "category": category,
        }.items() if v is not None}
        props.update(extra)
        return self._objects.create(ObjectType.TAG, title, content, props)

    def get_tag(self, tag_id: str) -> GraphObject:
        """
        Raises:
            NotFound: no tag with that id
        """
        tag = self._objects.get(tag_id)
        if tag is None or tag.type is not ObjectType.TAG:
            raise NotFound(f"Tag {tag_id} not found")
        return tag

    def list_tags(self) -> list[GraphObject]:
        """Live tags, newest first."""
        return self._objects.list_by_type(ObjectType.TAG)

    def find_tag_by_name(self, name: str) -> Optional[GraphObject]:
        """The oldest live tag titled ``name``, if any."""
        matches = self._objects.select(
            [TypeIs(ObjectType.TAG), ArchivedIs(False), TitleIs(name)],
            Ordering("createdAt", descending=False),
            limit=1,
        )
        return matches[0] if matches else None

    def tag_object(self, object_id: str, tag_id: str) -> Relation:
        """
        Tag an object.

        Raises:
            NotFound: object or tag missing
            Conflict: object already carries this tag
        """
        self._objects.get_by_id(object_id)
        self.get_tag(tag_id)
        relation = self._relations.create(object_id, tag_id, RelationType.TAGGED_WITH)
        logger.info("Tagged %s with %s", object_id, tag_id)
        return relation

    def untag_object(self, object_id: str, tag_id: str) -> bool:
        """
        Remove a tag from an object.

        Removing a tag the object doesn't carry is a no-op.

        Returns:
            True if an edge was removed
        """
        removed = self._relations.delete(
            from_id=object_id, to_id=tag_id, relation_type=RelationType.TAGGED_WITH,
        )
        return removed > 0

    def objects_by_tag(self, tag_id: str) -> list[GraphObject]:
        """Live objects carrying the tag, newest first."""
        return _linked_objects(self._objects, self._relations, tag_id, RelationType.TAGGED_WITH)

    def tags_for_object(self, object_id: str) -> list[GraphObject]:
        """Tags applied to an object, newest first."""
        return _linked_targets(
            self._objects, self._relations, object_id,
            RelationType.TAGGED_WITH, ObjectType.TAG,
        )

    def tagged_ids(self, tag_id: str) -> set[str]:
        """Ids of every object carrying the tag, archived or not."""
        return self._relations.source_ids(tag_id, RelationType.TAGGED_WITH)


class Collections:
    """Collection objects and type-checked ``member_of`` edges."""

    def __init__(self, objects: ObjectStore, relations: RelationStore):
        self._objects = objects
        self._relations = relations

    def create_collection(
        self,
        title: str,
        object_type: "ObjectType | str",
        *,
        content: Optional[str] = None,
        **properties: Any,
    ) -> GraphObject:
        props = {"objectType": parse_object_type(object_type).value}
        props.update(properties)
        return self._objects.create(ObjectType.COLLECTION, title, content, props)

    def get_collection(self, collection_id: str) -> GraphObject:
        """
        Raises:
            NotFound: no collection with that id
        """
        collection = self._objects.get(collection_id)
        if collection is None or collection.type is not ObjectType.COLLECTION:
            raise NotFound(f"Collection {collection_id} not found")
        return collection

    def list_collections(self, object_type: "ObjectType | str | None" = None) -> list[GraphObject]:
        """Live collections, newest first, optionally only those for ``object_type``."""
        collections = self._objects.list_by_type(ObjectType.COLLECTION)
        if object_type is None:
            return collections
        wanted = parse_object_type(object_type).value
        return [c for c in collections if c.properties.get("objectType") == wanted]

    def add_object(self, object_id: str, collection_id: str) -> Relation:
        """
        Add an object to a collection.

        Raises:
            NotFound: object or collection missing
            TypeMismatch: object type differs from the collection's objectType
            Conflict: object is already a member
        """
        collection = self.get_collection(collection_id)
        target = self._objects.get_by_id(object_id)
        expected = collection.properties.get("objectType")
        if target.type.value != expected:
            raise TypeMismatch(
                f"Object type {target.type.value} does not match "
                f"collection's objectType {expected}"
            )
        relation = self._relations.create(object_id, collection_id, RelationType.MEMBER_OF)
        logger.info("Added %s to collection %s", object_id, collection_id)
        return relation

    def remove_object(self, object_id: str, collection_id: str) -> bool:
        """Remove an object from a collection; a no-op if it isn't a member."""
        removed = self._relations.delete(
            from_id=object_id, to_id=collection_id, relation_type=RelationType.MEMBER_OF,
        )
        return removed > 0

    def objects_in_collection(self, collection_id: str) -> list[GraphObject]:
        """Live members, newest first."""
        return _linked_objects(self._objects, self._relations, collection_id, RelationType.MEMBER_OF)

    def collections_for_object(self, object_id: str) -> list[GraphObject]:
        return _linked_targets(
            self._objects, self._relations, object_id,
            RelationType.MEMBER_OF, ObjectType.COLLECTION,
        )
