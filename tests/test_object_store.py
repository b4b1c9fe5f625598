"""
Tests for ObjectStore on a real SQLite database.

The store fixture has no timeline attached, so nothing is created besides
what each test creates.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from graphnote.errors import NotFound, ValidationError
from graphnote.predicates import Ordering
from graphnote.types import ObjectType

from conftest import utc


class TestCreate:

    def test_create_and_get(self, objects):
        obj = objects.create("task", "Write report", "Draft first", {
            "status": {"type": "select", "value": "open", "config": {"options": ["open", "done"]}},
        })
        assert obj.type is ObjectType.TASK
        assert obj.title == "Write report"
        assert obj.content == "Draft first"
        assert obj.archived is False
        assert objects.get_by_id(obj.id) == obj

    def test_timestamps_set_by_store(self, objects):
        obj = objects.create("page", "P", metadata={"createdAt": "1999-01-01T00:00:00"})
        assert obj.created_at == "2025-03-01T09:00:00.000000"
        assert obj.updated_at == obj.created_at
        assert obj.metadata.extra == {}

    def test_content_defaults_to_empty(self, objects):
        assert objects.create("page", "P").content == ""

    def test_explicit_created_at(self, objects):
        obj = objects.create("project", "P1", created_at=utc(2025, 1, 15, 10, 0))
        assert obj.created_at == "2025-01-15T10:00:00.000000"
        assert obj.created_date == "2025-01-15"

    def test_derived_day_is_utc(self, objects):
        eastern = timezone(timedelta(hours=-5))
        obj = objects.create("task", "Late", created_at=datetime(2025, 1, 15, 22, 0, tzinfo=eastern))
        assert obj.created_date == "2025-01-16"

    def test_derived_column_matches_timestamp(self, objects, db):
        obj = objects.create("task", "T")
        row = db.fetchone(
            "SELECT created_at, created_date, updated_date FROM objects WHERE id = ?", (obj.id,)
        )
        assert row["created_date"] == row["created_at"][:10]
        assert row["updated_date"] == obj.metadata.updated_date

    @pytest.mark.parametrize("title", ["", "   ", "x" * 501, None])
    def test_bad_title(self, objects, title):
        with pytest.raises(ValidationError):
            objects.create("task", title)
        assert objects.count() == 0

    def test_bad_properties_store_nothing(self, objects):
        with pytest.raises(ValidationError):
            objects.create("task", "T", properties={"n": {"type": "number", "value": "x"}})
        assert objects.count() == 0

    def test_unknown_type(self, objects):
        with pytest.raises(ValidationError):
            objects.create("widget", "W")

    def test_metadata_tags_deduplicated(self, objects):
        obj = objects.create("page", "P", metadata={"tags": ["a", "b", "a"], "favorited": True})
        assert obj.metadata.tags == ("a", "b")
        assert obj.metadata.favorited is True

    def test_metadata_favorited_must_be_bool(self, objects):
        with pytest.raises(ValidationError):
            objects.create("page", "P", metadata={"favorited": "yes"})

    def test_metadata_must_be_json(self, objects):
        with pytest.raises(ValidationError, match="JSON"):
            objects.create("page", "P", metadata={"seen": datetime.now(timezone.utc)})
        with pytest.raises(ValidationError):
            objects.create("page", "P", metadata={"score": float("nan")})
        assert objects.count() == 0


class TestListeners:

    def test_listener_called_once_per_create(self, objects):
        seen = []
        objects.subscribe(seen.append)
        obj = objects.create("task", "T")
        assert seen == [obj]

    def test_listener_not_called_on_failed_create(self, objects):
        seen = []
        objects.subscribe(seen.append)
        with pytest.raises(ValidationError):
            objects.create("task", "")
        assert seen == []

    def test_failing_listener_does_not_fail_create(self, objects, caplog):
        def boom(obj):
            raise RuntimeError("hook exploded")

        objects.subscribe(boom)
        with caplog.at_level(logging.WARNING, logger="graphnote"):
            obj = objects.create("task", "Survives")
        assert objects.get(obj.id) is not None
        assert "Post-create hook failed" in caplog.text


class TestUpdate:

    def test_updated_at_refreshed_without_changes(self, objects):
        obj = objects.create("task", "T")
        updated = objects.update(obj.id)
        assert updated.updated_at > obj.updated_at
        assert updated.created_at == obj.created_at
        assert updated.title == "T"

    def test_update_fields(self, objects):
        obj = objects.create("task", "T", properties={"n": {"type": "number", "value": 1}})
        updated = objects.update(
            obj.id, title="T2", content="body",
            properties={"done": {"type": "checkbox", "value": True}},
        )
        assert updated.title == "T2"
        assert updated.content == "body"
        # properties replace, not merge
        assert updated.properties == {"done": {"type": "checkbox", "value": True}}

    def test_metadata_merges(self, objects):
        obj = objects.create("page", "P", metadata={"tags": ["a"], "source": "import"})
        updated = objects.update(obj.id, metadata={"favorited": True})
        assert updated.metadata.tags == ("a",)
        assert updated.metadata.favorited is True
        assert updated.metadata.extra == {"source": "import"}

    def test_update_validates(self, objects):
        obj = objects.create("task", "T")
        with pytest.raises(ValidationError):
            objects.update(obj.id, title="")
        with pytest.raises(ValidationError):
            objects.update(obj.id, properties={"d": {"type": "date", "value": "soon"}})
        assert objects.get_by_id(obj.id).title == "T"

    def test_update_missing(self, objects):
        with pytest.raises(NotFound):
            objects.update("missing", title="x")


class TestArchiveAndDelete:

    def test_archive_round_trip(self, objects):
        obj = objects.create("task", "T")
        archived = objects.archive(obj.id)
        assert archived.archived is True
        assert archived.updated_at > obj.updated_at
        assert objects.unarchive(obj.id).archived is False

    def test_archive_missing(self, objects):
        with pytest.raises(NotFound):
            objects.archive("missing")

    def test_delete(self, objects):
        obj = objects.create("task", "T")
        objects.delete(obj.id)
        assert objects.get(obj.id) is None
        assert not objects.exists(obj.id)
        with pytest.raises(NotFound):
            objects.delete(obj.id)

    def test_get_by_id_missing(self, objects):
        assert objects.get("missing") is None
        with pytest.raises(NotFound):
            objects.get_by_id("missing")


class TestListing:

    @pytest.fixture
    def projects(self, objects):
        return [
            objects.create("project", "Bravo", created_at=utc(2025, 1, 14, 12, 0)),
            objects.create("project", "Alpha", created_at=utc(2025, 1, 15, 0, 0)),
            objects.create("project", "Charlie", created_at=utc(2025, 1, 15, 23, 59, 59)),
            objects.create("project", "Delta", created_at=utc(2025, 1, 16, 0, 0)),
        ]

    def test_newest_first_by_default(self, objects, projects):
        listed = objects.list_by_type("project")
        assert [o.title for o in listed] == ["Delta", "Charlie", "Alpha", "Bravo"]

    def test_excludes_other_types_and_archived(self, objects, projects):
        objects.create("task", "Not a project")
        objects.archive(projects[0].id)
        listed = objects.list_by_type(ObjectType.PROJECT)
        assert projects[0].id not in {o.id for o in listed}
        assert len(listed) == 3
        assert [o.id for o in objects.list_by_type("project", archived=True)] == [projects[0].id]
        assert len(objects.list_by_type("project", archived=None)) == 4

    def test_created_date_range_inclusive_days(self, objects, projects):
        listed = objects.list_by_type("project", created_date_range=("2025-01-15", "2025-01-15"))
        assert {o.title for o in listed} == {"Alpha", "Charlie"}

    def test_open_ended_range(self, objects, projects):
        listed = objects.list_by_type("project", created_date_range=("2025-01-15", None))
        assert {o.title for o in listed} == {"Alpha", "Charlie", "Delta"}

    def test_range_validates_days(self, objects, projects):
        with pytest.raises(ValidationError):
            objects.list_by_type("project", created_date_range=("2025-02-30", None))

    def test_sort_and_limit(self, objects, projects):
        listed = objects.list_by_type(
            "project", sort=Ordering("title", descending=False), limit=2,
        )
        assert [o.title for o in listed] == ["Alpha", "Bravo"]

    def test_non_positive_limit_is_unbounded(self, objects, projects):
        assert len(objects.list_by_type("project", limit=0)) == 4
        assert len(objects.list_by_type("project", limit=-1)) == 4

    def test_ties_broken_by_id(self, objects):
        same = utc(2025, 2, 1, 8, 0)
        made = [objects.create("page", f"P{i}", created_at=same) for i in range(5)]
        asc = objects.list_by_type("page", sort=Ordering("createdAt", descending=False))
        assert [o.id for o in asc] == sorted(o.id for o in made)

    def test_created_on_and_modified_on(self, objects, projects, clock):
        assert {o.title for o in objects.created_on("2025-01-15")} == {"Alpha", "Charlie"}
        clock.set(utc(2025, 2, 1, 10, 0))
        objects.update(projects[0].id, title="Bravo 2")
        assert [o.id for o in objects.modified_on("2025-02-01")] == [projects[0].id]

    def test_list_recent_orders_by_update(self, objects, projects):
        objects.update(projects[0].id, content="touched")
        recent = objects.list_recent(limit=2)
        assert recent[0].id == projects[0].id
        assert len(recent) == 2
        assert len(objects.list_recent("project", offset=3)) == 1

    def test_count(self, objects, projects):
        objects.create("task", "T")
        assert objects.count() == 5
        assert objects.count("project") == 4
