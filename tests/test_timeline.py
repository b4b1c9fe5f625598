"""
Tests for daily notes and automatic created_on links.

Uses the wired ``graph`` fixture, so every object created is linked to the
daily note of its creation day.
"""

import logging

import pytest

from graphnote.errors import Conflict, InvalidDate, NotFound
from graphnote.timeline import daily_note_title, today_string
from graphnote.types import ObjectType, RelationType

from conftest import utc


def created_on_edges(graph, obj):
    return graph.find_relations(obj.id, RelationType.CREATED_ON, "from")


class TestDailyNotes:

    def test_get_or_create_is_idempotent(self, graph):
        first = graph.get_or_create_daily_note("2025-01-15")
        second = graph.get_or_create_daily_note("2025-01-15")
        assert first.id == second.id
        assert graph.count(ObjectType.DAILY_NOTE) == 1

    def test_note_shape(self, graph):
        note = graph.get_or_create_daily_note("2025-01-15")
        assert note.type is ObjectType.DAILY_NOTE
        assert note.title == daily_note_title("2025-01-15") == "Daily Note - 2025-01-15"
        assert note.content == ""
        assert note.properties == {"date": {"type": "date", "value": "2025-01-15"}}

    def test_different_days_different_notes(self, graph):
        a = graph.get_or_create_daily_note("2025-01-15")
        b = graph.get_or_create_daily_note("2025-01-16")
        assert a.id != b.id

    @pytest.mark.parametrize("bad", ["2025-13-01", "2025-02-30", "not-a-date"])
    def test_invalid_dates_create_nothing(self, graph, bad):
        before = graph.count()
        with pytest.raises(InvalidDate) as exc_info:
            graph.get_or_create_daily_note(bad)
        assert exc_info.value.value == bad
        assert graph.count() == before

    def test_archived_note_replaced(self, graph):
        old = graph.get_or_create_daily_note("2025-01-15")
        graph.archive(old.id)
        new = graph.get_or_create_daily_note("2025-01-15")
        assert new.id != old.id
        # Restoring the old one would make two live notes for one date
        with pytest.raises(Conflict):
            graph.unarchive(old.id)

    def test_second_live_note_rejected_by_store(self, graph):
        graph.get_or_create_daily_note("2025-01-15")
        with pytest.raises(Conflict):
            graph.create_object(
                "daily-note", "Another", properties={"date": {"type": "date", "value": "2025-01-15"}},
            )

    def test_lost_race_returns_winner(self, graph, monkeypatch):
        winner = graph.get_or_create_daily_note("2025-01-15")
        real_find = graph.objects.find_daily_note
        calls = []

        def stale_then_real(day):
            calls.append(day)
            # First lookup misses, as if another writer hadn't committed yet
            return None if len(calls) == 1 else real_find(day)

        monkeypatch.setattr(graph.objects, "find_daily_note", stale_then_real)
        assert graph.get_or_create_daily_note("2025-01-15").id == winner.id
        assert len(calls) == 2
        assert graph.count(ObjectType.DAILY_NOTE) == 1

    def test_find_does_not_create(self, graph):
        assert graph.find_daily_note("2025-01-15") is None
        assert graph.count(ObjectType.DAILY_NOTE) == 0
        note = graph.get_or_create_daily_note("2025-01-15")
        assert graph.find_daily_note("2025-01-15").id == note.id
        with pytest.raises(InvalidDate):
            graph.find_daily_note("2025-02-30")

    def test_today_string(self):
        assert today_string(utc(2025, 1, 15, 23, 59)) == "2025-01-15"


class TestAutoLink:

    def test_exactly_one_created_on_edge(self, graph):
        task = graph.create_object("task", "T")
        edges = created_on_edges(graph, task)
        assert len(edges) == 1
        note = graph.get_by_id(edges[0].to_object_id)
        assert note.type is ObjectType.DAILY_NOTE
        assert note.properties["date"]["value"] == task.created_date
        assert edges[0].metadata == {"auto": True}

    def test_daily_notes_not_linked(self, graph):
        note = graph.get_or_create_daily_note("2025-01-15")
        assert created_on_edges(graph, note) == []
        explicit = graph.create_object(
            "daily-note", "Daily Note - 2025-01-20",
            properties={"date": {"type": "date", "value": "2025-01-20"}},
        )
        assert created_on_edges(graph, explicit) == []

    def test_links_to_creation_day_not_clock_day(self, graph, clock):
        clock.set(utc(2025, 3, 1, 9, 0))
        p1 = graph.create_object("project", "P1", created_at=utc(2025, 1, 15, 10, 0))
        edges = created_on_edges(graph, p1)
        assert graph.get_by_id(edges[0].to_object_id).properties["date"]["value"] == "2025-01-15"

    def test_same_day_objects_share_note(self, graph):
        a = graph.create_object("task", "A")
        b = graph.create_object("page", "B")
        assert created_on_edges(graph, a)[0].to_object_id == created_on_edges(graph, b)[0].to_object_id
        assert graph.count(ObjectType.DAILY_NOTE) == 1

    def test_system_objects_linked_too(self, graph):
        tag = graph.create_tag("work")
        assert len(created_on_edges(graph, tag)) == 1

    def test_manual_link_coexists(self, graph):
        task = graph.create_object("task", "T")
        note = graph.get_by_id(created_on_edges(graph, task)[0].to_object_id)
        graph.relate(task.id, note.id, "created_on", {"auto": False})
        metas = sorted(e.metadata["auto"] for e in created_on_edges(graph, task))
        assert metas == [False, True]

    def test_link_failure_does_not_fail_create(self, graph, monkeypatch, caplog):
        def broken(day):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(graph.timeline, "get_or_create_daily_note", broken)
        with caplog.at_level(logging.WARNING, logger="graphnote"):
            task = graph.create_object("task", "Still here")
        assert graph.get(task.id) is not None
        assert created_on_edges(graph, task) == []
        assert "disk on fire" in caplog.text

    def test_auto_link_off(self, tmp_path, clock):
        from graphnote.api import Graph

        with Graph(tmp_path / "nolink", clock=clock, auto_link=False) as g:
            task = g.create_object("task", "T")
            assert g.find_relations(task.id) == []
            assert g.count(ObjectType.DAILY_NOTE) == 0


class TestReadSide:

    def test_created_on_scenario(self, graph):
        p1 = graph.create_object("project", "P1", created_at=utc(2025, 1, 15, 10, 0))
        graph.create_object("project", "P2", created_at=utc(2025, 1, 16, 10, 0))
        assert [o.id for o in graph.objects_created_on_date("2025-01-15")] == [p1.id]

    def test_created_on_validates(self, graph):
        with pytest.raises(InvalidDate):
            graph.objects_created_on_date("2025-02-30")

    def test_modified_on(self, graph, clock):
        task = graph.create_object("task", "T", created_at=utc(2025, 1, 10, 8, 0))
        clock.set(utc(2025, 1, 12, 8, 0))
        graph.update(task.id, content="edit")
        modified = graph.objects_modified_on_date("2025-01-12")
        assert task.id in {o.id for o in modified}
        assert task.id not in {o.id for o in graph.objects_modified_on_date("2025-01-10")}

    def test_daily_note_timeline_oldest_first(self, graph):
        a = graph.create_object("task", "A", created_at=utc(2025, 1, 15, 12, 0))
        b = graph.create_object("task", "B", created_at=utc(2025, 1, 15, 8, 0))
        c = graph.create_object("task", "C", created_at=utc(2025, 1, 15, 18, 0))
        graph.create_object("task", "Other day", created_at=utc(2025, 1, 16, 9, 0))
        note = graph.get_or_create_daily_note("2025-01-15")
        assert [o.id for o in graph.daily_note_timeline(note.id)] == [b.id, a.id, c.id]

    def test_timeline_requires_daily_note(self, graph):
        task = graph.create_object("task", "T")
        with pytest.raises(NotFound):
            graph.daily_note_timeline(task.id)
        with pytest.raises(NotFound):
            graph.daily_note_timeline("missing")

    def test_delete_cascades_created_on(self, graph):
        p1 = graph.create_object("project", "P1", created_at=utc(2025, 1, 15, 10, 0))
        note = graph.get_or_create_daily_note("2025-01-15")
        graph.delete(p1.id)
        assert graph.find_relations(p1.id) == []
        assert graph.daily_note_timeline(note.id) == []
