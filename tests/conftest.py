"""
Shared pytest fixtures for graphnote tests.

Stores live under tmp_path and take their notion of "now" from a
deterministic clock, so timestamps and derived days are predictable.
"""

from datetime import datetime, timedelta, timezone

import pytest

from graphnote.api import Graph
from graphnote.db import Database
from graphnote.object_store import ObjectStore
from graphnote.relation_store import RelationStore


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TickingClock:
    """
    Clock that advances by ``step`` on every read.

    Distinct reads give distinct, increasing timestamps, so ordering by
    creation time is stable without sleeping.
    """

    def __init__(self, start: datetime = utc(2025, 3, 1, 9, 0), step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        current = self.now
        self.now = self.now + self.step
        return current

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def db(tmp_path):
    with Database(tmp_path / "graphnote.db") as d:
        yield d


@pytest.fixture
def objects(db, clock):
    """Object store with no auto-linking attached."""
    return ObjectStore(db, clock)


@pytest.fixture
def relations(db, clock):
    return RelationStore(db, clock)


@pytest.fixture
def graph(tmp_path, clock):
    """A fully wired graph with auto-linking on."""
    with Graph(tmp_path / "store", clock=clock) as g:
        yield g
