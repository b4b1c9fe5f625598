"""
graphnote

A personal knowledge graph: typed objects joined by typed relations, an
automatic daily-note timeline, tags, collections and saved queries, kept in
one SQLite file.

Quick Start:
    from graphnote import Graph

    g = Graph()  # uses ~/.graphnote/
    task = g.create_object("task", "Write report")
    g.objects_created_on_date(task.created_date)

CLI Usage:
    graphnote create task "Write report"
    graphnote tag <id> work
    graphnote query-test --filters '{"tags": ["work"]}'

Environment Variables:
    GRAPHNOTE_STORE_PATH  - Override default store location
    GRAPHNOTE_VERBOSE     - Set to 1 for debug logging in the CLI
"""

from .api import Graph
from .errors import (
    Conflict,
    GraphError,
    InvalidArgument,
    InvalidDate,
    NotFound,
    TypeMismatch,
    UnsupportedQueryType,
    ValidationError,
)
from .types import Direction, GraphObject, ObjectType, Relation, RelationType

__version__ = "0.1.0"
__all__ = [
    "Graph",
    "GraphObject",
    "Relation",
    "ObjectType",
    "RelationType",
    "Direction",
    "GraphError",
    "ValidationError",
    "InvalidDate",
    "InvalidArgument",
    "UnsupportedQueryType",
    "NotFound",
    "Conflict",
    "TypeMismatch",
]
