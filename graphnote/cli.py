"""
CLI interface for graphnote.

Usage:
    graphnote create task "Write report"
    graphnote today
    graphnote day 2025-01-15
    graphnote tag <id> work
    graphnote query-test --filters '{"objectType": "task", "tags": ["work"]}'
"""

import atexit
import json
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from .api import Graph
from .errors import GraphError
from .logging_config import configure_quiet_mode, enable_debug_mode, verbose_from_env
from .types import GraphObject, Relation


# Set GRAPHNOTE_VERBOSE=1 to enable debug mode via environment
if verbose_from_env():
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


app = typer.Typer(
    name="graphnote",
    help="Personal knowledge graph with a daily-note timeline.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="GRAPHNOTE_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Personal knowledge graph with a daily-note timeline."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_graph() -> Graph:
    """Open the store, exiting cleanly if it can't be opened."""
    try:
        graph = Graph(_store_override)
    except (GraphError, OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(graph.close)
    return graph


def _fail(e: GraphError):
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(1)


def _parse_json(value: Optional[str], name: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{name} is not valid JSON: {e}")


def _format_object(obj: GraphObject) -> str:
    flag = " (archived)" if obj.archived else ""
    return f"{obj.id}  {obj.created_date}  {obj.type.value:<14} {obj.title}{flag}"


def _format_relation(rel: Relation) -> str:
    auto = " (auto)" if rel.metadata.get("auto") else ""
    return f"{rel.from_object_id} -{rel.relation_type.value}-> {rel.to_object_id}{auto}"


def _echo_object(obj: GraphObject, full: bool = False):
    if _get_json_output():
        typer.echo(json.dumps(obj.to_dict(), indent=2, ensure_ascii=False))
        return
    typer.echo(_format_object(obj))
    if full:
        if obj.properties:
            typer.echo(json.dumps(obj.properties, indent=2, ensure_ascii=False))
        if obj.content:
            typer.echo("")
            typer.echo(obj.content)


def _echo_objects(objects: list[GraphObject], empty: str = "No objects."):
    if _get_json_output():
        typer.echo(json.dumps([o.to_dict() for o in objects], indent=2, ensure_ascii=False))
        return
    if not objects:
        typer.echo(empty)
        return
    for obj in objects:
        typer.echo(_format_object(obj))


def _resolve_tag(graph: Graph, name: str, create: bool) -> Optional[GraphObject]:
    tag = graph.find_tag_by_name(name)
    if tag is None and create:
        tag = graph.create_tag(name)
    return tag


# -----------------------------------------------------------------------------
# Objects
# -----------------------------------------------------------------------------

@app.command()
def create(
    type: Annotated[str, typer.Argument(help="Object type, e.g. task, project, page")],
    title: Annotated[str, typer.Argument(help="Title (1-500 characters)")],
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="Body text",
    )] = None,
    properties: Annotated[Optional[str], typer.Option(
        "--properties", "-p", help="Properties as a JSON object",
    )] = None,
):
    """Create an object."""
    props = _parse_json(properties, "--properties")
    graph = _get_graph()
    try:
        obj = graph.create_object(type, title, content, props)
    except GraphError as e:
        _fail(e)
    _echo_object(obj)


@app.command()
def get(
    id: Annotated[str, typer.Argument(help="Object ID")],
):
    """Show an object."""
    graph = _get_graph()
    try:
        obj = graph.get_by_id(id)
    except GraphError as e:
        _fail(e)
    _echo_object(obj, full=True)


@app.command("list")
def list_cmd(
    type: Annotated[Optional[str], typer.Argument(help="Only this object type")] = None,
    archived: Annotated[bool, typer.Option(
        "--archived", "-a", help="List archived objects instead",
    )] = False,
    limit: Annotated[int, typer.Option(
        "--limit", "-n", help="Maximum results",
    )] = 20,
):
    """List objects, most recently updated first."""
    graph = _get_graph()
    try:
        objects = graph.list_recent(type, archived=archived, limit=limit)
    except GraphError as e:
        _fail(e)
    _echo_objects(objects)


@app.command()
def update(
    id: Annotated[str, typer.Argument(help="Object ID")],
    title: Annotated[Optional[str], typer.Option("--title", "-t")] = None,
    content: Annotated[Optional[str], typer.Option("--content", "-c")] = None,
    properties: Annotated[Optional[str], typer.Option(
        "--properties", "-p", help="Replacement properties as a JSON object",
    )] = None,
):
    """Update an object's title, content or properties."""
    props = _parse_json(properties, "--properties")
    graph = _get_graph()
    try:
        obj = graph.update(id, title=title, content=content, properties=props)
    except GraphError as e:
        _fail(e)
    _echo_object(obj)


@app.command()
def archive(id: Annotated[str, typer.Argument(help="Object ID")]):
    """Archive (soft-delete) an object."""
    graph = _get_graph()
    try:
        _echo_object(graph.archive(id))
    except GraphError as e:
        _fail(e)


@app.command()
def unarchive(id: Annotated[str, typer.Argument(help="Object ID")]):
    """Restore an archived object."""
    graph = _get_graph()
    try:
        _echo_object(graph.unarchive(id))
    except GraphError as e:
        _fail(e)


@app.command()
def delete(
    id: Annotated[str, typer.Argument(help="Object ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask")] = False,
):
    """Permanently delete an object and its relations."""
    graph = _get_graph()
    if not yes:
        typer.confirm(f"Delete {id} and all its relations?", abort=True)
    try:
        graph.delete(id)
    except GraphError as e:
        _fail(e)
    typer.echo(f"Deleted {id}")


# -----------------------------------------------------------------------------
# Relations
# -----------------------------------------------------------------------------

@app.command()
def relate(
    from_id: Annotated[str, typer.Argument(help="Source object ID")],
    to_id: Annotated[str, typer.Argument(help="Target object ID")],
    relation_type: Annotated[str, typer.Argument(help="Relation type, e.g. relates_to")],
):
    """Create a relation between two objects."""
    graph = _get_graph()
    try:
        rel = graph.relate(from_id, to_id, relation_type)
    except GraphError as e:
        _fail(e)
    if _get_json_output():
        typer.echo(json.dumps(rel.to_dict(), indent=2))
    else:
        typer.echo(_format_relation(rel))


@app.command()
def relations(
    id: Annotated[str, typer.Argument(help="Object ID")],
    relation_type: Annotated[Optional[str], typer.Option(
        "--type", "-t", help="Only this relation type",
    )] = None,
    direction: Annotated[str, typer.Option(
        "--direction", "-d", help="from, to or both",
    )] = "both",
):
    """List relations touching an object."""
    graph = _get_graph()
    try:
        rels = graph.find_relations(id, relation_type, direction)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    except GraphError as e:
        _fail(e)
    if _get_json_output():
        typer.echo(json.dumps([r.to_dict() for r in rels], indent=2))
        return
    if not rels:
        typer.echo("No relations.")
    for rel in rels:
        typer.echo(_format_relation(rel))


# -----------------------------------------------------------------------------
# Tags and collections
# -----------------------------------------------------------------------------

@app.command()
def tag(
    id: Annotated[str, typer.Argument(help="Object ID")],
    name: Annotated[str, typer.Argument(help="Tag name (created if missing)")],
):
    """Tag an object."""
    graph = _get_graph()
    try:
        tag_obj = _resolve_tag(graph, name, create=True)
        graph.tag_object(id, tag_obj.id)
    except GraphError as e:
        _fail(e)
    typer.echo(f"Tagged {id} with {name}")


@app.command()
def untag(
    id: Annotated[str, typer.Argument(help="Object ID")],
    name: Annotated[str, typer.Argument(help="Tag name")],
):
    """Remove a tag from an object."""
    graph = _get_graph()
    tag_obj = _resolve_tag(graph, name, create=False)
    removed = tag_obj is not None and graph.untag_object(id, tag_obj.id)
    typer.echo(f"Untagged {id} from {name}" if removed else f"{id} was not tagged {name}")


@app.command()
def tagged(
    name: Annotated[str, typer.Argument(help="Tag name")],
):
    """List live objects carrying a tag."""
    graph = _get_graph()
    tag_obj = _resolve_tag(graph, name, create=False)
    _echo_objects(graph.objects_by_tag(tag_obj.id) if tag_obj else [])


@app.command()
def collect(
    id: Annotated[str, typer.Argument(help="Object ID")],
    collection_id: Annotated[str, typer.Argument(help="Collection ID")],
):
    """Add an object to a collection."""
    graph = _get_graph()
    try:
        graph.add_object_to_collection(id, collection_id)
    except GraphError as e:
        _fail(e)
    typer.echo(f"Added {id} to {collection_id}")


@app.command()
def members(
    collection_id: Annotated[str, typer.Argument(help="Collection ID")],
):
    """List live members of a collection."""
    graph = _get_graph()
    try:
        graph.get_collection(collection_id)
    except GraphError as e:
        _fail(e)
    _echo_objects(graph.objects_in_collection(collection_id))


# -----------------------------------------------------------------------------
# Timeline
# -----------------------------------------------------------------------------

@app.command()
def today():
    """Show (creating if needed) today's daily note."""
    graph = _get_graph()
    _echo_object(graph.get_or_create_daily_note(graph.today()))


@app.command()
def day(
    date: Annotated[str, typer.Argument(help="Day as YYYY-MM-DD")],
    modified: Annotated[bool, typer.Option(
        "--modified", "-m", help="Objects last modified that day instead",
    )] = False,
):
    """List objects created (or modified) on a day."""
    graph = _get_graph()
    try:
        if modified:
            objects = graph.objects_modified_on_date(date)
        else:
            objects = graph.objects_created_on_date(date)
    except GraphError as e:
        _fail(e)
    _echo_objects(objects)


@app.command()
def timeline(
    date: Annotated[str, typer.Argument(help="Day as YYYY-MM-DD")],
):
    """List objects linked to a day's daily note, oldest first."""
    graph = _get_graph()
    try:
        note = graph.find_daily_note(date)
        objects = graph.daily_note_timeline(note.id) if note else []
    except GraphError as e:
        _fail(e)
    _echo_objects(objects, empty=f"Nothing on {date}.")


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------

@app.command("query-run")
def query_run(
    query_id: Annotated[str, typer.Argument(help="Saved query ID")],
):
    """Run a saved query."""
    graph = _get_graph()
    try:
        objects = graph.execute_query(query_id)
    except GraphError as e:
        _fail(e)
    _echo_objects(objects)


@app.command("query-test")
def query_test(
    filters: Annotated[Optional[str], typer.Option(
        "--filters", "-f", help="Filters as a JSON object",
    )] = None,
    sort: Annotated[Optional[str], typer.Option(
        "--sort", help="Sort as JSON, e.g. '{\"field\": \"title\", \"order\": \"asc\"}'",
    )] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n")] = None,
):
    """Run filters without saving a query."""
    parsed_filters = _parse_json(filters, "--filters")
    parsed_sort = _parse_json(sort, "--sort")
    graph = _get_graph()
    try:
        objects = graph.test_query(parsed_filters, parsed_sort, limit)
    except GraphError as e:
        _fail(e)
    _echo_objects(objects)


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="graphnote CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
