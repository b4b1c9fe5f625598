"""
Pluggable storage backend factory.

Creates the object and relation stores based on configuration. The local
backend keeps both in one SQLite file. External backends register via the
``graphnote.backends`` entry point group.

External backend packages provide a factory function::

    def create_stores(config: StoreConfig, clock) -> StoreBundle:
        ...

and register it in their pyproject.toml::

    [project.entry-points."graphnote.backends"]
    my-backend = "my_package.backend:create_stores"
"""

from datetime import datetime
from typing import Callable, NamedTuple

from .config import StoreConfig
from .db import Database
from .object_store import ObjectStore
from .relation_store import RelationStore
from .types import utc_now


class StoreBundle(NamedTuple):
    """Collection of storage backends returned by the factory."""
    db: Database
    objects: ObjectStore
    relations: RelationStore
    is_local: bool  # True for filesystem-backed stores


def create_stores(
    config: StoreConfig,
    clock: Callable[[], datetime] = utc_now,
) -> StoreBundle:
    """
    Create storage backends from configuration.

    For ``backend = "local"`` (default), opens the SQLite database in the
    store directory. For other values, loads the backend via the
    ``graphnote.backends`` entry point group.
    """
    if config.backend == "local":
        return _create_local_stores(config, clock)
    return _load_backend(config.backend, config, clock)


def _create_local_stores(config: StoreConfig, clock) -> StoreBundle:
    db = Database(config.db_path)
    return StoreBundle(
        db=db,
        objects=ObjectStore(db, clock),
        relations=RelationStore(db, clock),
        is_local=True,
    )


def _load_backend(name: str, config: StoreConfig, clock) -> StoreBundle:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="graphnote.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(config, clock)

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(
            f"Unknown backend: {name!r}. Available: {available}"
        )
    raise ValueError(
        f"Unknown backend: {name!r}. No backends registered."
    )
