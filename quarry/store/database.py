"""Collection registry and the process-wide default database."""

from __future__ import annotations

import threading
from typing import Any

from quarry.config.schema import StoreConfig
from quarry.core.logging import emit_metric, get_logger
from quarry.store.collection import Collection
from quarry.store.errors import UnknownCollectionError, UnknownModelError
from quarry.store.fixtures import build_fixtures
from quarry.store.models import ModelProxy
from quarry.store.session import Session


Snapshot = dict[str, list[dict[str, Any]]]


class Database:
    """Holds every named collection; lazily seeded on first access."""

    def __init__(self, config: StoreConfig | None = None, *, seed: bool | None = None) -> None:
        self.config = config or StoreConfig()
        self.seed = self.config.seed_fixtures if seed is None else seed
        self.lock = threading.RLock()
        self.logger = get_logger("quarry.store.database")
        self._collections: dict[str, Collection] = {}
        self._models: dict[str, ModelProxy] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        with self.lock:
            if self._initialized:
                return
            fixtures = build_fixtures(identity_field=self.config.identity_field) if self.seed else {}
            for name in self.config.collections:
                self._collections[name] = Collection(name, self, fixtures.get(name, []))
            self._initialized = True
        self.logger.info(
            "in-memory database initialized",
            extra={
                "event_action": "database_initialize",
                "payload": {
                    "collections": len(self._collections),
                    "seeded": self.seed,
                },
            },
        )
        emit_metric(
            self.logger,
            name="documents_seeded",
            value=sum(len(collection) for collection in self._collections.values()),
        )

    def collection_names(self) -> list[str]:
        self.initialize()
        return list(self._collections)

    def collection(self, name: str) -> Collection:
        self.initialize()
        collection = self._collections.get(name)
        if collection is None:
            raise UnknownCollectionError(name)
        return collection

    def model(self, name: str) -> ModelProxy:
        """Model proxy by model name (``User``) or collection name (``users``)."""
        self.initialize()
        cached = self._models.get(name)
        if cached is not None:
            return cached
        if name in self.config.models:
            proxy = ModelProxy(name, self.collection(self.config.models[name]))
        elif name in self._collections:
            proxy = ModelProxy(name, self._collections[name])
        else:
            raise UnknownModelError(name)
        self._models[name] = proxy
        return proxy

    def snapshot(self) -> Snapshot:
        self.initialize()
        with self.lock:
            return {name: collection.snapshot() for name, collection in self._collections.items()}

    def restore(self, snapshot: Snapshot) -> None:
        self.initialize()
        with self.lock:
            for name, collection in self._collections.items():
                collection.replace_contents(snapshot.get(name, []))

    def start_session(self) -> Session:
        self.initialize()
        return Session(self)

    def reset(self) -> None:
        """Drop every collection; the next access reseeds."""
        with self.lock:
            self._collections.clear()
            self._models.clear()
            self._initialized = False


_default_database: Database | None = None
_default_lock = threading.Lock()


def get_database(config: StoreConfig | None = None) -> Database:
    """Process-wide database, created on first use.

    ``config`` only applies when the database does not exist yet.
    """
    global _default_database
    with _default_lock:
        if _default_database is None:
            _default_database = Database(config)
        return _default_database


def reset_database(config: StoreConfig | None = None) -> Database:
    """Replace the process-wide database with a fresh one."""
    global _default_database
    with _default_lock:
        _default_database = Database(config)
        return _default_database


def start_session() -> Session:
    return get_database().start_session()


def model(name: str) -> ModelProxy:
    return get_database().model(name)
