from __future__ import annotations

import os
from typing import Callable

import pytest

from quarry.config.schema import DEFAULT_COLLECTIONS, StoreConfig
from quarry.store.database import Database, reset_database


# Default-config runs must not depend on the caller's environment.
os.environ.setdefault("QUARRY_SEED_IN_MEMORY", "true")
os.environ.pop("QUARRY_CONFIG", None)

TEST_COLLECTIONS = [*DEFAULT_COLLECTIONS, "accounts", "orders"]


@pytest.fixture
def make_database() -> Callable[..., Database]:
    def _build(*, seed: bool = False, **overrides: object) -> Database:
        config = StoreConfig(collections=list(TEST_COLLECTIONS), seed_fixtures=seed, **overrides)
        return Database(config)

    return _build


@pytest.fixture
def database(make_database: Callable[..., Database]) -> Database:
    return make_database()


@pytest.fixture
def seeded_database(make_database: Callable[..., Database]) -> Database:
    return make_database(seed=True)


@pytest.fixture(autouse=True)
def _fresh_default_database():
    yield
    reset_database()
