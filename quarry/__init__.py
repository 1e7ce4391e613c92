"""quarry: embedded in-process document store."""

from .store import (
    Database,
    QuarryError,
    TransactionError,
    UnknownCollectionError,
    UnknownModelError,
    UnsupportedStageError,
    get_database,
    model,
    reset_database,
    start_session,
)

__all__ = [
    "Database",
    "QuarryError",
    "TransactionError",
    "UnknownCollectionError",
    "UnknownModelError",
    "UnsupportedStageError",
    "get_database",
    "model",
    "reset_database",
    "start_session",
]
