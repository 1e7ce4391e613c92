"""Embedded in-memory document store."""

from .cursor import Cursor
from .database import Database, get_database, model, reset_database, start_session
from .errors import (
    QuarryError,
    TransactionError,
    UnknownCollectionError,
    UnknownModelError,
    UnsupportedStageError,
)
from .instance import HydratedDocument
from .models import ModelProxy
from .results import DeleteResult, UpdateResult
from .session import Session, TransactionState

__all__ = [
    "Cursor",
    "Database",
    "DeleteResult",
    "HydratedDocument",
    "ModelProxy",
    "QuarryError",
    "Session",
    "TransactionError",
    "TransactionState",
    "UnknownCollectionError",
    "UnknownModelError",
    "UnsupportedStageError",
    "UpdateResult",
    "get_database",
    "model",
    "reset_database",
    "start_session",
]
