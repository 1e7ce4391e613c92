"""Snapshot-based transaction emulation.

This is cooperative, single-writer rollback: ``start_transaction`` copies every
collection, mutations apply directly to the live store, and
``abort_transaction`` swaps the copy back in. There is no isolation between
concurrent transactions.
"""

from __future__ import annotations

from enum import Enum
import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable
from uuid import uuid4

from quarry.core.logging import get_logger
from quarry.store.errors import TransactionError

if TYPE_CHECKING:
    from quarry.store.database import Database, Snapshot


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ABORTED = "aborted"


class Session:
    def __init__(self, database: "Database") -> None:
        self.database = database
        self.session_id = f"session-{uuid4().hex[:12]}"
        self.state = TransactionState.IDLE
        self.ended = False
        self._snapshot: Snapshot | None = None
        self.logger = get_logger("quarry.store.session")

    @property
    def in_transaction(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def _log(self, message: str, action: str, **payload: Any) -> None:
        self.logger.info(
            message,
            extra={
                "session_id": self.session_id,
                "event_action": action,
                "payload": payload or None,
            },
        )

    def start_transaction(self) -> "Session":
        if self.in_transaction:
            raise TransactionError("transaction already in progress")
        if self.ended:
            raise TransactionError("cannot start a transaction on an ended session")
        self._snapshot = self.database.snapshot()
        self.state = TransactionState.ACTIVE
        self._log("transaction started", "transaction_start", collections=len(self._snapshot))
        return self

    def commit_transaction(self) -> None:
        if not self.in_transaction:
            return
        self._snapshot = None
        self.state = TransactionState.COMMITTED
        self._log("transaction committed", "transaction_commit")

    def abort_transaction(self) -> None:
        if not self.in_transaction:
            return
        snapshot = self._snapshot
        self._snapshot = None
        self.state = TransactionState.ABORTED
        if snapshot is not None:
            self.database.restore(snapshot)
        self._log("transaction aborted", "transaction_abort")

    async def with_transaction(
        self,
        fn: Callable[["Session"], Awaitable[Any] | Any],
    ) -> Any:
        """Run ``fn(session)`` inside a transaction; abort and re-raise on failure."""
        self.start_transaction()
        try:
            result = fn(self)
            if inspect.isawaitable(result):
                result = await result
        except BaseException:
            try:
                self.abort_transaction()
            except Exception:
                self.logger.exception(
                    "transaction rollback failed",
                    extra={"session_id": self.session_id, "event_action": "transaction_abort"},
                )
            raise
        self.commit_transaction()
        return result

    def end_session(self) -> None:
        if self.ended:
            return
        if self.in_transaction:
            self.abort_transaction()
        self.ended = True

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.end_session()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.end_session()
