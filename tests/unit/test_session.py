import asyncio

import pytest

from quarry.store.errors import TransactionError
from quarry.store.session import TransactionState


def test_abort_restores_every_collection(database) -> None:
    users = database.collection("users")
    orders = database.collection("orders")
    users.create({"_id": "u1", "name": "A"})
    orders.create({"_id": "o1", "qty": 1})
    before = database.snapshot()

    session = database.start_session()
    session.start_transaction()
    assert session.in_transaction
    users.create({"_id": "u2"})
    users.update_one({"_id": "u1"}, {"$set": {"name": "B"}})
    orders.delete_many({})
    database.collection("balances").create({"userId": "u1"})
    session.abort_transaction()

    assert session.state is TransactionState.ABORTED
    assert database.snapshot() == before


def test_commit_keeps_changes_and_allows_new_transaction(database) -> None:
    session = database.start_session()
    session.start_transaction()
    database.collection("orders").create({"_id": "o1"})
    session.commit_transaction()
    assert session.state is TransactionState.COMMITTED
    assert len(database.collection("orders")) == 1

    session.start_transaction()
    database.collection("orders").create({"_id": "o2"})
    session.abort_transaction()
    assert len(database.collection("orders")) == 1


def test_starting_twice_raises(database) -> None:
    session = database.start_session()
    session.start_transaction()
    with pytest.raises(TransactionError):
        session.start_transaction()


def test_commit_or_abort_without_transaction_is_a_no_op(database) -> None:
    session = database.start_session()
    session.commit_transaction()
    session.abort_transaction()
    assert session.state is TransactionState.IDLE


def test_end_session_aborts_open_transaction_and_is_idempotent(database) -> None:
    session = database.start_session()
    session.start_transaction()
    database.collection("orders").create({"_id": "o1"})
    session.end_session()
    session.end_session()
    assert len(database.collection("orders")) == 0
    with pytest.raises(TransactionError):
        session.start_transaction()


def test_with_transaction_commits_and_returns_result(database) -> None:
    async def _body(session):
        await database.model("orders").create({"_id": "o1"})
        return "done"

    session = database.start_session()
    assert asyncio.run(session.with_transaction(_body)) == "done"
    assert session.state is TransactionState.COMMITTED
    assert len(database.collection("orders")) == 1


def test_with_transaction_accepts_sync_callables(database) -> None:
    session = database.start_session()
    result = asyncio.run(session.with_transaction(lambda s: database.collection("orders").create({"_id": "o1"})))
    assert result["_id"] == "o1"


def test_with_transaction_aborts_and_reraises(database) -> None:
    class Boom(Exception):
        pass

    async def _body(session):
        database.collection("orders").create({"_id": "o1"})
        raise Boom("nope")

    session = database.start_session()
    with pytest.raises(Boom):
        asyncio.run(session.with_transaction(_body))
    assert session.state is TransactionState.ABORTED
    assert len(database.collection("orders")) == 0


def test_sessions_are_context_managers(database) -> None:
    with database.start_session() as session:
        session.start_transaction()
        database.collection("orders").create({"_id": "o1"})
    assert session.ended
    assert len(database.collection("orders")) == 0

    async def _run():
        async with database.start_session() as inner:
            inner.start_transaction()
            database.collection("orders").create({"_id": "o2"})
            inner.commit_transaction()
        return inner

    inner = asyncio.run(_run())
    assert inner.ended
    assert len(database.collection("orders")) == 1


def test_session_ids_are_unique(database) -> None:
    assert database.start_session().session_id != database.start_session().session_id
