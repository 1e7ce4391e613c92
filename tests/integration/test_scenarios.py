import asyncio
from datetime import UTC, datetime

import pytest

from quarry.config.schema import StoreConfig
from quarry.store.database import reset_database, start_session


T0 = datetime(2024, 1, 1, tzinfo=UTC)


def test_counter_document_and_idempotent_create(database) -> None:
    accounts = database.model("accounts")
    key = {"type": "deposit_bonus", "sourceTxId": "dep-1", "receiverUserId": "a"}

    async def _run():
        await accounts.create({"id": "a", "name": "X", "createdAt": T0, **key})
        await accounts.update_one({"id": "a"}, {"$inc": {"balance": 10}})
        await accounts.update_one({"id": "a"}, {"$inc": {"balance": 10}})
        found = await accounts.find_by_id("a")
        size_before = await accounts.count_documents()
        duplicate = await accounts.create({"name": "Y", **key})
        size_after = await accounts.count_documents()
        return found, size_before, duplicate, size_after

    found, size_before, duplicate, size_after = asyncio.run(_run())
    assert found["balance"] == 20
    assert found["createdAt"] == T0
    assert found["updatedAt"] > T0
    assert duplicate.id == "a"
    assert size_before == size_after == 1


def test_failed_transaction_body_leaves_orders_empty() -> None:
    reset_database(StoreConfig(collections=["users", "orders"], seed_fixtures=False))
    session = start_session()

    async def _body(active_session):
        orders = active_session.database.model("orders")
        for index in range(3):
            await orders.create({"sku": f"sku-{index}", "qty": index + 1})
        assert await orders.count_documents() == 3
        raise RuntimeError("payment gateway unavailable")

    with pytest.raises(RuntimeError, match="payment gateway unavailable"):
        asyncio.run(session.with_transaction(_body))
    session.end_session()
    assert len(session.database.collection("orders")) == 0


def test_rollback_spans_collections_and_nested_updates(seeded_database) -> None:
    before = seeded_database.snapshot()

    async def _body(session):
        users = seeded_database.model("User")
        balances = seeded_database.model("Balance")
        admin = await users.find_one({"role": "admin"})
        await balances.update_one({"userId": admin.id}, {"$inc": {"current": 500}, "$push": {"lockedCapitalLots": {"amount": 1}}})
        await users.update_many({}, {"$set": {"groups.D": ["x"]}})
        await seeded_database.model("Transaction").delete_many({"type": "withdraw"})
        await seeded_database.model("BonusPayout").create({"type": "direct", "sourceTxId": "t", "receiverUserId": admin.id})
        raise ValueError("abort")

    async def _run() -> None:
        async with seeded_database.start_session() as session:
            await session.with_transaction(_body)

    with pytest.raises(ValueError):
        asyncio.run(_run())
    assert seeded_database.snapshot() == before


def test_concurrent_upserts_create_one_document(database) -> None:
    payouts = database.model("BonusPayout")
    filter = {"type": "team_reward", "sourceTxId": "cycle-7", "receiverUserId": "u1"}

    async def _run():
        return await asyncio.gather(
            *(payouts.update_one(filter, {"$inc": {"amount": 1}}, upsert=True) for _ in range(10))
        )

    results = asyncio.run(_run())
    assert sum(result.upserted_count for result in results) == 1
    stored = asyncio.run(payouts.find_one(filter))
    assert stored["amount"] == 10
    assert len(database.collection("bonusPayouts")) == 1


def test_reads_never_alias_stored_documents(seeded_database) -> None:
    async def _run():
        users = seeded_database.model("User")
        listed = await users.find({}).lean()
        for doc in listed:
            doc["groups"]["A"].append("intruder")
            doc["email"] = "changed"
        hydrated = await users.find_one({"role": "admin"})
        hydrated["groups"]["B"].append("intruder")
        rows = await users.aggregate([{"$match": {"role": "admin"}}])
        rows[0]["groups"]["C"].append("intruder")
        return await users.find({}).lean()

    fresh = asyncio.run(_run())
    for doc in fresh:
        assert doc["email"] != "changed"
        assert all("intruder" not in members for members in doc["groups"].values())


def test_daily_transaction_report(seeded_database) -> None:
    rows = asyncio.run(
        seeded_database.model("Transaction").aggregate(
            [
                {"$match": {"status": "approved", "type": {"$in": ["deposit", "earn", "commission", "withdraw"]}}},
                {
                    "$group": {
                        "_id": {"type": "$type"},
                        "total": {"$sum": "$amount"},
                        "count": {"$sum": 1},
                    }
                },
                {"$sort": {"count": -1, "_id.type": 1}},
                {"$limit": 3},
            ]
        )
    )
    assert [row["_id"]["type"] for row in rows] == ["commission", "deposit", "earn"]
    assert rows[1]["total"] == 100 + 150 + 200 + 250
    assert all(row["count"] == 4 for row in rows)
