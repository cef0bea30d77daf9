from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from settleup.core.errors import ConcurrencyConflict
from settleup.models.ledger import BalanceEdge, EdgeKey
from settleup.models.money import Money
from settleup.models.settlement import SettlementStatus
from settleup.repositories.balance_repo import MongoBalanceRepository
from settleup.repositories.settlement_repo import MongoSettlementRepository

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def edge(minor: int, group_id=None) -> BalanceEdge:
    return BalanceEdge(
        user_a="alice", user_b="bob", amount=Money.of_minor(minor, "INR"), group_id=group_id
    )


def edge_doc(minor: int, version: int) -> dict:
    return {
        "_id": "-:alice:bob",
        "group_id": None,
        "user_a": "alice",
        "user_b": "bob",
        "amount_minor": minor,
        "currency": "INR",
        "version": version,
        "updated_at": NOW,
    }


def with_session(mock_db):
    session = MagicMock()
    cm = MagicMock()
    cm.__aenter__.return_value = session
    cm.__aexit__.return_value = False
    transaction = MagicMock()
    transaction.__aenter__.return_value = transaction
    transaction.__aexit__.return_value = False
    session.start_transaction.return_value = transaction
    mock_db.client.start_session = AsyncMock(return_value=cm)
    return session


@pytest.mark.asyncio
async def test_get_converts_document(mock_db):
    mock_db.balance_edges.find_one.return_value = edge_doc(2500, 3)
    repo = MongoBalanceRepository(mock_db)

    found = await repo.get(EdgeKey(None, "alice", "bob"))

    mock_db.balance_edges.find_one.assert_called_once_with({"_id": "-:alice:bob"})
    assert found.amount == Money.of_minor(2500, "INR")
    assert found.version == 3


@pytest.mark.asyncio
async def test_first_write_inserts(mock_db):
    repo = MongoBalanceRepository(mock_db)

    assert await repo.save(edge(100, group_id="trip"), expected_version=0) is True

    doc = mock_db.balance_edges.insert_one.call_args.args[0]
    assert doc["_id"] == "trip:alice:bob"
    assert doc["amount_minor"] == 100
    assert doc["version"] == 1


@pytest.mark.asyncio
async def test_concurrent_first_write_conflicts(mock_db):
    mock_db.balance_edges.insert_one.side_effect = DuplicateKeyError("dup")
    repo = MongoBalanceRepository(mock_db)

    with pytest.raises(ConcurrencyConflict):
        await repo.save(edge(100), expected_version=0)


@pytest.mark.asyncio
async def test_update_filters_on_version(mock_db):
    mock_db.balance_edges.update_one.return_value = MagicMock(matched_count=1)
    repo = MongoBalanceRepository(mock_db)

    await repo.save(edge(300), expected_version=4)

    query, update = mock_db.balance_edges.update_one.call_args.args
    assert query == {"_id": "-:alice:bob", "version": 4}
    assert update["$set"]["version"] == 5
    assert update["$set"]["amount_minor"] == 300


@pytest.mark.asyncio
async def test_stale_update_conflicts(mock_db):
    mock_db.balance_edges.update_one.return_value = MagicMock(matched_count=0)
    repo = MongoBalanceRepository(mock_db)

    with pytest.raises(ConcurrencyConflict):
        await repo.save(edge(300), expected_version=4)


@pytest.mark.asyncio
async def test_zero_amount_deletes_edge(mock_db):
    mock_db.balance_edges.delete_one.return_value = MagicMock(deleted_count=1)
    repo = MongoBalanceRepository(mock_db)

    await repo.save(edge(0), expected_version=2)

    mock_db.balance_edges.delete_one.assert_called_once()
    assert mock_db.balance_edges.delete_one.call_args.args[0] == {"_id": "-:alice:bob", "version": 2}
    mock_db.balance_edges.update_one.assert_not_called()


@pytest.mark.asyncio
async def test_keyed_write_records_key_in_transaction(mock_db):
    session = with_session(mock_db)
    repo = MongoBalanceRepository(mock_db)

    assert await repo.save(edge(100), expected_version=0, idempotency_key="settlement:1") is True

    key_doc = mock_db.ledger_keys.insert_one.call_args.args[0]
    assert key_doc["_id"] == "settlement:1"
    assert mock_db.ledger_keys.insert_one.call_args.kwargs["session"] is session
    assert mock_db.balance_edges.insert_one.call_args.kwargs["session"] is session


@pytest.mark.asyncio
async def test_applied_key_skips_write(mock_db):
    with_session(mock_db)
    mock_db.ledger_keys.find_one.return_value = {"_id": "settlement:1"}
    repo = MongoBalanceRepository(mock_db)

    assert await repo.save(edge(100), expected_version=0, idempotency_key="settlement:1") is False
    mock_db.balance_edges.insert_one.assert_not_called()


@pytest.mark.asyncio
async def test_list_for_user_queries_both_sides(mock_db):
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[edge_doc(100, 1)])
    mock_db.balance_edges.find = MagicMock(return_value=cursor)
    repo = MongoBalanceRepository(mock_db)

    edges = await repo.list_for_user("bob")

    mock_db.balance_edges.find.assert_called_once_with(
        {"$or": [{"user_a": "bob"}, {"user_b": "bob"}]}
    )
    assert [e.counterparty("bob") for e in edges] == ["alice"]


def settlement_doc(status: str) -> dict:
    return {
        "_id": "s1",
        "payer": "alice",
        "recipient": "bob",
        "amount": {"minor": 1000, "currency": "INR"},
        "status": status,
        "payment_method": "upi",
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.mark.asyncio
async def test_transition_is_conditional_on_status(mock_db):
    mock_db.settlements.find_one_and_update.return_value = settlement_doc("confirmed")
    repo = MongoSettlementRepository(mock_db)

    updated = await repo.transition(
        "s1", SettlementStatus.PENDING, {"status": SettlementStatus.CONFIRMED}
    )

    query, update = mock_db.settlements.find_one_and_update.call_args.args
    assert query == {"_id": "s1", "status": "pending"}
    assert update["$set"]["status"] == "confirmed"
    assert updated.status == SettlementStatus.CONFIRMED


@pytest.mark.asyncio
async def test_transition_lost_race_returns_none(mock_db):
    mock_db.settlements.find_one_and_update.return_value = None
    repo = MongoSettlementRepository(mock_db)

    assert await repo.transition(
        "s1", SettlementStatus.PENDING, {"status": SettlementStatus.DISPUTED}
    ) is None


@pytest.mark.asyncio
async def test_settlement_round_trip_through_documents(mock_db):
    repo = MongoSettlementRepository(mock_db)
    mock_db.settlements.find_one.return_value = settlement_doc("pending")

    settlement = await repo.get("s1")
    await repo.insert(settlement)

    stored = mock_db.settlements.insert_one.call_args.args[0]
    assert stored["_id"] == "s1"
    assert stored["status"] == "pending"
    assert stored["payment_method"] == "upi"
    assert stored["amount"] == {"minor": 1000, "currency": "INR"}


@pytest.mark.asyncio
async def test_delete_only_while_pending(mock_db):
    mock_db.settlements.delete_one.return_value = MagicMock(deleted_count=1)
    repo = MongoSettlementRepository(mock_db)

    assert await repo.delete("s1", SettlementStatus.PENDING) is True
    mock_db.settlements.delete_one.assert_called_once_with({"_id": "s1", "status": "pending"})

    mock_db.settlements.delete_one.return_value = MagicMock(deleted_count=0)
    assert await repo.delete("s1", SettlementStatus.PENDING) is False
