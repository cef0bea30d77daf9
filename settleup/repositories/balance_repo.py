"""
BalanceRepository - storage for pairwise balance edges.

Every write is a compare-and-swap on the edge's version:
1. Caller reads the edge (absent edges have version 0)
2. Caller computes the new amount
3. save() succeeds only if the stored version still matches
4. Zero amounts delete the edge instead of storing it

An optional idempotency key is recorded atomically with the write. A key
that was already recorded turns the write into a no-op.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from settleup.core.errors import ConcurrencyConflict
from settleup.models.ledger import BalanceEdge, EdgeKey
from settleup.models.money import Money


class BalanceRepository:
    """Contract shared by the in-memory and MongoDB stores."""

    async def get(self, key: EdgeKey) -> Optional[BalanceEdge]:
        raise NotImplementedError

    async def save(
        self,
        edge: BalanceEdge,
        expected_version: int,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """
        Store edge.amount if the stored version equals expected_version.

        Returns False when idempotency_key was already applied.
        Raises ConcurrencyConflict on a version mismatch.
        """
        raise NotImplementedError

    async def list_for_user(self, user_id: str) -> List[BalanceEdge]:
        raise NotImplementedError

    async def list_for_group(self, group_id: str) -> List[BalanceEdge]:
        raise NotImplementedError


class InMemoryBalanceRepository(BalanceRepository):
    def __init__(self):
        self._edges: Dict[EdgeKey, BalanceEdge] = {}
        self._applied_keys: Set[str] = set()
        self._lock = asyncio.Lock()

    async def get(self, key: EdgeKey) -> Optional[BalanceEdge]:
        return self._edges.get(key)

    async def save(
        self,
        edge: BalanceEdge,
        expected_version: int,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        async with self._lock:
            if idempotency_key and idempotency_key in self._applied_keys:
                return False

            current = self._edges.get(edge.key)
            current_version = current.version if current else 0
            if current_version != expected_version:
                raise ConcurrencyConflict(edge.key, expected_version)

            if edge.amount.is_zero():
                self._edges.pop(edge.key, None)
            else:
                self._edges[edge.key] = edge.model_copy(
                    update={"version": expected_version + 1, "updated_at": datetime.now(timezone.utc)}
                )
            if idempotency_key:
                self._applied_keys.add(idempotency_key)
            return True

    async def list_for_user(self, user_id: str) -> List[BalanceEdge]:
        return [e for e in self._edges.values() if user_id in (e.user_a, e.user_b)]

    async def list_for_group(self, group_id: str) -> List[BalanceEdge]:
        return [e for e in self._edges.values() if e.group_id == group_id]


class MongoBalanceRepository(BalanceRepository):
    """
    Edges live in `balance_edges` keyed by EdgeKey.storage_id(); applied
    idempotency keys live in `ledger_keys`. Writes carrying a key run in a
    session transaction (replica set required).
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.balance_edges
        self.keys = db.ledger_keys

    async def get(self, key: EdgeKey) -> Optional[BalanceEdge]:
        doc = await self.collection.find_one({"_id": key.storage_id()})
        return self._to_edge(doc) if doc else None

    async def save(
        self,
        edge: BalanceEdge,
        expected_version: int,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        if not idempotency_key:
            await self._write(edge, expected_version)
            return True

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                if await self.keys.find_one({"_id": idempotency_key}, session=session):
                    return False
                try:
                    await self.keys.insert_one(
                        {"_id": idempotency_key, "applied_at": datetime.now(timezone.utc)},
                        session=session
                    )
                except DuplicateKeyError:
                    # Another writer recorded the key first
                    raise ConcurrencyConflict(edge.key, expected_version)
                await self._write(edge, expected_version, session=session)
        return True

    async def list_for_user(self, user_id: str) -> List[BalanceEdge]:
        docs = await self.collection.find({
            "$or": [{"user_a": user_id}, {"user_b": user_id}]
        }).to_list(None)
        return [self._to_edge(doc) for doc in docs]

    async def list_for_group(self, group_id: str) -> List[BalanceEdge]:
        docs = await self.collection.find({"group_id": group_id}).to_list(None)
        return [self._to_edge(doc) for doc in docs]

    # ===== PRIVATE HELPERS =====

    async def _write(self, edge: BalanceEdge, expected_version: int, session=None) -> None:
        storage_id = edge.key.storage_id()

        if edge.amount.is_zero():
            if expected_version == 0:
                return
            result = await self.collection.delete_one(
                {"_id": storage_id, "version": expected_version},
                session=session
            )
            if result.deleted_count == 0:
                raise ConcurrencyConflict(edge.key, expected_version)
            return

        doc = {
            "group_id": edge.group_id,
            "user_a": edge.user_a,
            "user_b": edge.user_b,
            "amount_minor": edge.amount.minor,
            "currency": edge.amount.currency,
            "version": expected_version + 1,
            "updated_at": datetime.now(timezone.utc),
        }

        if expected_version == 0:
            try:
                await self.collection.insert_one({"_id": storage_id, **doc}, session=session)
            except DuplicateKeyError:
                raise ConcurrencyConflict(edge.key, expected_version)
            return

        result = await self.collection.update_one(
            {"_id": storage_id, "version": expected_version},  # Optimistic lock
            {"$set": doc},
            session=session
        )
        if result.matched_count == 0:
            raise ConcurrencyConflict(edge.key, expected_version)

    @staticmethod
    def _to_edge(doc: dict) -> BalanceEdge:
        return BalanceEdge(
            user_a=doc["user_a"],
            user_b=doc["user_b"],
            group_id=doc.get("group_id"),
            amount=Money(minor=doc["amount_minor"], currency=doc["currency"]),
            version=doc["version"],
            updated_at=doc["updated_at"],
        )
