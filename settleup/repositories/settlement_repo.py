"""
SettlementRepository - settlement records.

Status changes go through transition(), a conditional update that only
applies while the stored status still equals the expected one. Two callers
racing to confirm the same settlement therefore see exactly one winner.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from settleup.models.settlement import Settlement, SettlementStatus


class SettlementRepository:
    async def insert(self, settlement: Settlement) -> Settlement:
        raise NotImplementedError

    async def get(self, settlement_id: str) -> Optional[Settlement]:
        raise NotImplementedError

    async def transition(
        self,
        settlement_id: str,
        expected: SettlementStatus,
        updates: Dict[str, Any],
    ) -> Optional[Settlement]:
        """Apply updates if status == expected. Returns None otherwise."""
        raise NotImplementedError

    async def delete(self, settlement_id: str, expected: SettlementStatus) -> bool:
        """Remove the settlement if status == expected. Returns whether it was removed."""
        raise NotImplementedError

    async def list_for_user(self, user_id: str) -> List[Settlement]:
        raise NotImplementedError


class InMemorySettlementRepository(SettlementRepository):
    def __init__(self):
        self._settlements: Dict[str, Settlement] = {}
        self._lock = asyncio.Lock()

    async def insert(self, settlement: Settlement) -> Settlement:
        self._settlements[settlement.id] = settlement
        return settlement

    async def get(self, settlement_id: str) -> Optional[Settlement]:
        return self._settlements.get(settlement_id)

    async def transition(
        self,
        settlement_id: str,
        expected: SettlementStatus,
        updates: Dict[str, Any],
    ) -> Optional[Settlement]:
        async with self._lock:
            current = self._settlements.get(settlement_id)
            if current is None or current.status != expected:
                return None
            updated = current.model_copy(
                update={**updates, "updated_at": datetime.now(timezone.utc)}
            )
            self._settlements[settlement_id] = updated
            return updated

    async def delete(self, settlement_id: str, expected: SettlementStatus) -> bool:
        async with self._lock:
            current = self._settlements.get(settlement_id)
            if current is None or current.status != expected:
                return False
            del self._settlements[settlement_id]
            return True

    async def list_for_user(self, user_id: str) -> List[Settlement]:
        found = [s for s in self._settlements.values() if s.involves(user_id)]
        return sorted(found, key=lambda s: s.created_at, reverse=True)


class MongoSettlementRepository(SettlementRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.settlements

    async def insert(self, settlement: Settlement) -> Settlement:
        await self.collection.insert_one(self._to_doc(settlement))
        return settlement

    async def get(self, settlement_id: str) -> Optional[Settlement]:
        doc = await self.collection.find_one({"_id": settlement_id})
        return Settlement(**doc) if doc else None

    async def transition(
        self,
        settlement_id: str,
        expected: SettlementStatus,
        updates: Dict[str, Any],
    ) -> Optional[Settlement]:
        updates = {
            key: value.value if isinstance(value, SettlementStatus) else value
            for key, value in updates.items()
        }
        updates["updated_at"] = datetime.now(timezone.utc)

        result = await self.collection.find_one_and_update(
            {"_id": settlement_id, "status": expected.value},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return Settlement(**result) if result else None

    async def delete(self, settlement_id: str, expected: SettlementStatus) -> bool:
        result = await self.collection.delete_one(
            {"_id": settlement_id, "status": expected.value}
        )
        return result.deleted_count == 1

    async def list_for_user(self, user_id: str) -> List[Settlement]:
        docs = await self.collection.find({
            "$or": [{"payer": user_id}, {"recipient": user_id}]
        }).sort("created_at", -1).to_list(None)
        return [Settlement(**doc) for doc in docs]

    @staticmethod
    def _to_doc(settlement: Settlement) -> dict:
        doc = settlement.model_dump(by_alias=True)
        doc["status"] = settlement.status.value
        doc["payment_method"] = settlement.payment_method.value
        return doc
