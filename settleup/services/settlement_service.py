import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from settleup.core.errors import (
    InvalidSettlementTransition,
    InvariantViolation,
    SelfSettlementError,
    SettlementNotFound,
)
from settleup.models.money import Money
from settleup.models.settlement import PaymentMethod, Settlement, SettlementStatus
from settleup.repositories.settlement_repo import SettlementRepository
from settleup.services.ledger_service import BalanceLedger

logger = logging.getLogger(__name__)


class SettlementRecorder:
    """
    Records real-world payments and writes confirmed ones into the ledger.

    pending --confirm--> confirmed   (ledger: payer owes recipient less, once)
    pending --dispute--> disputed    (no ledger effect)
    pending --delete-->  removed     (no ledger effect)
    """

    def __init__(self, repository: SettlementRepository, ledger: BalanceLedger):
        self.repository = repository
        self.ledger = ledger

    async def create(
        self,
        payer: str,
        recipient: str,
        amount: Money,
        payment_method: PaymentMethod = PaymentMethod.OTHER,
        notes: Optional[str] = None,
        group_id: Optional[str] = None,
        related_transactions: Optional[List[str]] = None,
    ) -> Settlement:
        if payer == recipient:
            raise SelfSettlementError("Payer and recipient cannot be the same user")
        if not amount.is_positive():
            raise InvariantViolation("Settlement amount must be positive")

        settlement = Settlement(
            payer=payer,
            recipient=recipient,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
            group_id=group_id,
            related_transactions=related_transactions or [],
        )
        await self.repository.insert(settlement)
        logger.info(
            "Settlement %s created: %s pays %s %s", settlement.id, payer, recipient, amount
        )
        return settlement

    async def get(self, settlement_id: str) -> Settlement:
        settlement = await self.repository.get(settlement_id)
        if settlement is None:
            raise SettlementNotFound(settlement_id)
        return settlement

    async def confirm(self, settlement_id: str, confirmed_by: Optional[str] = None) -> Settlement:
        """
        Confirm a pending settlement and reduce the payer's debt.

        Confirming an already confirmed settlement is a no-op; the ledger
        write is keyed by the settlement id so it lands exactly once even if
        a previous attempt stopped between the two steps.
        """
        settlement = await self.get(settlement_id)

        if confirmed_by is not None and confirmed_by != settlement.recipient:
            raise InvariantViolation("Only the recipient can confirm this settlement")

        if settlement.status == SettlementStatus.DISPUTED:
            raise InvalidSettlementTransition(
                settlement_id, settlement.status.value, SettlementStatus.CONFIRMED.value
            )

        if settlement.status == SettlementStatus.PENDING:
            updated = await self.repository.transition(
                settlement_id,
                SettlementStatus.PENDING,
                {
                    "status": SettlementStatus.CONFIRMED,
                    "confirmed_at": datetime.now(timezone.utc),
                    "confirmed_by": confirmed_by or settlement.recipient,
                },
            )
            if updated is None:
                # Lost the race; act on whatever the winner left behind
                return await self.confirm(settlement_id, confirmed_by)
            settlement = updated
            logger.info("Settlement %s confirmed", settlement_id)

        await self.ledger.apply_share(
            settlement.payer,
            settlement.recipient,
            settlement.amount,
            sign=-1,
            group_id=settlement.group_id,
            idempotency_key=settlement.ledger_key(),
        )
        return settlement

    async def dispute(self, settlement_id: str, reason: str, disputed_by: Optional[str] = None) -> Settlement:
        if not reason or not reason.strip():
            raise InvariantViolation("Dispute reason is required")

        settlement = await self.get(settlement_id)
        if disputed_by is not None and not settlement.involves(disputed_by):
            raise InvariantViolation("Only involved parties can dispute this settlement")

        updated = await self.repository.transition(
            settlement_id,
            SettlementStatus.PENDING,
            {
                "status": SettlementStatus.DISPUTED,
                "disputed_at": datetime.now(timezone.utc),
                "dispute_reason": reason.strip(),
            },
        )
        if updated is None:
            current = await self.get(settlement_id)
            raise InvalidSettlementTransition(
                settlement_id, current.status.value, SettlementStatus.DISPUTED.value
            )

        logger.info("Settlement %s disputed: %s", settlement_id, reason.strip())
        return updated

    async def delete(self, settlement_id: str, user_id: str) -> Settlement:
        """
        Remove a pending settlement. Only the payer or recipient may do so.

        Pending settlements never touched the ledger, so nothing is reverted.
        """
        settlement = await self.get(settlement_id)
        if not settlement.involves(user_id):
            raise InvariantViolation("Only involved parties can delete this settlement")

        if not await self.repository.delete(settlement_id, SettlementStatus.PENDING):
            current = await self.get(settlement_id)
            raise InvalidSettlementTransition(settlement_id, current.status.value, "deleted")

        logger.info("Settlement %s deleted by %s", settlement_id, user_id)
        return settlement

    async def list_for_user(self, user_id: str) -> List[Settlement]:
        return await self.repository.list_for_user(user_id)

    async def stats_for_user(self, user_id: str) -> Dict[str, object]:
        settlements = await self.repository.list_for_user(user_id)
        currency = self.ledger.currency
        stats = {
            "total": len(settlements),
            "pending": 0,
            "confirmed": 0,
            "disputed": 0,
            "total_paid": Money.zero(currency),
            "total_received": Money.zero(currency),
            "average_settlement_days": 0,
        }
        settle_seconds = []

        for settlement in settlements:
            stats[settlement.status.value] += 1
            if settlement.payer == user_id:
                stats["total_paid"] = stats["total_paid"] + settlement.amount
            else:
                stats["total_received"] = stats["total_received"] + settlement.amount
            if settlement.status == SettlementStatus.CONFIRMED and settlement.confirmed_at:
                settle_seconds.append((settlement.confirmed_at - settlement.created_at).total_seconds())

        if settle_seconds:
            # Rounded to whole days
            stats["average_settlement_days"] = round(sum(settle_seconds) / len(settle_seconds) / 86400)

        return stats
