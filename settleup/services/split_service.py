import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from settleup.core.errors import InvariantViolation
from settleup.models.base import _utcnow
from settleup.models.money import Money
from settleup.models.split import (
    Participant,
    SplitConfigBase,
    SplitType,
    Transaction,
    ValidationResult,
)
from settleup.services.ledger_service import BalanceLedger, retry_on_conflict
from settleup.services.split_validator import validate_split

logger = logging.getLogger(__name__)


def calculate_equal_split(total: Money, participant_count: int) -> List[Money]:
    """Equal shares; leftover minor units go to the first participants."""
    return total.allocate_equally(participant_count)


def calculate_percentage_split(total: Money, percentages: Sequence[Decimal]) -> List[Money]:
    """
    Shares for each percentage, rounded half-up.

    Percentages must sum to exactly 100. The rounding difference is added
    to the first share so the result always sums to total.
    """
    if not percentages:
        raise InvariantViolation("At least one percentage is required")
    if sum(percentages, Decimal(0)) != 100:
        raise InvariantViolation(f"Percentages must sum to 100, got {sum(percentages, Decimal(0))}")

    shares = [total.percent(p) for p in percentages]
    difference = total.minor - sum(s.minor for s in shares)
    if difference:
        shares[0] = Money.of_minor(shares[0].minor + difference, total.currency)
    return shares


class TransactionSplitService:
    """
    Validates a transaction's split and mirrors it into the ledger.

    Every per-participant write carries the key
    txn:<id>:<revision>:<user>:<sign>, so a failed apply, revert or update
    can be retried as a whole without charging anyone twice. Reverting a
    share and settling that participant use the same key, so a share is
    taken off the ledger at most once per revision.
    """

    def __init__(self, ledger: BalanceLedger):
        self.ledger = ledger

    async def apply_transaction_split(self, transaction: Transaction) -> ValidationResult:
        """
        Validate the split against the transaction amount, then record what
        each participant owes the payer. Nothing is written on rejection.
        """
        split = transaction.require_split()
        result = validate_split(transaction.amount, split.split_type, split.participants)
        if not result.is_valid:
            return result

        await self._apply(transaction.id, transaction.revision, split, sign=1)
        logger.info("Applied %s split of transaction %s", split.split_type, transaction.id)
        return result

    async def revert_transaction_split(self, transaction: Transaction) -> None:
        """Exact inverse of apply_transaction_split, e.g. on delete."""
        split = transaction.require_split()
        await self._apply(transaction.id, transaction.revision, split, sign=-1)
        logger.info("Reverted split of transaction %s", transaction.id)

    async def update_split(self, existing: Transaction, updated: Transaction) -> ValidationResult:
        """
        Replace a transaction's split after re-validating against the new amount.

        updated must carry a higher revision than existing. Settled
        participants of the old split may not be dropped; their shares are
        validated like everyone else's.
        """
        if existing.id != updated.id:
            raise InvariantViolation("Cannot update a split across different transactions")
        if updated.revision <= existing.revision:
            raise InvariantViolation(
                f"Transaction {updated.id}: updated split needs a revision above {existing.revision}"
            )
        old_split = existing.require_split()
        new_split = updated.require_split()

        result = validate_split(updated.amount, new_split.split_type, new_split.participants)
        errors = list(result.errors)
        for participant in old_split.participants:
            if participant.settled and new_split.participant(participant.user_id) is None:
                errors.append(
                    f"Participant {participant.user_id}: settled participant cannot be removed"
                )
        if errors:
            return ValidationResult.from_errors(errors)

        await self._apply(existing.id, existing.revision, old_split, sign=-1)
        await self._apply(updated.id, updated.revision, new_split, sign=1)
        logger.info(
            "Updated split of transaction %s (revision %d -> %d)",
            updated.id, existing.revision, updated.revision
        )
        return result

    async def mark_participant_settled(self, transaction: Transaction, user_id: str) -> Transaction:
        """
        Mark one participant as settled and take their share off the ledger.

        Returns the transaction with the participant updated; the caller
        stores it. Settling the payer only flips the flag.
        """
        split = transaction.require_split()
        participant = split.participant(user_id)
        if participant is None:
            raise InvariantViolation(
                f"User {user_id} is not a participant in transaction {transaction.id}"
            )
        if participant.settled:
            return transaction

        if user_id != split.paid_by and participant.share.is_positive():
            await self._write(transaction.id, transaction.revision, split, participant, sign=-1)

        settled = participant.model_copy(update={"settled": True, "settled_at": _utcnow()})
        participants = [settled if p.user_id == user_id else p for p in split.participants]
        logger.info("Participant %s settled on transaction %s", user_id, transaction.id)
        return transaction.model_copy(
            update={"split": split.model_copy(update={"participants": participants})}
        )

    async def _apply(self, transaction_id: str, revision: int, split: SplitConfigBase, sign: int) -> None:
        for participant in self._debtors(split):
            await self._write(transaction_id, revision, split, participant, sign)

    async def _write(
        self,
        transaction_id: str,
        revision: int,
        split: SplitConfigBase,
        participant: Participant,
        sign: int,
    ) -> None:
        async def write():
            return await self.ledger.apply_share(
                participant.user_id,
                split.paid_by,
                participant.share,
                sign=sign,
                group_id=split.group_id,
                idempotency_key=share_key(transaction_id, revision, participant.user_id, sign),
            )
        await retry_on_conflict(write)

    @staticmethod
    def _debtors(split: SplitConfigBase) -> List[Participant]:
        """Participants who still owe the payer something."""
        return [
            p for p in split.participants
            if p.user_id != split.paid_by and p.share.is_positive() and not p.settled
        ]


def share_key(transaction_id: str, revision: int, user_id: str, sign: int) -> str:
    """Idempotency key for one participant's ledger write."""
    return f"txn:{transaction_id}:{revision}:{user_id}:{sign:+d}"


def shares_for(split_type: SplitType, total: Money, user_ids: Sequence[str],
               percentages: Optional[Sequence[Decimal]] = None) -> List[Participant]:
    """Build participants with computed shares for equal or percentage splits."""
    split_type = SplitType(split_type)
    if split_type == SplitType.EQUAL:
        shares = calculate_equal_split(total, len(user_ids))
        return [Participant(user_id=u, share=s) for u, s in zip(user_ids, shares)]
    if split_type == SplitType.PERCENTAGE:
        if percentages is None or len(percentages) != len(user_ids):
            raise InvariantViolation("One percentage per participant is required")
        shares = calculate_percentage_split(total, percentages)
        return [
            Participant(user_id=u, share=s, percentage=p)
            for u, s, p in zip(user_ids, shares, percentages)
        ]
    raise InvariantViolation("Custom splits carry caller-provided shares")
