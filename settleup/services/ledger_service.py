import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from settleup.core.config import settings
from settleup.core.errors import ConcurrencyConflict, InvariantViolation, SelfSettlementError
from settleup.models.ledger import BalanceEdge, EdgeKey, canonical_pair
from settleup.models.money import Money
from settleup.repositories.balance_repo import BalanceRepository
from settleup.schemas.ledger import UserBalanceResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BalanceLedger:
    """
    Signed pairwise balances, one edge per unordered pair and group.

    Writes for the same pair are serialized in-process by a per-pair lock and
    across processes by the repository's version check. A pair's lock only
    exists while some write holds or waits on it.
    """

    def __init__(self, repository: BalanceRepository, currency: Optional[str] = None):
        self.repository = repository
        self.currency = currency or settings.DEFAULT_CURRENCY
        self._locks: Dict[EdgeKey, asyncio.Lock] = {}
        self._lock_users: Dict[EdgeKey, int] = defaultdict(int)

    async def apply_share(
        self,
        of_user: str,
        to_user: str,
        amount: Money,
        sign: int = 1,
        group_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """
        Add sign * amount to what of_user owes to_user.

        sign=+1 records a new debt, sign=-1 reduces it (repayment or
        reversal). Returns False if idempotency_key was already applied.
        """
        if of_user == to_user:
            raise SelfSettlementError(f"User {of_user} cannot owe themselves")
        if sign not in (1, -1):
            raise InvariantViolation(f"sign must be +1 or -1, got {sign}")
        if amount.is_negative():
            raise InvariantViolation(f"Share amount must be non-negative, got {amount}")

        user_a, user_b, flipped = canonical_pair(of_user, to_user)
        delta = amount if sign == 1 else amount.negate()
        if flipped:
            delta = delta.negate()
        key = EdgeKey(group_id, user_a, user_b)

        async with self._pair_lock(key):
            current = await self.repository.get(key)
            version = current.version if current else 0
            previous = current.amount if current else Money.zero(amount.currency)
            updated = previous + delta

            edge = BalanceEdge(
                user_a=user_a,
                user_b=user_b,
                group_id=group_id,
                amount=updated,
                version=version,
            )
            applied = await self.repository.save(edge, version, idempotency_key)

        if applied:
            logger.info(
                "Ledger %s: %s -> %s (v%d)",
                key.storage_id(), previous.to_decimal_string(), updated.to_decimal_string(), version + 1
            )
        else:
            logger.info("Ledger %s: key %s already applied, skipping", key.storage_id(), idempotency_key)
        return applied

    @asynccontextmanager
    async def _pair_lock(self, key: EdgeKey):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def net_balance(self, user_a: str, user_b: str, group_id: Optional[str] = None) -> Money:
        """
        Signed amount user_a owes user_b (negative: user_b owes user_a).

        Sums every group unless group_id is given.
        """
        if user_a == user_b:
            raise SelfSettlementError(f"User {user_a} has no balance with themselves")
        total = Money.zero(self.currency)
        for edge in await self.repository.list_for_user(user_a):
            if edge.counterparty(user_a) != user_b:
                continue
            if group_id is not None and edge.group_id != group_id:
                continue
            total = total + edge.owed_by(user_a)
        return total

    async def all_balances_for(self, user_id: str) -> List[Tuple[str, Money]]:
        """(other_user, amount user_id owes other_user) for every non-zero pair."""
        per_user: Dict[str, Money] = {}
        for edge in await self.repository.list_for_user(user_id):
            other = edge.counterparty(user_id)
            per_user[other] = per_user.get(other, Money.zero(self.currency)) + edge.owed_by(user_id)
        return sorted(
            ((other, amount) for other, amount in per_user.items() if not amount.is_zero()),
            key=lambda pair: pair[0]
        )

    async def edges_for_user(self, user_id: str) -> List[BalanceEdge]:
        return await self.repository.list_for_user(user_id)

    async def edges_for_group(self, group_id: str) -> List[BalanceEdge]:
        return await self.repository.list_for_group(group_id)

    async def user_summary(self, user_id: str) -> UserBalanceResponse:
        owes = Money.zero(self.currency)
        is_owed = Money.zero(self.currency)
        for _, amount in await self.all_balances_for(user_id):
            if amount.is_positive():
                owes = owes + amount
            else:
                is_owed = is_owed - amount

        return UserBalanceResponse(
            user_id=user_id,
            owes=owes.to_decimal_string(),
            is_owed=is_owed.to_decimal_string(),
            net=(is_owed - owes).to_decimal_string(),
            currency=self.currency
        )


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
) -> T:
    """Re-run the whole operation after a ConcurrencyConflict."""
    attempts = attempts or settings.LEDGER_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConcurrencyConflict as exc:
            if attempt == attempts:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise
            logger.warning("Attempt %d/%d lost a race, retrying: %s", attempt, attempts, exc)
