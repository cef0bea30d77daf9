"""
Balance edge model - signed pairwise balance between two users.

Design principles:
- One edge per unordered pair (and optional group)
- Pair stored canonically: user_a < user_b
- amount > 0 means user_a owes user_b, amount < 0 means user_b owes user_a
- Zero edges are never persisted
- version is the optimistic concurrency token, bumped on every write
"""

from datetime import datetime
from typing import NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field, ConfigDict, model_validator

from settleup.models.base import _utcnow
from settleup.models.money import Money


class EdgeKey(NamedTuple):
    group_id: Optional[str]
    user_a: str
    user_b: str

    def storage_id(self) -> str:
        return f"{self.group_id or '-'}:{self.user_a}:{self.user_b}"


def canonical_pair(first: str, second: str) -> Tuple[str, str, bool]:
    """Order a pair as (user_a, user_b, flipped)."""
    if first <= second:
        return first, second, False
    return second, first, True


class BalanceEdge(BaseModel):
    """
    user_a owes user_b `amount` (signed).

    Invariants:
    - user_a < user_b
    - amount is non-zero once persisted
    """
    model_config = ConfigDict(populate_by_name=True)

    user_a: str
    user_b: str
    amount: Money
    group_id: Optional[str] = None
    version: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _ordered(self) -> "BalanceEdge":
        if self.user_a >= self.user_b:
            raise ValueError("balance edge users must be distinct and ordered")
        return self

    @property
    def key(self) -> EdgeKey:
        return EdgeKey(self.group_id, self.user_a, self.user_b)

    def owed_by(self, user_id: str) -> Money:
        """Signed amount `user_id` owes the other side of this edge."""
        if user_id == self.user_a:
            return self.amount
        if user_id == self.user_b:
            return self.amount.negate()
        raise ValueError(f"User {user_id} is not part of edge {self.key}")

    def counterparty(self, user_id: str) -> str:
        return self.user_b if user_id == self.user_a else self.user_a
