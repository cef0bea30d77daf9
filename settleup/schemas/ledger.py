from typing import List

from pydantic import BaseModel


class UserBalanceResponse(BaseModel):
    """Totals across all counterparties. Amounts are decimal strings."""
    user_id: str
    owes: str
    is_owed: str
    net: str  # is_owed - owes
    currency: str


class PairBalanceResponse(BaseModel):
    """Signed balance: positive means user_a owes user_b."""
    user_a: str
    user_b: str
    amount: str
    currency: str


class CounterpartyBalance(BaseModel):
    user_id: str
    amount: str  # positive: the requesting user owes this counterparty


class UserBalancesResponse(UserBalanceResponse):
    balances: List[CounterpartyBalance] = []
