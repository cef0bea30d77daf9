from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from settleup.models.money import Money


class SimplifiedPayment(BaseModel):
    """One instruction in a reduced settlement plan. Never persisted."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_user: str = Field(alias="from")
    to_user: str = Field(alias="to")
    amount: Money


class SimplificationResult(BaseModel):
    payments: List[SimplifiedPayment] = []
    original_transaction_count: int = 0
    simplified_transaction_count: int = 0
    transactions_saved: int = 0
    savings_percentage: float = 0.0
    original_total_amount: Money
    simplified_total_amount: Money
    net_balances: Dict[str, Money] = {}
