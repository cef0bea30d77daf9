from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from settleup.models.debt import SimplificationResult


class PaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_user: str = Field(serialization_alias="from")
    to_user: str = Field(serialization_alias="to")
    amount: str


class SimplificationResponse(BaseModel):
    payments: List[PaymentResponse]
    original_transaction_count: int
    simplified_transaction_count: int
    transactions_saved: int
    savings_percentage: float
    original_total_amount: str
    simplified_total_amount: str
    net_balances: Dict[str, str]
    currency: str

    @classmethod
    def from_result(cls, result: SimplificationResult) -> "SimplificationResponse":
        return cls(
            payments=[
                PaymentResponse(
                    from_user=p.from_user,
                    to_user=p.to_user,
                    amount=p.amount.to_decimal_string()
                )
                for p in result.payments
            ],
            original_transaction_count=result.original_transaction_count,
            simplified_transaction_count=result.simplified_transaction_count,
            transactions_saved=result.transactions_saved,
            savings_percentage=result.savings_percentage,
            original_total_amount=result.original_total_amount.to_decimal_string(),
            simplified_total_amount=result.simplified_total_amount.to_decimal_string(),
            net_balances={u: m.to_decimal_string() for u, m in result.net_balances.items()},
            currency=result.original_total_amount.currency
        )
