from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from settleup.models.settlement import PaymentMethod, Settlement, SettlementStatus


class SettlementCreate(BaseModel):
    payer: str
    recipient: str
    amount: str  # Decimal string
    currency: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.OTHER
    notes: Optional[str] = Field(default=None, max_length=500)
    group_id: Optional[str] = None
    related_transactions: List[str] = []


class SettlementConfirm(BaseModel):
    confirmed_by: Optional[str] = None


class SettlementDispute(BaseModel):
    reason: str = Field(..., min_length=1)
    disputed_by: Optional[str] = None


class SettlementResponse(BaseModel):
    id: str
    payer: str
    recipient: str
    amount: str
    currency: str
    status: SettlementStatus
    payment_method: PaymentMethod
    notes: Optional[str] = None
    group_id: Optional[str] = None
    related_transactions: List[str] = []
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    disputed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None

    @classmethod
    def from_settlement(cls, settlement: Settlement) -> "SettlementResponse":
        return cls(
            id=settlement.id,
            payer=settlement.payer,
            recipient=settlement.recipient,
            amount=settlement.amount.to_decimal_string(),
            currency=settlement.amount.currency,
            status=settlement.status,
            payment_method=settlement.payment_method,
            notes=settlement.notes,
            group_id=settlement.group_id,
            related_transactions=settlement.related_transactions,
            created_at=settlement.created_at,
            confirmed_at=settlement.confirmed_at,
            disputed_at=settlement.disputed_at,
            dispute_reason=settlement.dispute_reason
        )


class SettlementStatsResponse(BaseModel):
    """Counts per status and totals as decimal strings."""
    total: int
    pending: int
    confirmed: int
    disputed: int
    total_paid: str
    total_received: str
    average_settlement_days: int
    currency: str

    @classmethod
    def from_stats(cls, stats: dict, currency: str) -> "SettlementStatsResponse":
        return cls(
            **{key: value for key, value in stats.items() if key not in ("total_paid", "total_received")},
            total_paid=stats["total_paid"].to_decimal_string(),
            total_received=stats["total_received"].to_decimal_string(),
            currency=currency
        )
