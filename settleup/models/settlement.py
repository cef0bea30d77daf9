from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from settleup.models.base import DocumentModel
from settleup.models.money import Money


class SettlementStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Settlement(DocumentModel):
    """
    A real-world payment from payer to recipient.

    Lifecycle: pending -> confirmed (recipient, mutates the ledger once)
               pending -> disputed (either party, no ledger effect)
    confirmed and disputed are terminal.
    """
    payer: str
    recipient: str
    amount: Money
    status: SettlementStatus = SettlementStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.OTHER
    notes: Optional[str] = Field(default=None, max_length=500)
    group_id: Optional[str] = None
    related_transactions: List[str] = []

    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    disputed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.payer, self.recipient)

    def ledger_key(self) -> str:
        """Idempotency key for this settlement's ledger write."""
        return f"settlement:{self.id}"
