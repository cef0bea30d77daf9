from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from settleup.models.base import _utcnow
from settleup.models.money import Money
from settleup.models.split import Participant, SplitType, Transaction, TransactionType


class ParticipantIn(BaseModel):
    user_id: str
    share: str  # Decimal string, e.g. "120.50"
    percentage: Optional[Decimal] = None
    settled: bool = False

    model_config = {"from_attributes": True}

    def to_domain(self, currency: str) -> Participant:
        return Participant(
            user_id=self.user_id,
            share=Money.from_decimal_string(self.share, currency),
            percentage=self.percentage,
            settled=self.settled,
            settled_at=_utcnow() if self.settled else None
        )


class SplitValidateRequest(BaseModel):
    amount: str
    currency: Optional[str] = None
    split_type: SplitType
    participants: List[ParticipantIn] = Field(..., min_length=1)


class SplitConfigIn(BaseModel):
    split_type: SplitType
    paid_by: str
    participants: List[ParticipantIn] = Field(..., min_length=1)
    group_id: Optional[str] = None


class TransactionIn(BaseModel):
    id: Optional[str] = None
    amount: str
    currency: Optional[str] = None
    type: TransactionType = TransactionType.EXPENSE
    revision: int = Field(default=0, ge=0)
    split: SplitConfigIn

    def to_domain(self, default_currency: str) -> Transaction:
        currency = self.currency or default_currency
        data = {
            "amount": Money.from_decimal_string(self.amount, currency),
            "type": self.type,
            "revision": self.revision,
            "split": {
                "split_type": self.split.split_type.value,
                "paid_by": self.split.paid_by,
                "group_id": self.split.group_id,
                "participants": [p.to_domain(currency).model_dump() for p in self.split.participants],
            },
        }
        if self.id:
            data["_id"] = self.id
        return Transaction(**data)


class ValidationResultResponse(BaseModel):
    is_valid: bool
    errors: List[str]


class ApplySplitResponse(ValidationResultResponse):
    transaction_id: str


class SettleParticipantRequest(BaseModel):
    transaction: TransactionIn
    user_id: str


class SettleParticipantResponse(BaseModel):
    transaction_id: str
    user_id: str
    settled: bool
    settled_at: Optional[datetime] = None

