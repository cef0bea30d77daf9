from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from settleup.core.errors import InvariantViolation
from settleup.models.base import DocumentModel
from settleup.models.money import Money


class SplitType(str, Enum):
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


# Embedded in a transaction's split, no separate _id
class Participant(BaseModel):
    user_id: str
    share: Money
    percentage: Optional[Decimal] = Field(default=None, decimal_places=2)
    settled: bool = False
    settled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _settled_has_timestamp(self) -> "Participant":
        if self.settled and self.settled_at is None:
            raise ValueError("settled participant requires settled_at")
        return self


class PercentageParticipant(Participant):
    percentage: Decimal = Field(decimal_places=2)


class SplitConfigBase(BaseModel):
    paid_by: str
    participants: List[Participant]
    group_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_members(self):
        if not self.participants:
            raise ValueError("at least one participant is required")
        if self.paid_by not in {p.user_id for p in self.participants}:
            raise ValueError("paid_by must be one of the participants")
        return self

    def participant(self, user_id: str) -> Optional[Participant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None


class EqualSplitConfig(SplitConfigBase):
    split_type: Literal["equal"] = "equal"


class CustomSplitConfig(SplitConfigBase):
    split_type: Literal["custom"] = "custom"


class PercentageSplitConfig(SplitConfigBase):
    split_type: Literal["percentage"] = "percentage"
    participants: List[PercentageParticipant]


SplitConfig = Annotated[
    Union[EqualSplitConfig, PercentageSplitConfig, CustomSplitConfig],
    Field(discriminator="split_type"),
]


class Transaction(DocumentModel):
    """
    Read-only view of the caller's transaction record.

    revision identifies one version of the split; ledger writes for a
    revision are keyed by it, so replaying them is a no-op.
    """
    amount: Money
    type: TransactionType = TransactionType.EXPENSE
    split: Optional[SplitConfig] = None
    revision: int = Field(default=0, ge=0)

    def require_split(self) -> SplitConfigBase:
        if self.split is None:
            raise InvariantViolation(f"Transaction {self.id} has no split configuration")
        if self.type != TransactionType.EXPENSE:
            raise InvariantViolation(f"Transaction {self.id}: only expenses can be split")
        return self.split


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(is_valid=not errors, errors=list(errors))
