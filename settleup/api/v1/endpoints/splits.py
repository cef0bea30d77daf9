from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from settleup.api.deps import get_ledger, get_split_service
from settleup.core.errors import AmountOutOfRange
from settleup.models.money import Money
from settleup.schemas.split import (
    ApplySplitResponse,
    SettleParticipantRequest,
    SettleParticipantResponse,
    SplitValidateRequest,
    TransactionIn,
    ValidationResultResponse,
)
from settleup.services.ledger_service import BalanceLedger
from settleup.services.split_service import TransactionSplitService
from settleup.services.split_validator import OUT_OF_RANGE, validate_split

router = APIRouter()


@router.post("/validate", response_model=ValidationResultResponse)
async def validate(
    payload: SplitValidateRequest,
    ledger: BalanceLedger = Depends(get_ledger)
):
    """Check a split without touching the ledger. Always 200 with every error."""
    currency = payload.currency or ledger.currency
    range_errors = []
    try:
        try:
            total = Money.from_decimal_string(payload.amount, currency)
        except AmountOutOfRange:
            range_errors.append(f"Transaction {OUT_OF_RANGE}")
        participants = []
        for index, participant in enumerate(payload.participants, start=1):
            try:
                participants.append(participant.to_domain(currency))
            except AmountOutOfRange:
                range_errors.append(f"Participant {index}: {OUT_OF_RANGE}")
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc)
        )

    if range_errors:
        return ValidationResultResponse(is_valid=False, errors=range_errors)
    result = validate_split(total, payload.split_type, participants)
    return ValidationResultResponse(is_valid=result.is_valid, errors=result.errors)


@router.post("/apply", response_model=ApplySplitResponse)
async def apply(
    payload: TransactionIn,
    service: TransactionSplitService = Depends(get_split_service),
    ledger: BalanceLedger = Depends(get_ledger)
):
    """Validate a transaction's split and record the resulting debts."""
    try:
        transaction = payload.to_domain(ledger.currency)
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc)
        )

    result = await service.apply_transaction_split(transaction)
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"is_valid": False, "errors": result.errors}
        )
    return ApplySplitResponse(
        transaction_id=transaction.id,
        is_valid=True,
        errors=[]
    )


@router.post("/settle", response_model=SettleParticipantResponse)
async def settle_participant(
    payload: SettleParticipantRequest,
    service: TransactionSplitService = Depends(get_split_service),
    ledger: BalanceLedger = Depends(get_ledger)
):
    """Mark one participant settled and remove their share from the ledger."""
    try:
        transaction = payload.transaction.to_domain(ledger.currency)
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc)
        )

    settled = await service.mark_participant_settled(transaction, payload.user_id)
    participant = settled.split.participant(payload.user_id)
    return SettleParticipantResponse(
        transaction_id=settled.id,
        user_id=participant.user_id,
        settled=participant.settled,
        settled_at=participant.settled_at
    )
