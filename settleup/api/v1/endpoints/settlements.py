from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from settleup.api.deps import get_settlement_recorder
from settleup.models.money import Money
from settleup.schemas.settlement import (
    SettlementConfirm,
    SettlementCreate,
    SettlementDispute,
    SettlementResponse,
    SettlementStatsResponse,
)
from settleup.services.settlement_service import SettlementRecorder

router = APIRouter()


@router.post("/", response_model=SettlementResponse, status_code=status.HTTP_201_CREATED)
async def create_settlement(
    settlement_in: SettlementCreate,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    try:
        amount = Money.from_decimal_string(
            settlement_in.amount, settlement_in.currency or recorder.ledger.currency
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc)
        )

    settlement = await recorder.create(
        payer=settlement_in.payer,
        recipient=settlement_in.recipient,
        amount=amount,
        payment_method=settlement_in.payment_method,
        notes=settlement_in.notes,
        group_id=settlement_in.group_id,
        related_transactions=settlement_in.related_transactions
    )
    return SettlementResponse.from_settlement(settlement)


@router.get("/users/{user_id}", response_model=List[SettlementResponse])
async def list_user_settlements(
    user_id: str,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    return [SettlementResponse.from_settlement(s) for s in await recorder.list_for_user(user_id)]


@router.get("/users/{user_id}/stats", response_model=SettlementStatsResponse)
async def get_user_settlement_stats(
    user_id: str,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    stats = await recorder.stats_for_user(user_id)
    return SettlementStatsResponse.from_stats(stats, recorder.ledger.currency)


@router.get("/{settlement_id}", response_model=SettlementResponse)
async def get_settlement(
    settlement_id: str,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    return SettlementResponse.from_settlement(await recorder.get(settlement_id))


@router.post("/{settlement_id}/confirm", response_model=SettlementResponse)
async def confirm_settlement(
    settlement_id: str,
    payload: Optional[SettlementConfirm] = None,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    """Recipient confirms receipt; safe to retry"""
    confirmed_by = payload.confirmed_by if payload else None
    settlement = await recorder.confirm(settlement_id, confirmed_by=confirmed_by)
    return SettlementResponse.from_settlement(settlement)


@router.post("/{settlement_id}/dispute", response_model=SettlementResponse)
async def dispute_settlement(
    settlement_id: str,
    payload: SettlementDispute,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    settlement = await recorder.dispute(
        settlement_id, payload.reason, disputed_by=payload.disputed_by
    )
    return SettlementResponse.from_settlement(settlement)


@router.delete("/{settlement_id}", response_model=SettlementResponse)
async def delete_settlement(
    settlement_id: str,
    user_id: str,
    recorder: SettlementRecorder = Depends(get_settlement_recorder)
):
    """Payer or recipient removes a pending settlement"""
    settlement = await recorder.delete(settlement_id, user_id)
    return SettlementResponse.from_settlement(settlement)
