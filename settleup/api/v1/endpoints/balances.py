from fastapi import APIRouter, Depends

from settleup.api.deps import get_ledger
from settleup.schemas.ledger import (
    CounterpartyBalance,
    PairBalanceResponse,
    UserBalancesResponse,
)
from settleup.services.ledger_service import BalanceLedger

router = APIRouter()


@router.get("/{user_id}", response_model=UserBalancesResponse)
async def get_user_balances(user_id: str, ledger: BalanceLedger = Depends(get_ledger)):
    """Totals plus one signed entry per counterparty"""
    summary = await ledger.user_summary(user_id)
    balances = await ledger.all_balances_for(user_id)
    return UserBalancesResponse(
        **summary.model_dump(),
        balances=[
            CounterpartyBalance(user_id=other, amount=amount.to_decimal_string())
            for other, amount in balances
        ]
    )


@router.get("/{user_a}/{user_b}", response_model=PairBalanceResponse)
async def get_pair_balance(
    user_a: str,
    user_b: str,
    group_id: str = None,
    ledger: BalanceLedger = Depends(get_ledger)
):
    """Signed balance between two users; positive means user_a owes user_b"""
    amount = await ledger.net_balance(user_a, user_b, group_id=group_id)
    return PairBalanceResponse(
        user_a=user_a,
        user_b=user_b,
        amount=amount.to_decimal_string(),
        currency=amount.currency
    )
