from fastapi import APIRouter, Depends

from settleup.api.deps import get_debt_plans
from settleup.schemas.debt import SimplificationResponse
from settleup.services.debt_simplifier import DebtPlanService

router = APIRouter()


@router.get("/simplify/users/{user_id}", response_model=SimplificationResponse)
async def simplify_for_user(user_id: str, plans: DebtPlanService = Depends(get_debt_plans)):
    """Reduced payment plan across the user's circle"""
    return SimplificationResponse.from_result(await plans.simplify_for_user(user_id))


@router.get("/simplify/groups/{group_id}", response_model=SimplificationResponse)
async def simplify_for_group(group_id: str, plans: DebtPlanService = Depends(get_debt_plans)):
    """Reduced payment plan for one group"""
    return SimplificationResponse.from_result(await plans.simplify_for_group(group_id))
