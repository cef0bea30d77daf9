from fastapi import APIRouter
from settleup.api.v1.endpoints import splits, balances, settlements, debts

api_router = APIRouter()

api_router.include_router(splits.router, prefix="/splits", tags=["splits"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(settlements.router, prefix="/settlements", tags=["settlements"])
api_router.include_router(debts.router, prefix="/debts", tags=["debts"])
