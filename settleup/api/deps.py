from fastapi import Request

from settleup.services.debt_simplifier import DebtPlanService
from settleup.services.ledger_service import BalanceLedger
from settleup.services.settlement_service import SettlementRecorder
from settleup.services.split_service import TransactionSplitService


def get_ledger(request: Request) -> BalanceLedger:
    return request.app.state.ledger


def get_settlement_recorder(request: Request) -> SettlementRecorder:
    return request.app.state.settlement_recorder


def get_split_service(request: Request) -> TransactionSplitService:
    return request.app.state.split_service


def get_debt_plans(request: Request) -> DebtPlanService:
    return request.app.state.debt_plans
