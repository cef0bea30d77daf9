import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from settleup.api.v1.api import api_router
from settleup.core.config import settings
from settleup.core.errors import (
    AmountOutOfRange,
    ConcurrencyConflict,
    InvariantViolation,
    SettlementNotFound,
)
from settleup.db.session import close_repositories, open_repositories
from settleup.services.debt_simplifier import DebtPlanService
from settleup.services.ledger_service import BalanceLedger
from settleup.services.settlement_service import SettlementRecorder
from settleup.services.split_service import TransactionSplitService

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repositories = await open_repositories()
    ledger = BalanceLedger(repositories.balances)

    app.state.ledger = ledger
    app.state.settlement_recorder = SettlementRecorder(repositories.settlements, ledger)
    app.state.split_service = TransactionSplitService(ledger)
    app.state.debt_plans = DebtPlanService(ledger)
    logger.info("Ledger backend: %s", settings.LEDGER_BACKEND)

    yield

    await close_repositories()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)


@app.exception_handler(SettlementNotFound)
async def settlement_not_found_handler(request: Request, exc: SettlementNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    logger.warning("Rejected request to %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(ConcurrencyConflict)
async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflict):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(AmountOutOfRange)
async def amount_out_of_range_handler(request: Request, exc: AmountOutOfRange):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)}
    )


@app.get("/")
async def root():
    return {"message": "Welcome to SettleUp API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
