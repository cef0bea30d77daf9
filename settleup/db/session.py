from dataclasses import dataclass

from settleup.core.config import settings
from settleup.db.mongo import connect_to_mongo, close_mongo_connection, mongodb
from settleup.repositories.balance_repo import (
    BalanceRepository,
    InMemoryBalanceRepository,
    MongoBalanceRepository,
)
from settleup.repositories.settlement_repo import (
    InMemorySettlementRepository,
    MongoSettlementRepository,
    SettlementRepository,
)


@dataclass
class Repositories:
    balances: BalanceRepository
    settlements: SettlementRepository


async def open_repositories(backend: str = None) -> Repositories:
    """Repositories for the configured LEDGER_BACKEND."""
    backend = backend or settings.LEDGER_BACKEND
    if backend == "mongo":
        await connect_to_mongo()
        return Repositories(
            balances=MongoBalanceRepository(mongodb.db),
            settlements=MongoSettlementRepository(mongodb.db),
        )
    if backend == "memory":
        return Repositories(
            balances=InMemoryBalanceRepository(),
            settlements=InMemorySettlementRepository(),
        )
    raise ValueError(f"Unknown LEDGER_BACKEND: {backend!r}")


async def close_repositories(backend: str = None) -> None:
    if (backend or settings.LEDGER_BACKEND) == "mongo":
        await close_mongo_connection()
