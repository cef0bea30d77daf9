import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from settleup.main import app
from settleup.core.config import settings
from settleup.repositories.balance_repo import InMemoryBalanceRepository
from settleup.repositories.settlement_repo import InMemorySettlementRepository
from settleup.services.debt_simplifier import DebtPlanService
from settleup.services.ledger_service import BalanceLedger
from settleup.services.settlement_service import SettlementRecorder
from settleup.services.split_service import TransactionSplitService


@pytest.fixture
def ledger():
    """Ledger over a fresh in-memory edge store."""
    return BalanceLedger(InMemoryBalanceRepository(), currency="INR")


@pytest.fixture
def recorder(ledger):
    return SettlementRecorder(InMemorySettlementRepository(), ledger)


@pytest.fixture
def split_service(ledger):
    return TransactionSplitService(ledger)


@pytest.fixture
def debt_plans(ledger):
    return DebtPlanService(ledger)


@pytest_asyncio.fixture
async def triangle_ledger(ledger):
    """A owes B 100, B owes C 100, A owes C 50."""
    from settleup.models.money import Money

    await ledger.apply_share("A", "B", Money.of_minor(10000, "INR"))
    await ledger.apply_share("B", "C", Money.of_minor(10000, "INR"))
    await ledger.apply_share("A", "C", Money.of_minor(5000, "INR"))
    return ledger


@pytest.fixture
def test_client(monkeypatch):
    """FastAPI test client on the in-memory backend."""
    monkeypatch.setattr(settings, "LEDGER_BACKEND", "memory")

    # Context manager runs the lifespan, so every test gets fresh stores
    with TestClient(app) as client:
        yield client


@pytest.fixture
def mock_db():
    """MagicMock database with async collection methods."""
    db = MagicMock()
    for name in ("balance_edges", "ledger_keys", "settlements"):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.insert_one = AsyncMock()
        collection.update_one = AsyncMock()
        collection.delete_one = AsyncMock()
        collection.find_one_and_update = AsyncMock()
        setattr(db, name, collection)
    return db


@pytest.fixture
def triangle_graph():
    """Same debts as triangle_ledger, as a pure graph."""
    from settleup.models.money import Money
    from settleup.services.debt_graph import graph_from_debts

    return graph_from_debts([
        ("A", "B", Money.of_minor(10000, "INR")),
        ("B", "C", Money.of_minor(10000, "INR")),
        ("A", "C", Money.of_minor(5000, "INR")),
    ], "INR")
