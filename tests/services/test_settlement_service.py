from datetime import timedelta

import pytest

from settleup.core.errors import (
    InvalidSettlementTransition,
    InvariantViolation,
    SelfSettlementError,
    SettlementNotFound,
)
from settleup.models.money import Money
from settleup.models.settlement import PaymentMethod, SettlementStatus


def inr(value: str) -> Money:
    return Money.from_decimal_string(value, "INR")


@pytest.mark.asyncio
async def test_confirm_twice_changes_ledger_once(ledger, recorder):
    await ledger.apply_share("A", "B", inr("100"))
    settlement = await recorder.create("A", "B", inr("100"), payment_method=PaymentMethod.UPI)

    first = await recorder.confirm(settlement.id)
    second = await recorder.confirm(settlement.id)

    assert first.status == SettlementStatus.CONFIRMED
    assert second.status == SettlementStatus.CONFIRMED
    assert (await ledger.net_balance("A", "B")).is_zero()


@pytest.mark.asyncio
async def test_partial_settlement_reduces_debt(ledger, recorder):
    await ledger.apply_share("A", "B", inr("100"))
    settlement = await recorder.create("A", "B", inr("40"))

    await recorder.confirm(settlement.id, confirmed_by="B")

    assert await ledger.net_balance("A", "B") == inr("60")


@pytest.mark.asyncio
async def test_pending_settlement_has_no_ledger_effect(ledger, recorder):
    await ledger.apply_share("A", "B", inr("100"))
    await recorder.create("A", "B", inr("100"))

    assert await ledger.net_balance("A", "B") == inr("100")


@pytest.mark.asyncio
async def test_dispute_never_touches_ledger(ledger, recorder):
    await ledger.apply_share("A", "B", inr("100"))
    settlement = await recorder.create("A", "B", inr("100"))

    disputed = await recorder.dispute(settlement.id, "never arrived", disputed_by="B")

    assert disputed.status == SettlementStatus.DISPUTED
    assert disputed.dispute_reason == "never arrived"
    assert await ledger.net_balance("A", "B") == inr("100")


@pytest.mark.asyncio
async def test_confirming_disputed_settlement_fails(recorder):
    settlement = await recorder.create("A", "B", inr("10"))
    await recorder.dispute(settlement.id, "wrong amount")

    with pytest.raises(InvalidSettlementTransition):
        await recorder.confirm(settlement.id)


@pytest.mark.asyncio
async def test_confirmed_settlement_cannot_be_disputed(recorder):
    settlement = await recorder.create("A", "B", inr("10"))
    await recorder.confirm(settlement.id)

    with pytest.raises(InvalidSettlementTransition):
        await recorder.dispute(settlement.id, "changed my mind")


@pytest.mark.asyncio
async def test_only_recipient_confirms(recorder):
    settlement = await recorder.create("A", "B", inr("10"))

    with pytest.raises(InvariantViolation):
        await recorder.confirm(settlement.id, confirmed_by="A")


@pytest.mark.asyncio
async def test_outsider_cannot_dispute(recorder):
    settlement = await recorder.create("A", "B", inr("10"))

    with pytest.raises(InvariantViolation):
        await recorder.dispute(settlement.id, "not mine", disputed_by="C")


@pytest.mark.asyncio
async def test_dispute_requires_reason(recorder):
    settlement = await recorder.create("A", "B", inr("10"))

    with pytest.raises(InvariantViolation):
        await recorder.dispute(settlement.id, "   ")


@pytest.mark.asyncio
async def test_create_validation(recorder):
    with pytest.raises(SelfSettlementError):
        await recorder.create("A", "A", inr("10"))
    with pytest.raises(InvariantViolation):
        await recorder.create("A", "B", inr("0"))


@pytest.mark.asyncio
async def test_unknown_settlement(recorder):
    with pytest.raises(SettlementNotFound):
        await recorder.confirm("missing")


@pytest.mark.asyncio
async def test_overpayment_flips_the_balance(ledger, recorder):
    await ledger.apply_share("A", "B", inr("30"))
    settlement = await recorder.create("A", "B", inr("50"))

    await recorder.confirm(settlement.id)

    assert await ledger.net_balance("B", "A") == inr("20")


@pytest.mark.asyncio
async def test_stats_for_user(recorder):
    paid = await recorder.create("A", "B", inr("10"))
    await recorder.create("C", "A", inr("25"))
    disputed = await recorder.create("A", "C", inr("5"))
    await recorder.confirm(paid.id)
    await recorder.dispute(disputed.id, "duplicate")

    stats = await recorder.stats_for_user("A")

    assert stats["total"] == 3
    assert stats["confirmed"] == 1
    assert stats["pending"] == 1
    assert stats["disputed"] == 1
    assert stats["total_paid"] == inr("15")
    assert stats["total_received"] == inr("25")


@pytest.mark.asyncio
async def test_delete_pending_settlement(ledger, recorder):
    await ledger.apply_share("A", "B", inr("100"))
    settlement = await recorder.create("A", "B", inr("100"))

    deleted = await recorder.delete(settlement.id, "A")

    assert deleted.id == settlement.id
    assert await recorder.list_for_user("A") == []
    assert await ledger.net_balance("A", "B") == inr("100")
    with pytest.raises(SettlementNotFound):
        await recorder.get(settlement.id)


@pytest.mark.asyncio
async def test_outsider_cannot_delete(recorder):
    settlement = await recorder.create("A", "B", inr("10"))

    with pytest.raises(InvariantViolation):
        await recorder.delete(settlement.id, "C")


@pytest.mark.asyncio
async def test_confirmed_settlement_cannot_be_deleted(ledger, recorder):
    settlement = await recorder.create("A", "B", inr("10"))
    await recorder.confirm(settlement.id)

    with pytest.raises(InvalidSettlementTransition):
        await recorder.delete(settlement.id, "B")
    assert (await recorder.get(settlement.id)).status == SettlementStatus.CONFIRMED
    assert await ledger.net_balance("B", "A") == inr("10")


@pytest.mark.asyncio
async def test_average_settlement_days(recorder):
    quick = await recorder.create("A", "B", inr("10"))
    slow = await recorder.create("A", "C", inr("10"))
    created = quick.created_at
    for settlement, days in ((quick, 1), (slow, 3)):
        await recorder.repository.transition(
            settlement.id,
            SettlementStatus.PENDING,
            {
                "status": SettlementStatus.CONFIRMED,
                "created_at": created,
                "confirmed_at": created + timedelta(days=days),
            },
        )

    stats = await recorder.stats_for_user("A")

    assert stats["confirmed"] == 2
    assert stats["average_settlement_days"] == 2


@pytest.mark.asyncio
async def test_average_settlement_days_without_confirmations(recorder):
    await recorder.create("A", "B", inr("10"))

    assert (await recorder.stats_for_user("A"))["average_settlement_days"] == 0
