import random

import pytest

from settleup.models.money import Money
from settleup.services.debt_graph import graph_from_debts
from settleup.services.debt_simplifier import (
    settle_net_balances,
    simplify,
    validate_simplification,
)


def inr(value: str) -> Money:
    return Money.from_decimal_string(value, "INR")


def test_triangle_collapses_to_one_payment(triangle_graph):
    result = simplify(triangle_graph)

    assert len(result.payments) == 1
    payment = result.payments[0]
    assert (payment.from_user, payment.to_user, payment.amount) == ("A", "C", inr("150"))
    assert result.original_transaction_count == 3
    assert result.simplified_transaction_count == 1
    assert result.transactions_saved == 2
    assert result.savings_percentage == 66.67
    assert result.original_total_amount == inr("250")
    assert result.simplified_total_amount == inr("150")
    assert result.net_balances == {"A": inr("-150"), "C": inr("150")}


def test_empty_graph():
    result = simplify(graph_from_debts([], "INR"))

    assert result.payments == []
    assert result.savings_percentage == 0.0
    assert result.original_total_amount.is_zero()


def test_two_party_debt_is_unchanged():
    result = simplify(graph_from_debts([("A", "B", inr("42.42"))], "INR"))

    assert [(p.from_user, p.to_user, p.amount) for p in result.payments] == [
        ("A", "B", inr("42.42"))
    ]
    assert result.transactions_saved == 0


def test_ties_go_to_lower_user_id():
    net = {"C": inr("-20"), "B": inr("10"), "A": inr("10")}

    payments = settle_net_balances(net, "INR")

    assert [(p.from_user, p.to_user) for p in payments] == [("C", "A"), ("C", "B")]


def test_largest_creditor_matched_with_largest_debtor():
    net = {"A": inr("-70"), "B": inr("-30"), "C": inr("60"), "D": inr("40")}

    payments = settle_net_balances(net, "INR")

    assert [(p.from_user, p.to_user, p.amount) for p in payments] == [
        ("A", "C", inr("60")),
        ("B", "D", inr("30")),
        ("A", "D", inr("10")),
    ]


def test_disconnected_groups_never_add_payments():
    graph = graph_from_debts([
        ("B", "A", inr("10")),
        ("C", "A", inr("5")),
        ("D", "E", inr("7")),
    ], "INR")

    result = simplify(graph)

    assert len(result.payments) <= len(graph)
    assert validate_simplification(graph.net_balances(), result.payments)


def test_validate_simplification_detects_wrong_plan(triangle_graph):
    result = simplify(triangle_graph)
    wrong = [p.model_copy(update={"amount": inr("149.99")}) for p in result.payments]

    assert validate_simplification(triangle_graph.net_balances(), result.payments)
    assert not validate_simplification(triangle_graph.net_balances(), wrong)


def test_payment_serializes_with_from_and_to(triangle_graph):
    payment = simplify(triangle_graph).payments[0]

    dumped = payment.model_dump(by_alias=True)
    assert dumped["from"] == "A"
    assert dumped["to"] == "C"


@pytest.mark.parametrize("seed", range(25))
def test_random_graphs_conserve_and_never_grow(seed):
    rng = random.Random(seed)
    users = [f"u{i}" for i in range(rng.randint(2, 9))]
    debts = []
    for _ in range(rng.randint(1, 20)):
        debtor, creditor = rng.sample(users, 2)
        debts.append((debtor, creditor, Money.of_minor(rng.randint(1, 50000), "INR")))
    graph = graph_from_debts(debts, "INR")

    result = simplify(graph)

    assert len(result.payments) <= len(graph)
    assert validate_simplification(graph.net_balances(), result.payments)
    assert all(p.amount.is_positive() for p in result.payments)
    assert all(p.from_user != p.to_user for p in result.payments)
    assert simplify(graph) == result


@pytest.mark.asyncio
async def test_group_plan_from_ledger(ledger, debt_plans):
    await ledger.apply_share("A", "B", inr("100"), group_id="trip")
    await ledger.apply_share("B", "C", inr("100"), group_id="trip")
    await ledger.apply_share("A", "C", inr("50"), group_id="trip")
    await ledger.apply_share("A", "D", inr("999"))

    result = await debt_plans.simplify_for_group("trip")

    assert [(p.from_user, p.to_user, p.amount) for p in result.payments] == [
        ("A", "C", inr("150"))
    ]


@pytest.mark.asyncio
async def test_user_plan_covers_the_circle(triangle_ledger, debt_plans):
    await triangle_ledger.apply_share("X", "Y", inr("5"))

    result = await debt_plans.simplify_for_user("B")

    assert result.original_transaction_count == 3
    assert [(p.from_user, p.to_user) for p in result.payments] == [("A", "C")]
