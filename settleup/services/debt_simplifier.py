"""
Debt simplification.

Greedy max-pair settlement: repeatedly match the largest creditor with the
largest debtor, pay the smaller of the two, drop whoever reaches zero.
Ties go to the lower user id so plans are reproducible.

The greedy runs per weakly connected component of the debt graph. Within a
component of c users there are at least c - 1 edges and the greedy emits at
most k - 1 payments for its k non-zero users, so a plan never has more
payments than the graph has edges.

Not globally minimal for more than three parties (the exact problem is
NP-hard); two-party components always come out optimal.
"""

import heapq
import logging
from typing import Dict, List, Mapping, Sequence

from settleup.models.debt import SimplificationResult, SimplifiedPayment
from settleup.models.money import Money
from settleup.services.debt_graph import DebtGraph, build_graph
from settleup.services.ledger_service import BalanceLedger

logger = logging.getLogger(__name__)


def settle_net_balances(net: Mapping[str, Money], currency: str) -> List[SimplifiedPayment]:
    """Greedy matching over one set of net balances (positive = is owed)."""
    # Heap entries: (-remaining minor units, user_id)
    creditors = [(-amount.minor, user) for user, amount in net.items() if amount.minor > 0]
    debtors = [(amount.minor, user) for user, amount in net.items() if amount.minor < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    payments = []
    while creditors and debtors:
        credit, creditor = heapq.heappop(creditors)
        debit, debtor = heapq.heappop(debtors)
        credit, debit = -credit, -debit

        paid = min(credit, debit)
        payments.append(SimplifiedPayment(
            from_user=debtor,
            to_user=creditor,
            amount=Money.of_minor(paid, currency)
        ))

        if credit > paid:
            heapq.heappush(creditors, (-(credit - paid), creditor))
        if debit > paid:
            heapq.heappush(debtors, (-(debit - paid), debtor))

    return payments


def simplify(graph: DebtGraph) -> SimplificationResult:
    currency = graph.currency
    net = graph.net_balances()

    payments: List[SimplifiedPayment] = []
    for component in graph.components():
        payments.extend(settle_net_balances({user: net[user] for user in component}, currency))

    return _result(graph, payments, net)


def validate_simplification(
    net_balances: Mapping[str, Money],
    payments: Sequence[SimplifiedPayment],
) -> bool:
    """True iff every user's received - paid equals their net balance."""
    flows: Dict[str, int] = {}
    for payment in payments:
        flows[payment.to_user] = flows.get(payment.to_user, 0) + payment.amount.minor
        flows[payment.from_user] = flows.get(payment.from_user, 0) - payment.amount.minor

    users = set(flows) | set(net_balances)
    return all(
        flows.get(user, 0) == (net_balances[user].minor if user in net_balances else 0)
        for user in users
    )


def _total(amounts, currency: str) -> Money:
    total = Money.zero(currency)
    for amount in amounts:
        total = total + amount
    return total


def _result(
    graph: DebtGraph,
    payments: List[SimplifiedPayment],
    net: Dict[str, Money],
) -> SimplificationResult:
    original = len(graph)
    simplified = len(payments)
    saved = original - simplified

    return SimplificationResult(
        payments=payments,
        original_transaction_count=original,
        simplified_transaction_count=simplified,
        transactions_saved=saved,
        savings_percentage=round(saved / original * 100, 2) if original else 0.0,
        original_total_amount=_total(graph.edges.values(), graph.currency),
        simplified_total_amount=_total((p.amount for p in payments), graph.currency),
        net_balances={user: amount for user, amount in sorted(net.items()) if not amount.is_zero()},
    )


class DebtPlanService:
    """Snapshot the ledger and run graph building plus simplification."""

    def __init__(self, ledger: BalanceLedger):
        self.ledger = ledger

    async def simplify_for_group(self, group_id: str) -> SimplificationResult:
        edges = await self.ledger.edges_for_group(group_id)
        result = simplify(build_graph(edges, self.ledger.currency))
        logger.info(
            "Group %s: %d debts -> %d payments",
            group_id, result.original_transaction_count, result.simplified_transaction_count
        )
        return result

    async def simplify_for_user(self, user_id: str) -> SimplificationResult:
        """
        Plan over the user's circle: the user plus every counterparty.

        All edges among circle members are included so debts can be routed
        through friends. The whole plan is returned, not just the user's own
        payments, so conservation and the edge-count bound still hold.
        """
        circle = {user_id}
        for edge in await self.ledger.edges_for_user(user_id):
            circle.add(edge.counterparty(user_id))

        edges = {}
        for member in sorted(circle):
            for edge in await self.ledger.edges_for_user(member):
                if edge.user_a in circle and edge.user_b in circle:
                    edges[edge.key] = edge

        result = simplify(build_graph(edges.values(), self.ledger.currency))
        logger.info(
            "User %s: %d debts -> %d payments",
            user_id, result.original_transaction_count, result.simplified_transaction_count
        )
        return result
