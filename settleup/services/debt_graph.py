"""
Debt graph construction.

Turns a snapshot of balance edges into a directed graph where
(debtor, creditor) -> amount means "debtor owes creditor amount", amount > 0.
Pure: no ledger access, no mutation of the input.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from settleup.core.config import settings
from settleup.models.ledger import BalanceEdge, canonical_pair
from settleup.models.money import Money

Pair = Tuple[str, str]


@dataclass(frozen=True)
class DebtGraph:
    edges: Dict[Pair, Money] = field(default_factory=dict)
    currency: str = settings.DEFAULT_CURRENCY

    @property
    def nodes(self) -> Set[str]:
        return {user for pair in self.edges for user in pair}

    def __len__(self) -> int:
        return len(self.edges)

    def net_balances(self) -> Dict[str, Money]:
        """Owed to the user minus owed by the user, for every node."""
        net: Dict[str, Money] = {user: Money.zero(self.currency) for user in self.nodes}
        for (debtor, creditor), amount in self.edges.items():
            net[debtor] = net[debtor] - amount
            net[creditor] = net[creditor] + amount
        return net

    def components(self) -> List[List[str]]:
        """Weakly connected components, each sorted, ordered by first member."""
        neighbours: Dict[str, Set[str]] = {user: set() for user in self.nodes}
        for debtor, creditor in self.edges:
            neighbours[debtor].add(creditor)
            neighbours[creditor].add(debtor)

        seen: Set[str] = set()
        components = []
        for start in sorted(neighbours):
            if start in seen:
                continue
            stack, members = [start], []
            seen.add(start)
            while stack:
                user = stack.pop()
                members.append(user)
                for other in neighbours[user]:
                    if other not in seen:
                        seen.add(other)
                        stack.append(other)
            components.append(sorted(members))
        return components


def build_graph(edges: Iterable[BalanceEdge], currency: str = None) -> DebtGraph:
    """
    Merge edges into one direction per pair.

    Rows for the same pair (different groups, or A->B and B->A written as
    separate rows) are netted first; zero results are dropped.
    """
    return graph_from_debts(
        ((edge.user_a, edge.user_b, edge.amount) for edge in edges), currency
    )


def graph_from_debts(debts: Iterable[Tuple[str, str, Money]], currency: str = None) -> DebtGraph:
    """Build a graph straight from (debtor, creditor, amount) triples."""
    currency = currency or settings.DEFAULT_CURRENCY
    merged: Dict[Pair, int] = {}
    for debtor, creditor, amount in debts:
        if debtor == creditor:
            continue
        user_a, user_b, flipped = canonical_pair(debtor, creditor)
        signed = -amount.minor if flipped else amount.minor
        merged[(user_a, user_b)] = merged.get((user_a, user_b), 0) + signed

    directed: Dict[Pair, Money] = {}
    for (user_a, user_b), minor in sorted(merged.items()):
        if minor > 0:
            directed[(user_a, user_b)] = Money.of_minor(minor, currency)
        elif minor < 0:
            directed[(user_b, user_a)] = Money.of_minor(-minor, currency)
    return DebtGraph(edges=directed, currency=currency)
