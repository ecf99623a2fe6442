"""Balance computation and settlement of trip expenses.

Expenses come in the serialized shape produced by the repository
({"paidBy", "amount", "splitBetween": [{"participantId", "amount", "settled"}]}).
All amounts are assumed to be in one currency; see currency.normalize_expenses.
"""

import math
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Protocol

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Above this many non-zero participants the exact search gets too slow
MIN_TRANSACTION_EXACT_LIMIT = 16


class InvalidExpenseError(ValueError):
    """An expense carries an amount that cannot be settled."""


@dataclass(frozen=True)
class Settlement:
    from_participant: str
    to_participant: str
    amount: Decimal


def to_decimal(value, field: str = "amount") -> Decimal:
    """Convert a JSON number (or Decimal/str) to a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidExpenseError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidExpenseError(f"{field} must be a finite number")
        # repr() gives the shortest string that round-trips, so 0.1 -> Decimal("0.1")
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidExpenseError(f"{field} must be a number") from None
    else:
        raise InvalidExpenseError(f"{field} must be a number")

    if not result.is_finite():
        raise InvalidExpenseError(f"{field} must be a finite number")
    return result


def round_amount(amount: Decimal) -> Decimal:
    """Round to cents, half up (matches Math.round(x * 100) / 100 for positives)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_balances(expenses: list[dict]) -> dict[str, Decimal]:
    """Compute each participant's signed net balance.

    The payer is credited the full amount and every split participant is
    debited their share. Participants keep the order in which they were first
    seen (payer before split targets), and anyone seen is included even when
    their net balance is zero. ``settled`` flags are not taken into account.

    Raises InvalidExpenseError for non-positive amounts, negative shares or
    non-finite values. Shares that do not add up to the amount are accepted
    and leave the books unbalanced.
    """
    balances: dict[str, Decimal] = {}

    for expense in expenses:
        amount = to_decimal(expense["amount"], "amount")
        if amount <= 0:
            raise InvalidExpenseError(
                f"Expense {expense.get('id', '?')} amount must be positive"
            )

        payer = expense["paidBy"]
        balances[payer] = balances.get(payer, ZERO) + amount

        for split in expense.get("splitBetween") or []:
            share = to_decimal(split["amount"], "split amount")
            if share < 0:
                raise InvalidExpenseError(
                    f"Expense {expense.get('id', '?')} has a negative share "
                    f"for {split['participantId']}"
                )
            participant_id = split["participantId"]
            balances[participant_id] = balances.get(participant_id, ZERO) - share

    return balances


def _split_sides(balances) -> tuple[list[list], list[list]]:
    """Partition into [id, remaining] debtors and creditors, keeping order."""
    debtors = []
    creditors = []
    for participant_id, balance in balances:
        if balance < 0:
            debtors.append([participant_id, -balance])
        elif balance > 0:
            creditors.append([participant_id, balance])
    return debtors, creditors


def _greedy_match(debtors: list[list], creditors: list[list]) -> list[tuple[str, str, Decimal]]:
    """Match debtors to creditors left to right.

    Mutates the remaining amounts in place; whatever is left over afterwards
    is unmatched balance.
    """
    transfers = []
    for debtor in debtors:
        for creditor in creditors:
            if debtor[1] == 0:
                break
            if creditor[1] == 0:
                continue
            transfer = min(debtor[1], creditor[1])
            if transfer > 0:
                transfers.append((debtor[0], creditor[0], transfer))
            debtor[1] -= transfer
            creditor[1] -= transfer
    return transfers


def _round_transfers(transfers: list[tuple[str, str, Decimal]]) -> list[Settlement]:
    """Round transfers to cents so they add up to the rounded matched total.

    Largest remainder: every transfer is rounded down, then the missing cents
    go one each to the transfers that lost the most, earliest first on ties.
    No transfer moves more than a cent from its exact amount. Transfers that
    round to nothing are dropped.
    """
    if not transfers:
        return []

    target = round_amount(sum((amount for _, _, amount in transfers), ZERO))
    floored = [amount.quantize(CENT, rounding=ROUND_DOWN) for _, _, amount in transfers]
    missing = int((target - sum(floored, ZERO)) / CENT)

    by_loss = sorted(
        range(len(transfers)),
        key=lambda i: transfers[i][2] - floored[i],
        reverse=True,
    )
    for i in by_loss[:missing]:
        floored[i] += CENT

    return [
        Settlement(from_participant=debtor, to_participant=creditor, amount=amount)
        for (debtor, creditor, _), amount in zip(transfers, floored)
        if amount > 0
    ]


class SettlementStrategy(Protocol):
    name: str

    def settle(self, balances: dict[str, Decimal]) -> list[Settlement]: ...


class GreedySettlementStrategy:
    """Left-to-right greedy matching of debtors against creditors.

    Not transaction-count optimal, but the output order is fully determined by
    the iteration order of the balances.
    """

    name = "greedy"

    def settle(self, balances: dict[str, Decimal]) -> list[Settlement]:
        debtors, creditors = _split_sides(balances.items())
        return _round_transfers(_greedy_match(debtors, creditors))


def _zero_sum_groups(entries: list[tuple[str, Decimal]]) -> list[list[int]]:
    """Partition entry indexes into the largest number of zero-sum groups.

    Each group of k participants can be settled with k - 1 transfers, so
    maximising the number of groups minimises the number of transfers.
    If the total is not zero the leftover participants form a final group.
    """
    n = len(entries)
    full = (1 << n) - 1
    sums = [ZERO] * (full + 1)
    best = [0] * (full + 1)

    for mask in range(1, full + 1):
        low = (mask & -mask).bit_length() - 1
        sums[mask] = sums[mask & (mask - 1)] + entries[low][1]
        closes = 1 if sums[mask] == 0 else 0
        best[mask] = max(best[mask ^ (1 << i)] for i in range(n) if mask >> i & 1) + closes

    # Walk back from the full set to recover an ordering whose prefix sums
    # hit zero exactly at the group boundaries.
    order = []
    mask = full
    while mask:
        closes = 1 if sums[mask] == 0 else 0
        for i in range(n):
            if mask >> i & 1 and best[mask ^ (1 << i)] + closes == best[mask]:
                order.append(i)
                mask ^= 1 << i
                break
    order.reverse()

    groups = []
    current: list[int] = []
    running = ZERO
    for i in order:
        current.append(i)
        running += entries[i][1]
        if running == 0:
            groups.append(sorted(current))
            current = []
    if current:
        groups.append(sorted(current))
    return groups


class MinTransactionSettlementStrategy:
    """Settle with the fewest transfers.

    Exact for up to ``exact_limit`` non-zero participants; larger groups fall
    back to matching the largest debts against the largest credits first.
    """

    name = "min_transactions"

    def __init__(self, exact_limit: int = MIN_TRANSACTION_EXACT_LIMIT):
        self.exact_limit = exact_limit

    def settle(self, balances: dict[str, Decimal]) -> list[Settlement]:
        entries = [(pid, balance) for pid, balance in balances.items() if balance != 0]

        if len(entries) > self.exact_limit:
            debtors, creditors = _split_sides(entries)
            debtors.sort(key=lambda x: x[1], reverse=True)
            creditors.sort(key=lambda x: x[1], reverse=True)
            return _round_transfers(_greedy_match(debtors, creditors))

        transfers = []
        for group in _zero_sum_groups(entries):
            debtors, creditors = _split_sides(entries[i] for i in group)
            transfers.extend(_greedy_match(debtors, creditors))
        return _round_transfers(transfers)


SETTLEMENT_STRATEGIES = {
    GreedySettlementStrategy.name: GreedySettlementStrategy,
    MinTransactionSettlementStrategy.name: MinTransactionSettlementStrategy,
}


def get_settlement_strategy(name: str | None = None) -> SettlementStrategy:
    """Return the named settlement strategy, or the configured default."""
    name = name or os.getenv("SETTLEMENT_STRATEGY", GreedySettlementStrategy.name)
    strategy_cls = SETTLEMENT_STRATEGIES.get(name)
    if strategy_cls is None:
        raise ValueError(f"Unknown settlement strategy: {name}")
    return strategy_cls()


def compute_settlements(
    balances: dict[str, Decimal],
    strategy: SettlementStrategy | None = None,
) -> list[Settlement]:
    """Turn net balances into payment instructions (greedy by default)."""
    if strategy is None:
        strategy = GreedySettlementStrategy()
    return strategy.settle(balances)


def apply_settlements(
    balances: dict[str, Decimal],
    settlements: list[Settlement],
) -> dict[str, Decimal]:
    """Simulate the payments and return what is left of each balance."""
    remaining = dict(balances)
    for s in settlements:
        remaining[s.from_participant] = remaining.get(s.from_participant, ZERO) + s.amount
        remaining[s.to_participant] = remaining.get(s.to_participant, ZERO) - s.amount
    return remaining
