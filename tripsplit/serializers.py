from decimal import Decimal

from tripsplit.models import Expense, ExpenseSplit
from tripsplit.schemas import ExpenseIn
from tripsplit.settlement import Settlement, round_amount


def money(value) -> float:
    """Cents-rounded JSON number (never -0.0)."""
    rounded = round_amount(value if isinstance(value, Decimal) else Decimal(str(value)))
    return float(rounded) if rounded else 0.0


def serialize_split(split: ExpenseSplit) -> dict:
    return {
        "participantId": split.participant_id,
        "amount": float(split.amount),
        "settled": bool(split.settled),
    }


def serialize_expense(expense: Expense) -> dict:
    return {
        "id": str(expense.id),
        "tripId": expense.trip_id,
        "title": expense.title,
        "amount": float(expense.amount),
        "currency": expense.currency,
        "category": expense.category,
        "date": expense.date.isoformat(),
        "paidBy": expense.paid_by,
        "splitBetween": [serialize_split(s) for s in expense.split_between],
        "notes": expense.notes,
        "receipt": expense.receipt,
        "createdAt": expense.created_at.isoformat(),
    }


def serialize_expense_in(expense_id: str, trip_id: str, data: ExpenseIn, created_at) -> dict:
    """Same shape as serialize_expense, built straight from validated input."""
    return {
        "id": expense_id,
        "tripId": trip_id,
        "title": data.title,
        "amount": float(data.amount),
        "currency": data.currency,
        "category": data.category.value,
        "date": data.date.isoformat(),
        "paidBy": data.paid_by,
        "splitBetween": [
            {"participantId": s.participant_id, "amount": float(s.amount), "settled": s.settled}
            for s in data.split_between
        ],
        "notes": data.notes,
        "receipt": data.receipt,
        "createdAt": created_at.isoformat(),
    }


def serialize_balances(balances: dict[str, Decimal]) -> dict[str, float]:
    # dicts keep insertion order, so keys come out in first-seen order
    return {participant_id: money(balance) for participant_id, balance in balances.items()}


def serialize_settlement(settlement: Settlement) -> dict:
    return {
        "from": settlement.from_participant,
        "to": settlement.to_participant,
        "amount": money(settlement.amount),
    }
