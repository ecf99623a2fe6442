"""Expense storage behind a small repository interface.

Both implementations hand out expenses as plain dicts in the serialized JSON
shape, which is also what the settlement engine consumes.
"""

import copy
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from tripsplit.models import Expense, ExpenseSplit, new_uuid
from tripsplit.schemas import ExpenseIn
from tripsplit.serializers import serialize_expense, serialize_expense_in


class ParticipantNotInSplitError(LookupError):
    """The participant has no share in the expense being settled."""


class ExpenseRepository(Protocol):
    def list_by_trip(self, trip_id: str) -> list[dict]: ...

    def get(self, expense_id: str) -> dict | None: ...

    def create(self, trip_id: str, data: ExpenseIn) -> dict: ...

    def update(self, expense_id: str, data: ExpenseIn) -> dict | None: ...

    def delete(self, expense_id: str) -> bool: ...

    def settle(self, expense_id: str, participant_id: str) -> dict | None: ...


class InMemoryExpenseRepository:
    """Keeps expenses in creation order in a dict; for tests and local runs."""

    def __init__(self):
        self._expenses: dict[str, dict] = {}

    def list_by_trip(self, trip_id: str) -> list[dict]:
        return [copy.deepcopy(e) for e in self._expenses.values() if e["tripId"] == trip_id]

    def get(self, expense_id: str) -> dict | None:
        expense = self._expenses.get(expense_id)
        return copy.deepcopy(expense) if expense else None

    def create(self, trip_id: str, data: ExpenseIn) -> dict:
        expense = serialize_expense_in(new_uuid(), trip_id, data, datetime.utcnow())
        self._expenses[expense["id"]] = expense
        return copy.deepcopy(expense)

    def update(self, expense_id: str, data: ExpenseIn) -> dict | None:
        existing = self._expenses.get(expense_id)
        if existing is None:
            return None
        expense = serialize_expense_in(
            expense_id,
            existing["tripId"],
            data,
            datetime.fromisoformat(existing["createdAt"]),
        )
        self._expenses[expense_id] = expense
        return copy.deepcopy(expense)

    def delete(self, expense_id: str) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    def settle(self, expense_id: str, participant_id: str) -> dict | None:
        expense = self._expenses.get(expense_id)
        if expense is None:
            return None
        for split in expense["splitBetween"]:
            if split["participantId"] == participant_id:
                split["settled"] = True
                return copy.deepcopy(expense)
        raise ParticipantNotInSplitError(participant_id)


class SqlExpenseRepository:
    """SQLAlchemy-backed repository; one instance per request session."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, expense_id: str) -> Expense | None:
        return self.db.query(Expense).filter(Expense.id == expense_id).first()

    @staticmethod
    def _sync_splits(expense: Expense, data: ExpenseIn) -> None:
        """Replace the expense's split rows, keeping the submitted order."""
        expense.split_between = [
            ExpenseSplit(
                participant_id=split.participant_id,
                amount=split.amount,
                settled=split.settled,
                position=position,
            )
            for position, split in enumerate(data.split_between)
        ]

    def list_by_trip(self, trip_id: str) -> list[dict]:
        expenses = (
            self.db.query(Expense)
            .filter(Expense.trip_id == trip_id)
            .order_by(Expense.created_at, Expense.id)
            .all()
        )
        return [serialize_expense(e) for e in expenses]

    def get(self, expense_id: str) -> dict | None:
        expense = self._query(expense_id)
        return serialize_expense(expense) if expense else None

    def create(self, trip_id: str, data: ExpenseIn) -> dict:
        expense = Expense(
            trip_id=trip_id,
            title=data.title,
            amount=data.amount,
            currency=data.currency,
            category=data.category.value,
            date=data.date,
            paid_by=data.paid_by,
            notes=data.notes,
            receipt=data.receipt,
        )
        self._sync_splits(expense, data)
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        return serialize_expense(expense)

    def update(self, expense_id: str, data: ExpenseIn) -> dict | None:
        expense = self._query(expense_id)
        if not expense:
            return None

        expense.title = data.title
        expense.amount = data.amount
        expense.currency = data.currency
        expense.category = data.category.value
        expense.date = data.date
        expense.paid_by = data.paid_by
        expense.notes = data.notes
        expense.receipt = data.receipt
        # Flush the orphaned rows first so the (expense, participant) unique
        # constraint does not trip over re-added participants
        expense.split_between = []
        self.db.flush()
        self._sync_splits(expense, data)

        self.db.commit()
        self.db.refresh(expense)
        return serialize_expense(expense)

    def delete(self, expense_id: str) -> bool:
        expense = self._query(expense_id)
        if not expense:
            return False
        self.db.delete(expense)
        self.db.commit()
        return True

    def settle(self, expense_id: str, participant_id: str) -> dict | None:
        expense = self._query(expense_id)
        if not expense:
            return None

        split = (
            self.db.query(ExpenseSplit)
            .filter(
                ExpenseSplit.expense_id == expense.id,
                ExpenseSplit.participant_id == participant_id,
            )
            .first()
        )
        if not split:
            raise ParticipantNotInSplitError(participant_id)

        split.settled = True
        self.db.commit()
        self.db.refresh(expense)
        return serialize_expense(expense)
