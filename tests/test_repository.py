import pytest

from conftest import expense_payload
from tripsplit.repository import (
    InMemoryExpenseRepository,
    ParticipantNotInSplitError,
    SqlExpenseRepository,
)
from tripsplit.schemas import ExpenseIn
from tripsplit.settlement import compute_balances


@pytest.fixture(params=["memory", "sql"])
def repo(request, db_session):
    if request.param == "memory":
        return InMemoryExpenseRepository()
    return SqlExpenseRepository(db_session)


def _expense_in(**kwargs) -> ExpenseIn:
    return ExpenseIn.model_validate(expense_payload(**kwargs))


def test_create_returns_serialized_expense(repo):
    expense = repo.create("trip-1", _expense_in(notes="tip included"))

    assert expense["id"]
    assert expense["tripId"] == "trip-1"
    assert expense["title"] == "Dinner"
    assert expense["amount"] == 90.0
    assert expense["category"] == "food"
    assert expense["date"] == "2026-03-14"
    assert expense["paidBy"] == "alice"
    assert expense["notes"] == "tip included"
    assert expense["splitBetween"] == [
        {"participantId": "alice", "amount": 30.0, "settled": False},
        {"participantId": "bob", "amount": 30.0, "settled": False},
        {"participantId": "carol", "amount": 30.0, "settled": False},
    ]
    assert repo.get(expense["id"]) == expense


def test_list_by_trip_filters_trip(repo):
    first = repo.create("trip-1", _expense_in())
    repo.create("trip-2", _expense_in())

    assert [e["id"] for e in repo.list_by_trip("trip-1")] == [first["id"]]
    assert repo.list_by_trip("trip-3") == []


def test_update_replaces_fields_and_splits(repo):
    expense = repo.create("trip-1", _expense_in())

    updated = repo.update(
        expense["id"],
        _expense_in(amount=40, shares={"bob": 25, "alice": 15}, title="Taxi", category="transport"),
    )

    assert updated["id"] == expense["id"]
    assert updated["createdAt"] == expense["createdAt"]
    assert updated["title"] == "Taxi"
    assert updated["category"] == "transport"
    assert [(s["participantId"], s["amount"]) for s in updated["splitBetween"]] == [
        ("bob", 25.0),
        ("alice", 15.0),
    ]


def test_update_missing_expense(repo):
    assert repo.update("nope", _expense_in()) is None


def test_delete(repo):
    expense = repo.create("trip-1", _expense_in())

    assert repo.delete(expense["id"]) is True
    assert repo.get(expense["id"]) is None
    assert repo.delete(expense["id"]) is False


def test_settle_marks_only_that_share(repo):
    expense = repo.create("trip-1", _expense_in())

    settled = repo.settle(expense["id"], "bob")

    assert {s["participantId"]: s["settled"] for s in settled["splitBetween"]} == {
        "alice": False,
        "bob": True,
        "carol": False,
    }


def test_settle_does_not_change_balances(repo):
    expense = repo.create("trip-1", _expense_in())
    before = compute_balances(repo.list_by_trip("trip-1"))

    repo.settle(expense["id"], "bob")
    repo.settle(expense["id"], "carol")

    assert compute_balances(repo.list_by_trip("trip-1")) == before
    assert before == {"alice": 60, "bob": -30, "carol": -30}


def test_settle_unknown_participant(repo):
    expense = repo.create("trip-1", _expense_in())

    with pytest.raises(ParticipantNotInSplitError):
        repo.settle(expense["id"], "dave")


def test_settle_missing_expense(repo):
    assert repo.settle("nope", "bob") is None


def test_memory_repository_hands_out_copies():
    repo = InMemoryExpenseRepository()
    expense = repo.create("trip-1", _expense_in())

    expense["splitBetween"][0]["amount"] = 1000
    repo.list_by_trip("trip-1")[0]["paidBy"] = "mallory"

    stored = repo.get(expense["id"])
    assert stored["splitBetween"][0]["amount"] == 30.0
    assert stored["paidBy"] == "alice"
