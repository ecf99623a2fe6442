import os

# Keep the app's startup create_all away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tripsplit.database import get_db, init_db
from tripsplit.deps import get_repository
from tripsplit.main import app
from tripsplit.ratelimit import limiter
from tripsplit.repository import InMemoryExpenseRepository


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def memory_repo():
    return InMemoryExpenseRepository()


@pytest.fixture
def client(memory_repo, db_session):
    app.dependency_overrides[get_repository] = lambda: memory_repo
    app.dependency_overrides[get_db] = lambda: db_session
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_expense(paid_by, amount, shares, **fields):
    """Expense dict in the serialized shape the engine consumes."""
    expense = {
        "id": fields.pop("id", f"exp-{paid_by}-{amount}"),
        "tripId": fields.pop("trip_id", "trip-1"),
        "amount": amount,
        "paidBy": paid_by,
        "splitBetween": [
            {"participantId": pid, "amount": share, "settled": False}
            for pid, share in shares.items()
        ],
    }
    expense.update(fields)
    return expense


def expense_payload(paid_by="alice", amount=90, shares=None, **fields):
    """JSON body for POST /expenses."""
    if shares is None:
        shares = {"alice": 30, "bob": 30, "carol": 30}
    payload = {
        "title": "Dinner",
        "amount": amount,
        "currency": "USD",
        "category": "food",
        "date": "2026-03-14",
        "paidBy": paid_by,
        "splitBetween": [{"participantId": pid, "amount": share} for pid, share in shares.items()],
    }
    payload.update(fields)
    return payload
