import logging
import os

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tripsplit.currency import EXCHANGE_RATES
from tripsplit.database import get_db
from tripsplit.repository import ExpenseRepository, InMemoryExpenseRepository, SqlExpenseRepository
from tripsplit.settlement import SettlementStrategy, get_settlement_strategy

logger = logging.getLogger("tripsplit")

# Shared store for EXPENSE_STORE=memory; lives as long as the process
memory_repository = InMemoryExpenseRepository()


def get_repository(db: Session = Depends(get_db)) -> ExpenseRepository:
    if os.getenv("EXPENSE_STORE", "sql") == "memory":
        return memory_repository
    return SqlExpenseRepository(db)


def get_trip_expense(repo: ExpenseRepository, trip_id: str, expense_id: str) -> dict:
    """Fetch an expense, 404 if it is missing or belongs to another trip."""
    expense = repo.get(expense_id)
    if not expense or expense["tripId"] != trip_id:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def get_target_currency(currency: str = Query("USD", min_length=3, max_length=3)) -> str:
    code = currency.upper()
    if code not in EXCHANGE_RATES:
        raise HTTPException(status_code=400, detail="Unsupported currency")
    return code


def get_strategy(strategy: str | None = Query(None)) -> SettlementStrategy:
    try:
        return get_settlement_strategy(strategy)
    except ValueError as e:
        logger.warning("Unknown settlement strategy", extra={"extra_data": {"strategy": strategy}})
        raise HTTPException(status_code=400, detail=str(e))
