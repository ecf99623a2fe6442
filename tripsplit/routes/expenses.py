import logging
import math
from datetime import date as date_type
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from tripsplit.currency import normalize_expenses
from tripsplit.deps import get_repository, get_strategy, get_target_currency, get_trip_expense
from tripsplit.ratelimit import EXPENSE_WRITE_LIMIT, limiter
from tripsplit.repository import ExpenseRepository, ParticipantNotInSplitError
from tripsplit.schemas import Category, ExpenseIn, ExpenseUpdateIn, SettleIn
from tripsplit.serializers import money, serialize_balances, serialize_settlement
from tripsplit.settlement import (
    SettlementStrategy,
    apply_settlements,
    compute_balances,
    compute_settlements,
    round_amount,
    to_decimal,
)

logger = logging.getLogger("tripsplit")

router = APIRouter()


@router.get("/trips/{trip_id}/expenses")
def list_expenses(
    trip_id: str,
    category: Category | None = Query(None),
    start: date_type | None = Query(None),
    end: date_type | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    repo: ExpenseRepository = Depends(get_repository),
):
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")

    expenses = repo.list_by_trip(trip_id)
    if category is not None:
        expenses = [e for e in expenses if e["category"] == category.value]
    # Date range is inclusive on both ends; ISO dates compare lexically
    if start is not None:
        expenses = [e for e in expenses if e["date"] >= start.isoformat()]
    if end is not None:
        expenses = [e for e in expenses if e["date"] <= end.isoformat()]

    # Newest first
    expenses.sort(key=lambda e: e["date"], reverse=True)

    total = Decimal(0)
    by_category: dict[str, Decimal] = {}
    for e in expenses:
        amount = to_decimal(e["amount"])
        total += amount
        by_category[e["category"]] = by_category.get(e["category"], Decimal(0)) + amount

    offset = (page - 1) * limit
    return {
        "expenses": expenses[offset:offset + limit],
        "totals": {
            "total": money(total),
            "byCategory": {c: money(a) for c, a in by_category.items()},
        },
        "pagination": {
            "page": page,
            "limit": limit,
            "total": len(expenses),
            "totalPages": math.ceil(len(expenses) / limit),
        },
    }


@router.post("/trips/{trip_id}/expenses", status_code=201)
@limiter.limit(EXPENSE_WRITE_LIMIT)
def add_expense(
    request: Request,
    trip_id: str,
    data: ExpenseIn,
    repo: ExpenseRepository = Depends(get_repository),
):
    expense = repo.create(trip_id, data)
    logger.info(
        "Expense created",
        extra={"extra_data": {"trip_id": trip_id, "expense_id": expense["id"], "amount": expense["amount"]}},
    )
    return expense


@router.get("/trips/{trip_id}/expenses/summary")
def expense_summary(
    trip_id: str,
    currency: str = Depends(get_target_currency),
    repo: ExpenseRepository = Depends(get_repository),
):
    """Totals by category and payer; plain sums, no settlement."""
    expenses = normalize_expenses(repo.list_by_trip(trip_id), currency)

    total = Decimal(0)
    by_category: dict[str, dict] = {}
    by_payer: dict[str, dict] = {}
    for e in expenses:
        amount = to_decimal(e["amount"])
        total += amount
        for bucket, key in ((by_category, e["category"]), (by_payer, e["paidBy"])):
            entry = bucket.setdefault(key, {"count": 0, "amount": Decimal(0)})
            entry["count"] += 1
            entry["amount"] += amount

    days = {e["date"] for e in expenses}
    daily_average = total / len(days) if days else Decimal(0)

    return {
        "currency": currency,
        "totalExpenses": len(expenses),
        "totalAmount": money(total),
        "byCategory": {k: {"count": v["count"], "amount": money(v["amount"])} for k, v in by_category.items()},
        "byPayer": {k: {"count": v["count"], "amount": money(v["amount"])} for k, v in by_payer.items()},
        "dailyAverage": money(daily_average),
    }


@router.get("/trips/{trip_id}/expenses/settlements")
def expense_settlements(
    trip_id: str,
    currency: str = Depends(get_target_currency),
    strategy: SettlementStrategy = Depends(get_strategy),
    repo: ExpenseRepository = Depends(get_repository),
):
    expenses = normalize_expenses(repo.list_by_trip(trip_id), currency)
    balances = compute_balances(expenses)
    settlements = compute_settlements(balances, strategy)

    remaining = apply_settlements(balances, settlements)
    unsettled = {pid: money(v) for pid, v in remaining.items() if round_amount(v) != 0}
    if unsettled:
        logger.warning(
            "Balances left unsettled",
            extra={"extra_data": {"trip_id": trip_id, "unsettled": unsettled}},
        )

    logger.info(
        "Settlements computed",
        extra={"extra_data": {
            "trip_id": trip_id,
            "strategy": strategy.name,
            "expenses": len(expenses),
            "settlements": len(settlements),
        }},
    )
    return {
        "currency": currency,
        "strategy": strategy.name,
        "balances": serialize_balances(balances),
        "settlements": [serialize_settlement(s) for s in settlements],
        "unsettled": unsettled,
    }


@router.get("/trips/{trip_id}/expenses/{expense_id}")
def get_expense(
    trip_id: str,
    expense_id: str,
    repo: ExpenseRepository = Depends(get_repository),
):
    return get_trip_expense(repo, trip_id, expense_id)


@router.put("/trips/{trip_id}/expenses/{expense_id}")
@limiter.limit(EXPENSE_WRITE_LIMIT)
def update_expense(
    request: Request,
    trip_id: str,
    expense_id: str,
    data: ExpenseUpdateIn,
    repo: ExpenseRepository = Depends(get_repository),
):
    existing = get_trip_expense(repo, trip_id, expense_id)

    # Revalidate the merged record so partial updates cannot unbalance it
    merged = {**existing, **data.model_dump(exclude_unset=True, by_alias=True)}
    try:
        validated = ExpenseIn.model_validate(merged)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    expense = repo.update(expense_id, validated)
    logger.info("Expense updated", extra={"extra_data": {"trip_id": trip_id, "expense_id": expense_id}})
    return expense


@router.delete("/trips/{trip_id}/expenses/{expense_id}", status_code=204)
def delete_expense(
    trip_id: str,
    expense_id: str,
    repo: ExpenseRepository = Depends(get_repository),
):
    get_trip_expense(repo, trip_id, expense_id)
    repo.delete(expense_id)
    logger.info("Expense deleted", extra={"extra_data": {"trip_id": trip_id, "expense_id": expense_id}})
    return None


@router.post("/trips/{trip_id}/expenses/{expense_id}/settle")
def settle_expense(
    trip_id: str,
    expense_id: str,
    data: SettleIn,
    repo: ExpenseRepository = Depends(get_repository),
):
    """Mark one participant's share as settled.

    The flag is informational: balances are always computed from the full
    shares.
    """
    get_trip_expense(repo, trip_id, expense_id)
    try:
        expense = repo.settle(expense_id, data.participant_id)
    except ParticipantNotInSplitError:
        raise HTTPException(status_code=400, detail="Participant is not part of this expense")

    logger.info(
        "Expense share settled",
        extra={"extra_data": {"trip_id": trip_id, "expense_id": expense_id, "participant_id": data.participant_id}},
    )
    return expense
