import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tripsplit.currency import (
    calculate_budget_breakdown,
    calculate_daily_budget,
    get_budget_status,
    get_supported_currencies,
)
from tripsplit.database import get_db
from tripsplit.exchange import POPULAR_CURRENCIES, get_latest_rates
from tripsplit.serializers import money

logger = logging.getLogger("tripsplit")

router = APIRouter()


@router.get("/currency")
def get_currency_rates(
    from_currency: str = Query("USD", alias="from", min_length=3, max_length=3),
    to: str | None = Query(None, min_length=3, max_length=3),
    amount: float = Query(1.0, gt=0),
    db: Session = Depends(get_db),
):
    base = from_currency.upper()
    targets = [to.upper()] if to else [c for c in POPULAR_CURRENCIES if c != base]

    try:
        rates, rate_date = get_latest_rates(db, base, targets)
    except httpx.HTTPError as e:
        logger.error(f"Exchange rate fetch failed: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to fetch exchange rates")

    return {
        "base": base,
        "date": rate_date.isoformat(),
        "amount": amount,
        "rates": {
            currency: {"rate": rate, "amount": money(amount * rate)}
            for currency, rate in rates.items()
        },
    }


@router.get("/currency/supported")
def supported_currencies():
    return get_supported_currencies()


@router.get("/budget")
def budget_plan(
    total: float = Query(..., gt=0),
    days: int = Query(..., ge=1),
    style: str = Query("mid-range"),
    reserved: float = Query(0, ge=0),
    spent: float = Query(0, ge=0),
):
    """Category breakdown, daily allowance and status for a trip budget."""
    try:
        breakdown = calculate_budget_breakdown(total, style)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "style": style,
        "breakdown": {category: money(value) for category, value in breakdown.items()},
        "dailyBudget": money(calculate_daily_budget(total, days, reserved)),
        "status": get_budget_status(spent, total),
    }
