"""Live exchange rates from frankfurter, cached in the database."""

import logging
from datetime import datetime, date as date_type, timedelta

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripsplit.models import ExchangeRate

logger = logging.getLogger("tripsplit")

# Popular currencies for travellers, returned when no target is requested
POPULAR_CURRENCIES = (
    "USD", "EUR", "GBP", "JPY", "AUD", "CAD", "CHF", "CNY",
    "HKD", "SGD", "THB", "INR", "MXN", "BRL", "KRW", "NZD",
)
FRANKFURTER_BASE = "https://api.frankfurter.dev/v1"
CACHE_TTL = timedelta(hours=24)


def _cached_rates(db: Session, base: str, targets: list[str], cutoff: datetime) -> dict[str, ExchangeRate]:
    rows = (
        db.query(ExchangeRate)
        .filter(
            ExchangeRate.base_currency == base,
            ExchangeRate.target_currency.in_(targets),
            ExchangeRate.fetched_at >= cutoff,
        )
        .order_by(ExchangeRate.fetched_at.desc())
        .all()
    )
    latest: dict[str, ExchangeRate] = {}
    for row in rows:
        latest.setdefault(row.target_currency, row)
    return latest


def _store_rates(db: Session, base: str, rates: dict[str, float], rate_date: date_type, now: datetime) -> None:
    for target, value in rates.items():
        existing = (
            db.query(ExchangeRate)
            .filter(
                ExchangeRate.date == rate_date,
                ExchangeRate.base_currency == base,
                ExchangeRate.target_currency == target,
            )
            .first()
        )
        if existing:
            existing.rate = value
            existing.fetched_at = now
        else:
            db.add(
                ExchangeRate(
                    date=rate_date,
                    base_currency=base,
                    target_currency=target,
                    rate=value,
                    fetched_at=now,
                )
            )
    try:
        db.commit()
    except IntegrityError:
        # Another request already inserted these rates
        db.rollback()


def get_latest_rates(db: Session, base: str, targets: list[str]) -> tuple[dict[str, float], date_type]:
    """Get rates from base to each target, from cache or frankfurter.

    Returns ({currency: rate}, date). Cached rates older than 24h are
    refetched. Raises httpx.HTTPError when the upstream call fails.
    """
    targets = [t for t in targets if t != base]
    if not targets:
        return {}, date_type.today()

    now = datetime.utcnow()
    cached = _cached_rates(db, base, targets, now - CACHE_TTL)
    if len(cached) == len(targets):
        rate_date = max(row.date for row in cached.values())
        return {t: float(cached[t].rate) for t in targets}, rate_date

    resp = httpx.get(
        f"{FRANKFURTER_BASE}/latest",
        params={"from": base, "to": ",".join(targets)},
        timeout=10,
    )
    resp.raise_for_status()
    data = resp.json()

    rates = {currency: float(value) for currency, value in data["rates"].items()}
    rate_date = date_type.fromisoformat(data["date"])
    _store_rates(db, base, rates, rate_date, now)
    logger.info(
        "Exchange rates fetched",
        extra={"extra_data": {"base": base, "targets": sorted(rates), "date": data["date"]}},
    )
    return rates, rate_date
