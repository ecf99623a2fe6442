"""Static currency conversion, formatting and trip budget helpers."""

import re
from decimal import Decimal, ROUND_HALF_UP

BASE_CURRENCY = "USD"

# Units of each currency per 1 USD
EXCHANGE_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("149.50"),
    "AUD": Decimal("1.53"),
    "CAD": Decimal("1.36"),
    "CHF": Decimal("0.88"),
    "CNY": Decimal("7.24"),
    "INR": Decimal("83.12"),
    "MXN": Decimal("17.15"),
    "BRL": Decimal("4.97"),
    "KRW": Decimal("1328.50"),
    "SGD": Decimal("1.34"),
    "HKD": Decimal("7.82"),
    "THB": Decimal("35.50"),
    "PHP": Decimal("55.90"),
    "IDR": Decimal("15650"),
    "MYR": Decimal("4.72"),
    "VND": Decimal("24350"),
    "AED": Decimal("3.67"),
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "CHF",
    "CNY": "¥",
    "INR": "₹",
    "MXN": "MX$",
    "BRL": "R$",
    "KRW": "₩",
    "SGD": "S$",
    "HKD": "HK$",
    "THB": "฿",
    "PHP": "₱",
    "IDR": "Rp",
    "MYR": "RM",
    "VND": "₫",
    "AED": "د.إ",
}

ZERO_DECIMAL_CURRENCIES = ("JPY", "KRW", "VND", "IDR")

# (group separator, decimal separator)
LOCALE_SEPARATORS: dict[str, tuple[str, str]] = {
    "en-US": (",", "."),
    "en-GB": (",", "."),
    "ja-JP": (",", "."),
    "de-DE": (".", ","),
    "es-ES": (".", ","),
    "fr-FR": (" ", ","),
}

BUDGET_BREAKDOWNS: dict[str, dict[str, float]] = {
    "budget": {
        "accommodation": 0.25,
        "transportation": 0.20,
        "food": 0.25,
        "activities": 0.15,
        "shopping": 0.05,
        "miscellaneous": 0.10,
    },
    "mid-range": {
        "accommodation": 0.30,
        "transportation": 0.20,
        "food": 0.20,
        "activities": 0.15,
        "shopping": 0.07,
        "miscellaneous": 0.08,
    },
    "luxury": {
        "accommodation": 0.35,
        "transportation": 0.15,
        "food": 0.20,
        "activities": 0.15,
        "shopping": 0.08,
        "miscellaneous": 0.07,
    },
}

_LEADING_NUMBER = re.compile(r"-?(\d+\.?\d*|\.\d+)")


def _as_decimal(amount) -> Decimal:
    return amount if isinstance(amount, Decimal) else Decimal(str(amount))


def _fixed(amount, places: int) -> Decimal:
    """Round half up to a fixed number of places (like Number.toFixed)."""
    return _as_decimal(amount).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def currency_decimals(currency: str) -> int:
    return 0 if currency in ZERO_DECIMAL_CURRENCIES else 2


def get_exchange_rate(from_currency: str, to_currency: str) -> Decimal:
    """Rate converting 1 unit of from_currency into to_currency.

    Unknown currencies are treated as pegged 1:1 to USD.
    """
    from_rate = EXCHANGE_RATES.get(from_currency, Decimal(1))
    to_rate = EXCHANGE_RATES.get(to_currency, Decimal(1))
    return to_rate / from_rate


def convert_currency(amount, from_currency: str, to_currency: str):
    """Convert an amount through USD using the static rate table.

    Returns the amount untouched when both currencies are the same, otherwise
    an unrounded Decimal.
    """
    if from_currency == to_currency:
        return amount

    from_rate = EXCHANGE_RATES.get(from_currency, Decimal(1))
    to_rate = EXCHANGE_RATES.get(to_currency, Decimal(1))
    usd_amount = _as_decimal(amount) / from_rate
    return usd_amount * to_rate


def normalize_expenses(expenses: list[dict], target_currency: str) -> list[dict]:
    """Convert expense amounts and shares into a single currency.

    Returns new dicts; the input is left untouched.
    """
    normalized = []
    for expense in expenses:
        source = expense.get("currency") or BASE_CURRENCY
        normalized.append({
            **expense,
            "amount": convert_currency(expense["amount"], source, target_currency),
            "currency": target_currency,
            "splitBetween": [
                {**split, "amount": convert_currency(split["amount"], source, target_currency)}
                for split in expense.get("splitBetween") or []
            ],
        })
    return normalized


def format_currency(
    amount,
    currency: str = "USD",
    show_symbol: bool = True,
    show_code: bool = False,
    decimals: int | None = None,
    locale: str = "en-US",
) -> str:
    """Format an amount with grouping, fixed decimals and a symbol or code.

    Zero-decimal currencies (JPY, KRW, VND, IDR) get no fractional digits
    unless ``decimals`` says otherwise.
    """
    places = decimals if decimals is not None else currency_decimals(currency)
    group_sep, decimal_sep = LOCALE_SEPARATORS.get(locale, LOCALE_SEPARATORS["en-US"])

    value = _fixed(amount, places)
    number = f"{abs(value):,.{places}f}"
    number = number.replace(",", "\0").replace(".", decimal_sep).replace("\0", group_sep)
    sign = "-" if value < 0 else ""

    if show_code:
        return f"{sign}{currency} {number}"
    if show_symbol:
        return f"{sign}{CURRENCY_SYMBOLS.get(currency, currency)}{number}"
    return f"{sign}{number}"


def parse_currency(value: str) -> float:
    """Parse a formatted amount back into a number; returns 0 when unparseable.

    Only understands "." as the decimal separator.
    """
    cleaned = re.sub(r"[^0-9.\-]", "", value)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))


def format_compact_currency(amount, currency: str = "USD") -> str:
    """Short form for dashboards, e.g. $1.2K, $3.5M or -$5.0K."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    size = abs(_as_decimal(amount))
    if size >= 1_000_000:
        number = f"{_fixed(size / 1_000_000, 1)}M"
    elif size >= 1_000:
        number = f"{_fixed(size / 1_000, 1)}K"
    else:
        number = f"{_fixed(size, 0)}"
    sign = "-" if amount < 0 and number != "0" else ""
    return f"{sign}{symbol}{number}"


def get_supported_currencies() -> list[dict[str, str]]:
    return [{"code": code, "symbol": symbol} for code, symbol in CURRENCY_SYMBOLS.items()]


def calculate_budget_breakdown(total_budget: float, style: str = "mid-range") -> dict[str, float]:
    """Split a trip budget across spending categories for a travel style."""
    percentages = BUDGET_BREAKDOWNS.get(style)
    if percentages is None:
        raise ValueError(f"Unknown budget style: {style}")
    return {category: total_budget * share for category, share in percentages.items()}


def calculate_daily_budget(total_budget: float, days: int, reserved_amount: float = 0) -> float:
    if days <= 0:
        raise ValueError("days must be positive")
    return (total_budget - reserved_amount) / days


def get_budget_status(spent: float, budget: float) -> str:
    """'over' above 100% of budget, 'near' above 80%, otherwise 'under'."""
    if budget <= 0:
        return "over" if spent > 0 else "under"
    percentage = spent / budget * 100
    if percentage > 100:
        return "over"
    if percentage > 80:
        return "near"
    return "under"
