from datetime import date as date_type
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tripsplit.currency import EXCHANGE_RATES

# Shares may be off from the amount by at most one cent
SPLIT_TOLERANCE = Decimal("0.01")


class Category(str, Enum):
    accommodation = "accommodation"
    transport = "transport"
    food = "food"
    activities = "activities"
    shopping = "shopping"
    other = "other"


def _cents(value: Decimal) -> Decimal:
    return value.quantize(SPLIT_TOLERANCE, rounding=ROUND_HALF_UP)


def _check_currency(value: str | None) -> str | None:
    if value is None:
        return None
    code = value.upper()
    if code not in EXCHANGE_RATES:
        raise ValueError("Unsupported currency")
    return code


# --- Expenses ---

# Amounts are stored as Numeric(14, 4)

class SplitIn(BaseModel):
    participant_id: str = Field(alias="participantId", min_length=1, max_length=64)
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=4, allow_inf_nan=False)
    settled: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ExpenseIn(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=4, allow_inf_nan=False)
    currency: str = "USD"
    category: Category
    date: date_type
    paid_by: str = Field(alias="paidBy", min_length=1, max_length=64)
    split_between: list[SplitIn] = Field(alias="splitBetween", min_length=1)
    notes: str | None = None
    receipt: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("currency")
    @classmethod
    def currency_supported(cls, value: str) -> str:
        return _check_currency(value)

    @model_validator(mode="after")
    def shares_match_amount(self) -> "ExpenseIn":
        seen = set()
        for split in self.split_between:
            if split.participant_id in seen:
                raise ValueError(f"Participant {split.participant_id} appears twice in splitBetween")
            seen.add(split.participant_id)

        total = sum((split.amount for split in self.split_between), Decimal(0))
        if abs(_cents(total) - _cents(self.amount)) > SPLIT_TOLERANCE:
            raise ValueError(
                f"Split amounts add up to {total}, expected {self.amount}"
            )
        return self


class ExpenseUpdateIn(BaseModel):
    """Partial update; merged into the stored expense and revalidated as ExpenseIn."""

    title: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    category: Category | None = None
    date: date_type | None = None
    paid_by: str | None = Field(default=None, alias="paidBy")
    split_between: list[SplitIn] | None = Field(default=None, alias="splitBetween")
    notes: str | None = None
    receipt: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class SettleIn(BaseModel):
    participant_id: str = Field(alias="participantId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)
