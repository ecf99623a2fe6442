import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, String, Integer, Numeric, Date, DateTime, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from tripsplit.database import Base


def new_uuid():
    return str(uuid.uuid4())


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String, primary_key=True, default=new_uuid)
    trip_id = Column(String(64), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    amount = Column(Numeric(14, 4), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    category = Column(String(20), nullable=False)
    date = Column(Date, nullable=False)
    paid_by = Column(String(64), nullable=False)
    notes = Column(Text, nullable=True)
    receipt = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    split_between = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSplit.position",
    )


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(String, primary_key=True, default=new_uuid)
    expense_id = Column(String, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False)
    participant_id = Column(String(64), nullable=False)
    amount = Column(Numeric(14, 4), nullable=False)
    settled = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (UniqueConstraint("expense_id", "participant_id"),)

    expense = relationship("Expense", back_populates="split_between")


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id = Column(String, primary_key=True, default=new_uuid)
    date = Column(Date, nullable=False)
    base_currency = Column(String(3), nullable=False)
    target_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(18, 8), nullable=False)
    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("date", "base_currency", "target_currency"),)
