"""Tracker-scoped finance tables.

Every row here belongs to one tracker through ``tracker_id`` and disappears
with it. Only settings and goals have API routes in this service; the other
tables are owned by the wider app and are listed so tracker deletion can
clear them.
"""

from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Integer, Text

from ..db.session import Base


def _tracker_fk():
    return Column(Text, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)


class TrackerSettings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    tracker_id = Column(Text, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, unique=True)
    currency = Column(Text, nullable=False, default="PHP")
    locale = Column(Text, nullable=False, default="en-PH")
    current_rate_pct = Column(Float, nullable=False, default=12.0)
    apy_pct = Column(Float, nullable=False, default=3.0)
    inflation_pct = Column(Float, nullable=False, default=4.0)
    updated_at = Column(Text, nullable=True)


class ScenarioRates(Base):
    __tablename__ = "scenario_rates"

    id = Column(Integer, primary_key=True)
    tracker_id = Column(Text, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, unique=True)
    # JSON array of percentages, e.g. "[5,10,15,20]".
    rates = Column(Text, nullable=False, default="[5,10,15,20]")


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    user_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    target = Column(Float, nullable=False, default=0.0)
    deadline = Column(Text, nullable=True)
    owner = Column(Text, nullable=False, default="Household")
    priority = Column(Integer, nullable=False, default=999)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


class Person(Base):
    __tablename__ = "people"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    name = Column(Text, nullable=False)


class Income(Base):
    __tablename__ = "incomes"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    person_id = Column(Text, nullable=True)
    amount = Column(Float, nullable=False, default=0.0)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    date = Column(Text, nullable=True)
    amount = Column(Float, nullable=False, default=0.0)
    note = Column(Text, nullable=True)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    name = Column(Text, nullable=False)
    balance = Column(Float, nullable=False, default=0.0)


class FinanceTransaction(Base):
    __tablename__ = "finance_transactions"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    account_id = Column(Text, nullable=True)
    amount = Column(Float, nullable=False, default=0.0)
    category = Column(Text, nullable=True)


class SpendLimit(Base):
    __tablename__ = "spend_limits"

    id = Column(Text, primary_key=True)
    tracker_id = _tracker_fk()
    category = Column(Text, nullable=False)
    amount = Column(Float, nullable=False, default=0.0)


# Deletion order for a tracker's dependent rows.
TRACKER_DEPENDENT_MODELS = (
    Income,
    Person,
    Goal,
    Transaction,
    FinanceTransaction,
    Account,
    SpendLimit,
    ScenarioRates,
    TrackerSettings,
)


__all__ = [
    "Account",
    "FinanceTransaction",
    "Goal",
    "Income",
    "Person",
    "ScenarioRates",
    "SpendLimit",
    "TRACKER_DEPENDENT_MODELS",
    "TrackerSettings",
    "Transaction",
]
