"""
Data models for debt tracking.
Debt balances feed the payoff engine; payments and the chosen strategy are kept for history.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Debt(Base):
    """A liability owned by a user. Inactive rows are soft-deleted."""

    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    debt_name: Mapped[str] = mapped_column(String(100), nullable=False)
    debt_type: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    original_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    minimum_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    due_date: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    payments: Mapped[List["DebtPayment"]] = relationship(
        back_populates="debt",
        order_by="DebtPayment.payment_date.desc()",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Debt(id={self.id}, name={self.debt_name}, balance={self.current_balance})>"


class DebtPayment(Base):
    """A payment recorded against a debt, split into interest and principal."""

    __tablename__ = "debt_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    debt_id: Mapped[int] = mapped_column(Integer, ForeignKey("debts.id"), nullable=False, index=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    principal_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_extra: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    debt: Mapped[Debt] = relationship(back_populates="payments")


class DebtStrategy(Base):
    """The payoff strategy a user chose. One row per user, overwritten on save."""

    __tablename__ = "debt_strategies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    strategy_type: Mapped[str] = mapped_column(String(20), nullable=False)
    monthly_extra: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    projected_payoff_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    total_interest_saved: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    strategy_details: Mapped[str] = mapped_column(Text, nullable=False, default="{}")  # Serialized JSON
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<DebtStrategy(user_id={self.user_id}, strategy={self.strategy_type})>"
