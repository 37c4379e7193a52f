"""
Business logic for debt records, payments and the saved payoff strategy.
Also builds the debt snapshot consumed by the payoff engine.
"""
import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.logger import audit_log, logger
from app.debts.engine import CENT, ZERO, DebtAccount, accounts_from_records, monthly_interest
from app.debts.models import Debt, DebtPayment, DebtStrategy
from app.debts.schemas import DebtCreate, DebtUpdate, PaymentCreate, StrategySave


def list_debts(db: Session, user_id: str) -> List[Debt]:
    """Active debts of a user, largest balance first."""
    return db.query(Debt).filter(
        Debt.user_id == user_id,
        Debt.is_active.is_(True)
    ).order_by(Debt.current_balance.desc(), Debt.id).all()


def get_debt(db: Session, debt_id: int, user_id: str) -> Optional[Debt]:
    return db.query(Debt).filter(Debt.id == debt_id, Debt.user_id == user_id).first()


def create_debt(db: Session, user_id: str, data: DebtCreate) -> Debt:
    debt = Debt(
        user_id=user_id,
        debt_name=data.debt_name,
        debt_type=data.debt_type,
        original_balance=data.original_balance if data.original_balance is not None else data.current_balance,
        current_balance=data.current_balance,
        interest_rate=data.interest_rate,
        minimum_payment=data.minimum_payment,
        due_date=data.due_date,
        is_active=True,
    )
    db.add(debt)
    db.commit()
    db.refresh(debt)

    audit_log(
        action="debt_create",
        user=user_id,
        resource=f"debt_id={debt.id}",
        details={"balance": data.current_balance, "rate": data.interest_rate}
    )
    return debt


def update_debt(db: Session, debt: Debt, data: DebtUpdate) -> Debt:
    """Applies the fields present in the payload; untouched fields keep their values."""
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(debt, field, value)
    db.commit()
    db.refresh(debt)

    audit_log(action="debt_update", user=debt.user_id, resource=f"debt_id={debt.id}", details=changes)
    return debt


def delete_debt(db: Session, debt: Debt) -> Debt:
    """Soft delete: the debt leaves every list and calculation but its history stays."""
    debt.is_active = False
    db.commit()
    audit_log(action="debt_delete", user=debt.user_id, resource=f"debt_id={debt.id}")
    return debt


def record_payment(db: Session, debt: Debt, data: PaymentCreate) -> DebtPayment:
    """
    Records a payment and lowers the debt balance accordingly.
    The payment covers this month's interest first; the remainder reduces principal.
    """
    balance = Decimal(debt.current_balance)
    amount = data.amount.quantize(CENT, rounding=ROUND_HALF_UP)
    interest_paid = min(amount, monthly_interest(balance, Decimal(debt.interest_rate)))
    principal_paid = amount - interest_paid
    new_balance = max(ZERO, balance - principal_paid)

    payment = DebtPayment(
        debt_id=debt.id,
        payment_date=data.payment_date or date.today(),
        amount=amount,
        principal_paid=principal_paid,
        interest_paid=interest_paid,
        balance_after=new_balance,
        is_extra=amount > Decimal(debt.minimum_payment or 0),
        notes=data.notes,
    )

    # Payment row and balance change are committed together
    try:
        db.add(payment)
        debt.current_balance = new_balance
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to record payment for debt {debt.id}", exc_info=True)
        raise
    db.refresh(payment)

    audit_log(
        action="debt_payment",
        user=debt.user_id,
        resource=f"debt_id={debt.id}",
        details={"amount": amount, "principal": principal_paid, "interest": interest_paid}
    )
    logger.info(f"Payment recorded: debt={debt.id}, amount={amount}, new_balance={new_balance}")
    return payment


def list_payments(db: Session, debt: Debt, limit: Optional[int] = None) -> List[DebtPayment]:
    query = db.query(DebtPayment).filter(DebtPayment.debt_id == debt.id).order_by(
        DebtPayment.payment_date.desc(), DebtPayment.id.desc()
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def load_debt_accounts(db: Session, user_id: str) -> List[DebtAccount]:
    """Reads the user's active debts once and turns them into an engine snapshot."""
    return accounts_from_records(list_debts(db, user_id))


def get_strategy(db: Session, user_id: str) -> Optional[DebtStrategy]:
    return db.query(DebtStrategy).filter(DebtStrategy.user_id == user_id).first()


def save_strategy(db: Session, user_id: str, data: StrategySave) -> DebtStrategy:
    """Upserts the user's chosen strategy. The payload is stored as sent."""
    strategy = get_strategy(db, user_id)
    if strategy is None:
        strategy = DebtStrategy(user_id=user_id)
        db.add(strategy)

    strategy.strategy_type = data.strategy_type.value
    strategy.monthly_extra = data.monthly_extra
    strategy.projected_payoff_date = data.projected_payoff_date
    strategy.total_interest_saved = data.total_interest_saved
    strategy.strategy_details = json.dumps(data.strategy_details, default=str)

    db.commit()
    db.refresh(strategy)

    audit_log(
        action="debt_strategy_save",
        user=user_id,
        resource=f"strategy_id={strategy.id}",
        details={"strategy": strategy.strategy_type, "monthly_extra": data.monthly_extra}
    )
    return strategy
