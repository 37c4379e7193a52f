"""
Debt payoff simulation engine.
Simulates month-by-month amortization of a set of debts under the Snowball
or Avalanche ordering policy, with freed minimum payments rolling over to the
next focus debt.

All money is handled as Decimal and kept at cent precision: interest is
rounded half-up to the cent when it is recorded, payments are cent amounts,
so balances never drift over long simulations.
"""
import calendar
import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.logger import logger
from app.debts.exceptions import InvalidDebtError, NonConvergentDebtError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
MONTHLY_RATE_DIVISOR = Decimal(1200)  # percentage APR -> monthly decimal rate


class PayoffStrategy(str, enum.Enum):
    SNOWBALL = "snowball"
    AVALANCHE = "avalanche"


@dataclass(frozen=True)
class DebtAccount:
    """A debt snapshot handed to the engine. Never mutated by a simulation."""

    id: Any
    name: str
    current_balance: Decimal
    annual_interest_rate: Decimal
    minimum_payment: Optional[Decimal]


@dataclass(frozen=True)
class DebtMonth:
    """One debt's activity during one simulated month."""

    debt_id: Any
    name: str
    balance_before: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    payment: Decimal
    extra_payment: Decimal
    balance_after: Decimal


@dataclass(frozen=True)
class ScheduleMonth:
    month: int
    month_date: date
    focus_debt_id: Any
    payments: List[DebtMonth]
    total_payment: Decimal
    remaining_debts: int
    total_remaining: Decimal


@dataclass(frozen=True)
class PayoffEntry:
    debt_id: Any
    name: str
    original_balance: Decimal
    payoff_month: int
    payoff_date: date


@dataclass(frozen=True)
class PayoffResult:
    strategy: PayoffStrategy
    monthly_extra: Decimal
    total_months: int
    total_interest: Decimal
    total_paid: Decimal
    original_total: Decimal
    start_date: date
    payoff_date: date
    debt_payoff_order: List[PayoffEntry] = field(default_factory=list)
    schedule: List[ScheduleMonth] = field(default_factory=list)


@dataclass
class _DebtState:
    """Mutable per-run copy of a DebtAccount."""

    debt_id: Any
    name: str
    original_balance: Decimal
    balance: Decimal
    rate: Decimal
    minimum: Decimal


def add_months(value: date, months: int) -> date:
    """Return ``value`` shifted by ``months``, clamping the day to the month's last day."""
    year = value.year + (value.month - 1 + months) // 12
    month = (value.month - 1 + months) % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def to_money(value: Any, label: str = "amount") -> Decimal:
    """Convert user input to a cent-precision Decimal."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            raise InvalidDebtError(f"Invalid {label}: {value!r}")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidDebtError(f"Invalid {label}: {value!r}") from exc


def _to_rate(value: Any, label: str) -> Decimal:
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidDebtError(f"Invalid {label}: {value!r}") from exc
    if not rate.is_finite():
        raise InvalidDebtError(f"Invalid {label}: {value!r}")
    return rate


def monthly_interest(balance: Decimal, annual_rate: Decimal) -> Decimal:
    """Interest accrued on ``balance`` for one month, rounded to the cent."""
    return (balance * annual_rate / MONTHLY_RATE_DIVISOR).quantize(CENT, rounding=ROUND_HALF_UP)


def _snowball_key(state: _DebtState) -> Tuple[Decimal, str]:
    return (state.balance, str(state.debt_id))


def _avalanche_key(state: _DebtState) -> Tuple[Decimal, Decimal, str]:
    return (-state.rate, state.balance, str(state.debt_id))


ORDERING_KEYS: Dict[PayoffStrategy, Callable[[_DebtState], Tuple]] = {
    PayoffStrategy.SNOWBALL: _snowball_key,
    PayoffStrategy.AVALANCHE: _avalanche_key,
}


def validate_debts(debts: Sequence[DebtAccount]) -> List[_DebtState]:
    """
    Validates the input snapshot and returns fresh mutable states for it.
    Raises InvalidDebtError on negative amounts, duplicate ids, or a missing
    minimum payment on a debt that still carries a balance.
    """
    states: List[_DebtState] = []
    seen_ids = set()

    for debt in debts:
        label = f"debt {debt.name or debt.id}"
        if debt.id in seen_ids:
            raise InvalidDebtError(f"Duplicate debt id: {debt.id!r}", [debt.id])
        seen_ids.add(debt.id)

        balance = to_money(debt.current_balance, f"balance for {label}")
        rate = _to_rate(debt.annual_interest_rate, f"interest rate for {label}")
        if balance < 0:
            raise InvalidDebtError(f"Balance cannot be negative for {label}", [debt.id])
        if rate < 0:
            raise InvalidDebtError(f"Interest rate cannot be negative for {label}", [debt.id])

        if debt.minimum_payment is None:
            minimum = None
        else:
            minimum = to_money(debt.minimum_payment, f"minimum payment for {label}")
            if minimum < 0:
                raise InvalidDebtError(f"Minimum payment cannot be negative for {label}", [debt.id])
        if balance > 0 and not minimum:
            raise InvalidDebtError(f"A minimum payment is required for {label}", [debt.id])

        states.append(_DebtState(
            debt_id=debt.id,
            name=debt.name,
            original_balance=balance,
            balance=balance,
            rate=rate,
            minimum=minimum or ZERO,
        ))

    return states


def _names(states: Iterable[_DebtState]) -> str:
    return ", ".join(s.name or str(s.debt_id) for s in states)


def simulate(
    debts: Sequence[DebtAccount],
    monthly_extra: Any = ZERO,
    strategy: PayoffStrategy = PayoffStrategy.AVALANCHE,
    start_date: Optional[date] = None,
) -> PayoffResult:
    """
    Runs a month-by-month payoff simulation.

    Each month every active debt accrues interest and receives its minimum
    payment. The focus debt (first in policy order) additionally receives the
    pool: ``monthly_extra`` plus the minimums of debts cleared in earlier
    months. Pool money left after clearing the focus debt moves on to the
    next debt in policy order.

    Raises InvalidDebtError for bad input and NonConvergentDebtError when the
    payments can never clear the debts.
    """
    strategy = PayoffStrategy(strategy)
    extra = to_money(monthly_extra, "monthly extra payment")
    if extra < 0:
        raise InvalidDebtError("Monthly extra payment cannot be negative")

    start = start_date or date.today()
    states = [s for s in validate_debts(debts) if s.balance > 0]
    order_key = ORDERING_KEYS[strategy]

    schedule: List[ScheduleMonth] = []
    payoff_order: List[PayoffEntry] = []
    redirected_minimums = ZERO
    total_interest = ZERO
    total_paid = ZERO
    stagnant_months = 0
    month = 0

    active = sorted(states, key=order_key)
    try:
        while active:
            month += 1
            if month > settings.MAX_SIMULATION_MONTHS:
                raise NonConvergentDebtError(
                    f"Payment insufficient to amortize debt {_names(active)} "
                    f"within {settings.MAX_SIMULATION_MONTHS} months",
                    [s.debt_id for s in active],
                    month=settings.MAX_SIMULATION_MONTHS,
                )

            opening = [s.balance for s in active]
            interest = [monthly_interest(s.balance, s.rate) for s in active]
            minimum_paid: List[Decimal] = []
            for state, accrued in zip(active, interest):
                payment = min(state.minimum, state.balance + accrued)
                state.balance = state.balance + accrued - payment
                minimum_paid.append(payment)

            pool = extra + redirected_minimums
            extra_paid = [ZERO] * len(active)
            for index, state in enumerate(active):
                if pool <= 0:
                    break
                if state.balance <= 0:
                    continue
                applied = min(pool, state.balance)
                state.balance -= applied
                extra_paid[index] = applied
                pool -= applied

            entries: List[DebtMonth] = []
            for index, state in enumerate(active):
                payment = minimum_paid[index] + extra_paid[index]
                entries.append(DebtMonth(
                    debt_id=state.debt_id,
                    name=state.name,
                    balance_before=opening[index],
                    interest_paid=interest[index],
                    principal_paid=max(payment - interest[index], ZERO),
                    payment=payment,
                    extra_payment=extra_paid[index],
                    balance_after=state.balance,
                ))
                total_interest += interest[index]
                total_paid += payment

            # active is already in policy order, which breaks same-month ties
            month_date = add_months(start, month)
            for state in active:
                if state.balance == 0:
                    payoff_order.append(PayoffEntry(
                        debt_id=state.debt_id,
                        name=state.name,
                        original_balance=state.original_balance,
                        payoff_month=month,
                        payoff_date=month_date,
                    ))
                    redirected_minimums += state.minimum

            remaining = [s for s in active if s.balance > 0]
            schedule.append(ScheduleMonth(
                month=month,
                month_date=month_date,
                focus_debt_id=active[0].debt_id,
                payments=entries,
                total_payment=sum((e.payment for e in entries), ZERO),
                remaining_debts=len(remaining),
                total_remaining=sum((s.balance for s in remaining), ZERO),
            ))

            if any(s.balance < before for s, before in zip(active, opening)):
                stagnant_months = 0
            else:
                stagnant_months += 1
                if stagnant_months >= settings.STAGNATION_MONTHS:
                    logger.info(f"Simulation stalled at month {month}: {_names(remaining)}")
                    raise NonConvergentDebtError(
                        f"Payment insufficient to amortize debt {_names(remaining)}",
                        [s.debt_id for s in remaining],
                        month=month,
                    )

            active = sorted(remaining, key=order_key)
    except (InvalidOperation, Overflow) as exc:
        # A balance outgrew Decimal precision, so its payments never keep up with interest
        growing = [s for s in active if s.balance > s.original_balance] or active
        logger.info(f"Simulation overflowed at month {month}: {_names(growing)}")
        raise NonConvergentDebtError(
            f"Payment insufficient to amortize debt {_names(growing)}",
            [s.debt_id for s in growing],
            month=month,
        ) from exc

    result = PayoffResult(
        strategy=strategy,
        monthly_extra=extra,
        total_months=month,
        total_interest=total_interest,
        total_paid=total_paid,
        original_total=sum((s.original_balance for s in states), ZERO),
        start_date=start,
        payoff_date=add_months(start, month),
        debt_payoff_order=payoff_order,
        schedule=schedule,
    )

    logger.info(
        f"Simulation completed: strategy={strategy.value}, debts={len(states)}, "
        f"months={result.total_months}, interest={result.total_interest}"
    )
    return result


def accounts_from_records(records: Iterable[Any]) -> List[DebtAccount]:
    """Builds engine input from persisted debt rows (debt_name, current_balance, interest_rate, minimum_payment)."""
    return [
        DebtAccount(
            id=record.id,
            name=record.debt_name,
            current_balance=record.current_balance,
            annual_interest_rate=record.interest_rate,
            minimum_payment=record.minimum_payment,
        )
        for record in records
    ]
