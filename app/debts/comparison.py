"""
Strategy comparison and recommendation.
Runs the simulator for Snowball, Avalanche and a minimum-payments baseline,
then derives savings and picks a strategy.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from app.core.config import settings
from app.core.logger import logger
from app.debts.engine import (
    ZERO,
    DebtAccount,
    PayoffResult,
    PayoffStrategy,
    simulate,
    to_money,
    validate_debts,
)
from app.debts.exceptions import InvalidDebtError, NonConvergentDebtError


@dataclass(frozen=True)
class Recommendation:
    strategy: PayoffStrategy
    reason: str


@dataclass(frozen=True)
class ComparisonResult:
    snowball: PayoffResult
    avalanche: PayoffResult
    minimum_only: Optional[PayoffResult]
    minimum_only_error: Optional[str]
    interest_saved_with_avalanche: Decimal
    interest_saved_vs_minimum: Optional[Decimal]
    time_saved_vs_minimum: Optional[int]
    snowball_quick_wins: int
    recommendation: Recommendation


def recommend(snowball: PayoffResult, avalanche: PayoffResult) -> Recommendation:
    """
    Avalanche is interest-optimal and recommended by default.
    Snowball wins only when both plans are effectively identical in time and cost,
    since its early payoffs then come for free.
    """
    months_difference = abs(snowball.total_months - avalanche.total_months)
    interest_difference = abs(snowball.total_interest - avalanche.total_interest)

    if (
        months_difference < settings.RECOMMENDATION_MONTHS_THRESHOLD
        and interest_difference < settings.RECOMMENDATION_INTEREST_THRESHOLD
    ):
        return Recommendation(
            strategy=PayoffStrategy.SNOWBALL,
            reason=(
                "Both strategies finish at the same time for practically the same interest. "
                "Snowball clears your smallest balances first, giving you quick wins to stay motivated."
            ),
        )

    interest_saved = snowball.total_interest - avalanche.total_interest
    months_saved = snowball.total_months - avalanche.total_months

    if interest_saved > 0:
        reason = f"Avalanche saves you ${interest_saved:,.2f} in interest by paying the highest rates first."
        if months_saved > 0:
            reason += f" You also become debt-free {months_saved} month(s) sooner."
    elif months_saved > 0:
        reason = f"Avalanche makes you debt-free {months_saved} month(s) sooner by paying the highest rates first."
    else:
        reason = "Avalanche pays the highest rates first, which keeps the interest you owe growing the slowest."
    return Recommendation(strategy=PayoffStrategy.AVALANCHE, reason=reason)


def _quick_wins(snowball: PayoffResult, avalanche: PayoffResult) -> int:
    """Number of debts Snowball clears strictly earlier than Avalanche."""
    avalanche_months = {entry.debt_id: entry.payoff_month for entry in avalanche.debt_payoff_order}
    return sum(
        1
        for entry in snowball.debt_payoff_order
        if entry.payoff_month < avalanche_months.get(entry.debt_id, entry.payoff_month)
    )


def compare(
    debts: Sequence[DebtAccount],
    monthly_extra: Any = ZERO,
    start_date: Optional[date] = None,
) -> ComparisonResult:
    """
    Compares Snowball and Avalanche for the same debts and extra budget.
    A baseline that never converges is reported as not computable instead of failing the comparison.
    """
    if not debts:
        raise InvalidDebtError("At least one debt is required to compare strategies")

    start = start_date or date.today()
    snowball = simulate(debts, monthly_extra, PayoffStrategy.SNOWBALL, start)
    avalanche = simulate(debts, monthly_extra, PayoffStrategy.AVALANCHE, start)

    minimum_only: Optional[PayoffResult] = None
    minimum_only_error: Optional[str] = None
    interest_saved_vs_minimum: Optional[Decimal] = None
    time_saved_vs_minimum: Optional[int] = None
    try:
        minimum_only = simulate(debts, ZERO, PayoffStrategy.AVALANCHE, start)
    except NonConvergentDebtError as exc:
        logger.info(f"Minimum-only baseline not computable: {exc.message}")
        minimum_only_error = exc.message
    else:
        interest_saved_vs_minimum = minimum_only.total_interest - avalanche.total_interest
        time_saved_vs_minimum = minimum_only.total_months - avalanche.total_months

    return ComparisonResult(
        snowball=snowball,
        avalanche=avalanche,
        minimum_only=minimum_only,
        minimum_only_error=minimum_only_error,
        interest_saved_with_avalanche=snowball.total_interest - avalanche.total_interest,
        interest_saved_vs_minimum=interest_saved_vs_minimum,
        time_saved_vs_minimum=time_saved_vs_minimum,
        snowball_quick_wins=_quick_wins(snowball, avalanche),
        recommendation=recommend(snowball, avalanche),
    )


def summarize_debts(
    debts: Sequence[DebtAccount],
    monthly_extra: Any = ZERO,
    start_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Quick overview of a debt portfolio with an Avalanche projection.
    Projection fields are None when the debts cannot be paid off at the current payments.
    """
    start = start_date or date.today()
    states = validate_debts(debts)

    summary: Dict[str, Any] = {
        "total_debts": len(states),
        "total_balance": sum((s.balance for s in states), ZERO),
        "total_minimum_payments": sum((s.minimum for s in states), ZERO),
        "highest_rate": max((s.rate for s in states), default=Decimal("0")),
        "lowest_balance": min((s.balance for s in states), default=ZERO),
        "monthly_extra": to_money(monthly_extra, "monthly extra payment"),
        "debt_free_date": start,
        "months_to_payoff": 0,
        "total_interest_projected": ZERO,
        "projection_error": None,
    }
    if not states:
        return summary

    try:
        projection = simulate(debts, monthly_extra, PayoffStrategy.AVALANCHE, start)
    except NonConvergentDebtError as exc:
        summary.update(
            debt_free_date=None,
            months_to_payoff=None,
            total_interest_projected=None,
            projection_error=exc.message,
        )
        return summary

    summary.update(
        debt_free_date=projection.payoff_date,
        months_to_payoff=projection.total_months,
        total_interest_projected=projection.total_interest,
    )
    return summary
