"""
Unit tests for the payoff simulation engine.
Validates amortization math, ordering policies, rollover of freed minimums and failure modes.
"""
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

import pytest

from app.core.config import settings
from app.debts.engine import (
    DebtAccount,
    PayoffStrategy,
    add_months,
    monthly_interest,
    simulate,
)
from app.debts.exceptions import InvalidDebtError, NonConvergentDebtError

START = date(2026, 1, 15)


def make_debt(debt_id, balance, rate, minimum, name=None) -> DebtAccount:
    return DebtAccount(
        id=debt_id,
        name=name or str(debt_id),
        current_balance=Decimal(str(balance)),
        annual_interest_rate=Decimal(str(rate)),
        minimum_payment=None if minimum is None else Decimal(str(minimum)),
    )


def reversed_debts():
    """Smallest balance has the lowest rate, largest balance the highest rate."""
    return [
        make_debt("small", 1000, 6, 30),
        make_debt("medium", 3000, 15, 75),
        make_debt("large", 8000, 24, 200),
    ]


def reference_table(balance: Decimal, apr: Decimal, payment: Decimal):
    """Spreadsheet-style amortization: interest rounded to the cent, then the payment."""
    rows = []
    while balance > 0:
        interest = (balance * apr / Decimal(1200)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        paid = min(payment, balance + interest)
        balance = balance + interest - paid
        rows.append((interest, paid, balance))
    return rows


def test_single_debt_matches_amortization_table():
    """$5,000 at 20% APR paying $150/month, no extra."""
    debts = [make_debt(1, 5000, 20, 150, name="Visa")]

    result = simulate(debts, 0, PayoffStrategy.AVALANCHE, START)
    table = reference_table(Decimal("5000.00"), Decimal("20"), Decimal("150.00"))

    assert result.total_months == len(table) == 50
    assert result.total_interest == sum(row[0] for row in table)
    assert result.total_paid == Decimal("5000.00") + result.total_interest
    assert result.payoff_date == add_months(START, 50)

    first = result.schedule[0].payments[0]
    assert first.interest_paid == Decimal("83.33")
    assert first.principal_paid == Decimal("66.67")
    assert first.balance_after == Decimal("4933.33")

    for month, (interest, paid, balance) in zip(result.schedule, table):
        entry = month.payments[0]
        assert (entry.interest_paid, entry.payment, entry.balance_after) == (interest, paid, balance)


def test_first_month_interest_rounding():
    assert monthly_interest(Decimal("2000.00"), Decimal("24")) == Decimal("40.00")
    assert monthly_interest(Decimal("1234.56"), Decimal("18.99")) == Decimal("19.54")


def test_two_debts_same_focus_for_both_strategies():
    """The smaller debt also carries the higher rate, so both strategies clear it first."""
    debts = [
        make_debt("A", 1000, 22, 50),
        make_debt("B", 5000, 10, 100),
    ]

    snowball = simulate(debts, 200, PayoffStrategy.SNOWBALL, START)
    avalanche = simulate(debts, 200, PayoffStrategy.AVALANCHE, START)

    assert snowball.debt_payoff_order[0].debt_id == "A"
    assert avalanche.debt_payoff_order[0].debt_id == "A"
    assert avalanche.total_interest <= snowball.total_interest
    assert len(snowball.debt_payoff_order) == len(avalanche.debt_payoff_order) == 2


def test_reversed_size_and_rate_orders_differ():
    debts = reversed_debts()

    snowball = simulate(debts, 300, PayoffStrategy.SNOWBALL, START)
    avalanche = simulate(debts, 300, PayoffStrategy.AVALANCHE, START)

    assert [e.debt_id for e in snowball.debt_payoff_order] == ["small", "medium", "large"]
    assert [e.debt_id for e in avalanche.debt_payoff_order] == ["large", "medium", "small"]
    assert avalanche.total_interest < snowball.total_interest


def test_minimum_just_above_interest_converges_slowly():
    """$2,000 at 24% accrues $40 the first month; a $45 minimum still pays it off."""
    debts = [make_debt("card", 2000, 24, 45)]

    result = simulate(debts, 0, PayoffStrategy.AVALANCHE, START)

    assert result.total_months > 40
    assert result.schedule[0].payments[0].interest_paid == Decimal("40.00")
    assert result.schedule[-1].total_remaining == Decimal("0.00")


@pytest.mark.parametrize("minimum", [40, 30])
def test_minimum_not_covering_interest_never_converges(minimum):
    debts = [make_debt("card", 2000, 24, minimum, name="Store Card")]

    with pytest.raises(NonConvergentDebtError) as exc_info:
        simulate(debts, 0, PayoffStrategy.AVALANCHE, START)

    assert exc_info.value.debt_ids == ["card"]
    assert "Store Card" in exc_info.value.message
    assert exc_info.value.code == "non_convergent"


def test_safety_cap_stops_long_simulations(monkeypatch):
    monkeypatch.setattr(settings, "MAX_SIMULATION_MONTHS", 24)
    debts = [make_debt("card", 2000, 24, 45)]

    with pytest.raises(NonConvergentDebtError) as exc_info:
        simulate(debts, 0, PayoffStrategy.AVALANCHE, START)

    assert exc_info.value.month == 24


def test_growing_debt_behind_a_slowly_amortizing_one_never_converges():
    """The slow debt keeps decreasing for 1,000 months while the other compounds without bound."""
    debts = [
        make_debt("slow", 1000, 0, 1),
        make_debt("payday", 1000, 100, 1),
    ]

    with pytest.raises(NonConvergentDebtError) as exc_info:
        simulate(debts, 0, PayoffStrategy.AVALANCHE, START)

    assert exc_info.value.debt_ids == ["payday"]
    assert exc_info.value.code == "non_convergent"
    assert 0 < exc_info.value.month < settings.MAX_SIMULATION_MONTHS


def test_extra_rescues_a_non_amortizing_minimum():
    debts = [make_debt("card", 2000, 24, 30)]

    result = simulate(debts, 100, PayoffStrategy.AVALANCHE, START)

    assert result.total_months > 0
    assert result.debt_payoff_order[0].debt_id == "card"


def test_freed_minimums_roll_over_to_next_debt():
    """Zero-rate debts keep the arithmetic exact."""
    debts = [
        make_debt("A", 400, 0, 200),
        make_debt("B", 2000, 0, 50),
    ]

    result = simulate(debts, 50, PayoffStrategy.SNOWBALL, START)

    order = {e.debt_id: e.payoff_month for e in result.debt_payoff_order}
    assert order == {"A": 2, "B": 9}
    assert result.total_months == 9
    assert result.total_interest == Decimal("0.00")
    assert result.total_paid == Decimal("2400.00")

    # Month 2: A only needs $150, the $50 extra moves on to B
    month_two = {p.debt_id: p for p in result.schedule[1].payments}
    assert month_two["A"].payment == Decimal("150.00")
    assert month_two["A"].extra_payment == Decimal("0.00")
    assert month_two["B"].extra_payment == Decimal("50.00")

    # Month 3: B receives its minimum, the extra and A's freed $200
    month_three = result.schedule[2].payments
    assert len(month_three) == 1
    assert month_three[0].payment == Decimal("300.00")


def test_conservation_every_month():
    result = simulate(reversed_debts(), 150, PayoffStrategy.AVALANCHE, START)

    for month in result.schedule:
        for entry in month.payments:
            owed = entry.balance_before + entry.interest_paid
            assert entry.payment <= owed
            assert entry.balance_after == owed - entry.payment
            assert entry.balance_after >= 0

    assert result.total_interest == sum(
        entry.interest_paid for month in result.schedule for entry in month.payments
    )
    assert result.total_paid == result.original_total + result.total_interest


def test_payoff_order_sorted_by_month():
    result = simulate(reversed_debts(), 300, PayoffStrategy.SNOWBALL, START)

    months = [e.payoff_month for e in result.debt_payoff_order]
    assert months == sorted(months)
    assert months[-1] == result.total_months
    for entry in result.debt_payoff_order:
        assert entry.payoff_date == add_months(START, entry.payoff_month)


@pytest.mark.parametrize("strategy", [PayoffStrategy.SNOWBALL, PayoffStrategy.AVALANCHE])
def test_more_extra_never_costs_more(strategy):
    results = [simulate(reversed_debts(), extra, strategy, START) for extra in (0, 25, 100, 250, 1000)]

    for slower, faster in zip(results, results[1:]):
        assert faster.total_months <= slower.total_months
        assert faster.total_interest <= slower.total_interest


def test_simulation_is_idempotent():
    debts = reversed_debts()
    snapshot = list(debts)

    first = simulate(debts, 120, PayoffStrategy.SNOWBALL, START)
    second = simulate(debts, 120, PayoffStrategy.SNOWBALL, START)

    assert first == second
    assert debts == snapshot


def test_snowball_tie_breaks_on_id():
    debts = [
        make_debt("b", 1000, 10, 25),
        make_debt("a", 1000, 20, 25),
    ]

    result = simulate(debts, 100, PayoffStrategy.SNOWBALL, START)

    assert result.schedule[0].focus_debt_id == "a"


def test_avalanche_tie_breaks_on_balance_then_id():
    debts = [
        make_debt("c", 3000, 18, 60),
        make_debt("b", 1500, 18, 40),
        make_debt("a", 1500, 18, 40),
    ]

    result = simulate(debts, 100, PayoffStrategy.AVALANCHE, START)

    assert result.schedule[0].focus_debt_id == "a"
    assert [e.debt_id for e in result.debt_payoff_order][-1] == "c"


def test_zero_balance_debt_is_ignored():
    paid = make_debt("paid", 0, 18, 50)
    active = make_debt("active", 1000, 18, 50)

    with_paid = simulate([paid, active], 100, PayoffStrategy.SNOWBALL, START)
    alone = simulate([active], 100, PayoffStrategy.SNOWBALL, START)

    assert [e.debt_id for e in with_paid.debt_payoff_order] == ["active"]
    assert with_paid.total_months == alone.total_months
    assert with_paid.total_interest == alone.total_interest


def test_no_debts_is_a_trivial_result():
    result = simulate([], 100, PayoffStrategy.SNOWBALL, START)

    assert result.total_months == 0
    assert result.total_interest == Decimal("0.00")
    assert result.payoff_date == START
    assert result.debt_payoff_order == []


@pytest.mark.parametrize("debt, extra", [
    (make_debt(1, -10, 10, 50), 0),        # negative balance
    (make_debt(1, 1000, -1, 50), 0),       # negative rate
    (make_debt(1, 1000, 10, -5), 0),       # negative minimum
    (make_debt(1, 1000, 10, 0), 0),        # zero minimum on a live balance
    (make_debt(1, 1000, 10, None), 0),     # missing minimum
    (make_debt(1, 1000, 10, 50), -1),      # negative extra
    (make_debt(1, "NaN", 10, 50), 0),      # not a number
    (make_debt(1, 1000, "NaN", 50), 0),
    (make_debt(1, 1000, "Infinity", 50), 0),
    (make_debt(1, 1000, 10, "NaN"), 0),
    (make_debt(1, 1000, 10, 50), "NaN"),
])
def test_invalid_input_rejected(debt, extra):
    with pytest.raises(InvalidDebtError):
        simulate([debt], extra, PayoffStrategy.SNOWBALL, START)


def test_duplicate_ids_rejected():
    with pytest.raises(InvalidDebtError):
        simulate([make_debt(1, 100, 5, 10), make_debt(1, 200, 5, 10)], 0, PayoffStrategy.SNOWBALL, START)


def test_strategy_accepts_plain_string():
    result = simulate(reversed_debts(), 300, "snowball", START)
    assert result.strategy is PayoffStrategy.SNOWBALL


def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)
