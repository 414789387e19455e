"""
Amortization engine: payment formula, schedule shape, rounding and
input validation.
"""

from __future__ import annotations

from decimal import Decimal, localcontext

import pytest

from loans_core import (
    CENTS,
    MAX_TERM_MONTHS,
    SCHEDULE_COLUMNS,
    WHOLE_UNITS,
    InvalidLoanTerms,
    LoanTerms,
    compute_schedule,
    monthly_payment,
)


def test_reference_loan_in_cents() -> None:
    s = compute_schedule(1_200_000, 12, 12)

    assert s.monthly_payment == Decimal("106618.55")
    assert s.total_amount == Decimal("1279422.60")
    assert s.total_interest == Decimal("79422.60")
    assert len(s.entries) == 12

    first = s.entries[0]
    assert first.month == 1
    assert first.interest == Decimal("12000.00")
    assert first.principal == Decimal("94618.55")
    assert first.balance == Decimal("1105381.45")

    last = s.entries[-1]
    assert last.balance == Decimal("0")
    assert abs(last.payment - s.monthly_payment) <= Decimal("0.10")


def test_reference_loan_in_whole_shillings() -> None:
    s = compute_schedule("1200000", "12", 12, quantum=WHOLE_UNITS)

    assert s.monthly_payment == Decimal("106619")
    assert s.total_amount == Decimal("1279428")
    assert s.total_interest == Decimal("79428")
    assert s.entries[0].interest == Decimal("12000")
    assert s.entries[-1].balance == 0


def test_totals_reconcile_with_principal() -> None:
    s = compute_schedule(250_000, 18, 9)
    assert s.total_amount - s.total_interest == s.terms.principal
    assert s.total_amount == s.monthly_payment * 9


def test_zero_rate_is_straight_line() -> None:
    s = compute_schedule(1000, 0, 3)

    assert s.monthly_payment == Decimal("333.33")
    assert [e.interest for e in s.entries] == [Decimal("0.00")] * 3
    assert [e.principal for e in s.entries] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert s.entries[-1].balance == 0
    # nominal payment * n drifts from the principal by at most one quantum per month
    assert abs(s.total_interest) <= CENTS * 3


def test_single_month_loan() -> None:
    s = compute_schedule(1000, 12, 1)

    assert s.monthly_payment == Decimal("1010.00")
    (only,) = s.entries
    assert only.principal == Decimal("1000")
    assert only.interest == Decimal("10.00")
    assert only.payment == Decimal("1010.00")
    assert only.balance == 0


@pytest.mark.parametrize(
    "principal,rate,months",
    [
        (1_200_000, 12, 12),
        (500_000, 24, 6),
        (75_000, 36, 24),
        ("999.99", "7.5", 60),
        (3_000_000, "0", 10),
    ],
)
def test_schedule_invariants(principal, rate, months) -> None:
    s = compute_schedule(principal, rate, months)

    assert [e.month for e in s.entries] == list(range(1, months + 1))
    assert sum(e.principal for e in s.entries) == s.terms.principal
    assert s.entries[-1].balance == 0

    previous = s.terms.principal
    for e in s.entries:
        assert e.principal + e.interest == e.payment
        assert e.principal >= 0
        assert e.interest >= 0
        assert 0 <= e.balance <= previous
        previous = e.balance

    for e in s.entries[:-1]:
        assert e.payment == s.monthly_payment


def test_same_inputs_same_schedule() -> None:
    assert compute_schedule(1_200_000, 12, 12) == compute_schedule(1_200_000, 12, 12)
    assert compute_schedule("1200000", "12.0", "12") == compute_schedule(1_200_000, 12, 12)


def test_monthly_payment_matches_schedule() -> None:
    terms = LoanTerms.parse(1_200_000, 12, 12)
    assert terms.monthly_rate == Decimal("0.01")
    assert monthly_payment(terms) == compute_schedule(1_200_000, 12, 12).monthly_payment


@pytest.mark.parametrize(
    "principal,rate,months,field",
    [
        (0, 12, 12, "principal"),
        (-5, 12, 12, "principal"),
        ("abc", 12, 12, "principal"),
        (float("nan"), 12, 12, "principal"),
        (float("inf"), 12, 12, "principal"),
        (True, 12, 12, "principal"),
        (None, 12, 12, "principal"),
        ("10.001", 12, 12, "principal"),
        (1000, -1, 12, "annual_rate_percent"),
        (1000, "twelve", 12, "annual_rate_percent"),
        (1000, 12, 0, "term_months"),
        (1000, 12, -3, "term_months"),
        (1000, 12, 1.5, "term_months"),
        (1000, 12, 10**9, "term_months"),
        (1000, 0, 10**9, "term_months"),
        (1000, "1e100000", 12, "annual_rate_percent"),
        (10**40, 12, 12, "principal"),
    ],
)
def test_rejects_bad_inputs(principal, rate, months, field) -> None:
    with pytest.raises(InvalidLoanTerms) as exc:
        compute_schedule(principal, rate, months)
    assert exc.value.field == field


def test_fractional_principal_rejected_for_whole_units() -> None:
    with pytest.raises(InvalidLoanTerms):
        compute_schedule("1000.50", 12, 12, quantum=WHOLE_UNITS)


def test_invalid_terms_is_a_value_error() -> None:
    with pytest.raises(ValueError, match="Invalid term_months"):
        compute_schedule(1000, 12, 0)


def test_to_frame() -> None:
    s = compute_schedule(1_200_000, 12, 12)
    df = s.to_frame()

    assert list(df.columns) == SCHEDULE_COLUMNS
    assert len(df) == 12
    assert df["balance"].iloc[-1] == 0.0
    assert df["payment"].iloc[0] == pytest.approx(106618.55)

    records = s.to_records()
    assert records[0]["interest"] == Decimal("12000.00")


def test_longest_allowed_term() -> None:
    s = compute_schedule(1_000_000, 12, MAX_TERM_MONTHS)
    assert len(s.entries) == MAX_TERM_MONTHS
    assert s.entries[-1].balance == 0

    with pytest.raises(InvalidLoanTerms, match="too large"):
        LoanTerms.parse(1_000_000, 12, MAX_TERM_MONTHS + 1)


def test_very_large_principal_keeps_full_precision() -> None:
    terms = LoanTerms.parse(10**30, 12, 12)
    assert terms.principal == Decimal(10**30)

    s = compute_schedule(10**30, 12, 12)
    with localcontext() as ctx:
        ctx.prec = 34
        assert sum(e.principal for e in s.entries) == Decimal(10**30)
    assert s.entries[-1].balance == 0


def test_zero_rate_payment_can_round_to_nothing() -> None:
    s = compute_schedule(4, 0, 10, quantum=WHOLE_UNITS)

    assert s.monthly_payment == 0
    assert s.total_amount == 0
    assert s.total_interest == Decimal("-4")
    assert sum(e.principal for e in s.entries) == 4
    assert s.entries[-1].payment == 4
    assert s.entries[-1].balance == 0
