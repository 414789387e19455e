from __future__ import annotations

import pytest

from calculations import (
    cash_in_box,
    group_financials,
    loan_interest,
    loan_total_due,
    member_shares,
    share_value_appreciation,
    validate_member_shares,
    welfare_contribution,
)


def test_member_shares() -> None:
    assert member_shares(5500, 1000) == 5
    assert member_shares("999.99", "1000") == 0
    assert member_shares(5000, 0) == 0
    assert member_shares(5000, None) == 0


def test_loan_interest() -> None:
    assert loan_interest(100_000, 2, 6) == pytest.approx(12_000)
    assert loan_interest(100_000, 10, 2, compound=True) == pytest.approx(21_000)
    assert loan_total_due(100_000, 2, 6) == pytest.approx(112_000)


def test_small_formulas() -> None:
    assert cash_in_box(500, 200, 50) == 350
    assert cash_in_box("500", None) == 500
    assert welfare_contribution(2000, 3) == 6000
    assert share_value_appreciation(1000, 5000, 10) == 1500
    assert share_value_appreciation(1000, 5000, 0) == 1000


GROUP = {
    "saving_per_share": "1000",
    "interest_rate": "2",
    "welfare_amount": "500",
    "available_cash": "10000",
}

MEMBERS = [
    {"first_name": "Sarah", "savings_balance": "5000", "welfare_balance": "500", "current_loan": "2000", "total_shares": 5},
    {"first_name": "Joseph", "savings_balance": "3000", "welfare_balance": "0", "current_loan": "0", "total_shares": 4},
]


def test_group_financials_with_loans() -> None:
    fin = group_financials(GROUP, MEMBERS, [{"amount": "2000", "total_amount_due": "2240"}])

    assert fin.total_members == 2
    assert fin.total_savings == 8000
    assert fin.total_welfare == 500
    assert fin.total_shares == 8
    assert fin.total_loans_outstanding == 2000
    assert fin.total_cash_in_box == 16000
    assert fin.available_loan_funds == 16000
    assert fin.total_original_loans == 2000
    assert fin.total_interest_earned == pytest.approx(240)
    assert fin.to_dict()["interest_rate"] == 2


def test_group_financials_loan_without_total_due() -> None:
    fin = group_financials(GROUP, MEMBERS, [{"amount": "1000", "term_months": 3}])
    assert fin.total_interest_earned == pytest.approx(60)


def test_group_financials_estimates_when_loans_missing() -> None:
    fin = group_financials(GROUP, MEMBERS, [])
    # 2000 outstanding = principal * (1 + 0.02 * 6)
    assert fin.total_original_loans == pytest.approx(2000 / 1.12)
    assert fin.total_interest_earned == pytest.approx(2000 - 2000 / 1.12)


def test_group_financials_empty_group() -> None:
    fin = group_financials({}, [], None)
    assert fin.total_members == 0
    assert fin.total_savings == 0
    assert fin.total_cash_in_box == 0
    assert fin.available_loan_funds == 0


def test_overdrawn_box_has_no_loan_funds() -> None:
    fin = group_financials({"saving_per_share": "1000"}, [{"savings_balance": "100", "current_loan": "500"}], [])
    assert fin.total_cash_in_box == -400
    assert fin.available_loan_funds == 0


def test_validate_member_shares() -> None:
    assert validate_member_shares(GROUP, MEMBERS) == [
        "Member Joseph has incorrect shares: 4 (expected: 3)",
    ]
