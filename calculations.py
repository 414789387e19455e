# calculations.py
# Group-level VSLA formulas: shares, loan interest, cash in box, welfare,
# share value growth. Works on plain dict rows as returned by Supabase.

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import pandas as pd

# used when loans rows are missing but members still owe money
ESTIMATE_AVG_LOAN_MONTHS = 6


def _num(x, default: float = 0.0) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def _col_sum(df: pd.DataFrame, col: str) -> float:
    if df.empty or col not in df.columns:
        return 0.0
    return float(pd.to_numeric(df[col], errors="coerce").fillna(0).sum())


# ============================================================
# STANDARD FORMULAS
# ============================================================
def member_shares(savings_balance, saving_per_share) -> int:
    """shares = floor(savings / saving_per_share); 0 when share value is not set."""
    per_share = _num(saving_per_share)
    if per_share <= 0:
        return 0
    return int(math.floor(_num(savings_balance) / per_share))


def loan_interest(principal, monthly_rate_percent, months, compound: bool = False) -> float:
    p = _num(principal)
    rate = _num(monthly_rate_percent) / 100
    m = _num(months)
    if compound:
        return p * (1 + rate) ** m - p
    return p * rate * m


def loan_total_due(principal, monthly_rate_percent, months, compound: bool = False) -> float:
    return _num(principal) + loan_interest(principal, monthly_rate_percent, months, compound)


def cash_in_box(total_savings, total_loans_outstanding, group_available_cash=0.0) -> float:
    return _num(total_savings) - _num(total_loans_outstanding) + _num(group_available_cash)


def welfare_contribution(monthly_welfare_amount, months_active) -> float:
    return _num(monthly_welfare_amount) * _num(months_active)


def share_value_appreciation(original_share_value, total_interest_earned, total_shares) -> float:
    shares = _num(total_shares)
    if shares <= 0:
        return _num(original_share_value)
    return _num(original_share_value) + _num(total_interest_earned) / shares


# ============================================================
# GROUP SUMMARY
# ============================================================
@dataclass(frozen=True)
class GroupFinancials:
    total_members: int
    total_savings: float
    total_welfare: float
    total_shares: int
    share_value: float
    total_cash_in_box: float
    total_loans_outstanding: float
    total_original_loans: float
    total_interest_earned: float
    group_welfare_amount: float
    interest_rate: float
    available_loan_funds: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def group_financials(group: dict, members: List[dict], loans: Optional[List[dict]] = None) -> GroupFinancials:
    """
    Summary for one group. Row keys follow the database columns
    (savings_balance, current_loan, saving_per_share, ...).
    """
    loans = loans or []
    dfm = pd.DataFrame(members or [])

    total_savings = _col_sum(dfm, "savings_balance")
    total_welfare = _col_sum(dfm, "welfare_balance")
    total_outstanding = _col_sum(dfm, "current_loan")

    share_value = _num(group.get("saving_per_share"))
    interest_rate = _num(group.get("interest_rate"))
    welfare_amount = _num(group.get("welfare_amount"))
    available_cash = _num(group.get("available_cash"))

    total_shares = sum(member_shares(m.get("savings_balance"), share_value) for m in (members or []))

    total_original = 0.0
    total_interest = 0.0
    for ln in loans:
        principal = _num(ln.get("amount"))
        total_original += principal
        if ln.get("total_amount_due") not in (None, ""):
            total_interest += _num(ln.get("total_amount_due")) - principal
        else:
            months = int(_num(ln.get("term_months"), 1.0)) or 1
            total_interest += loan_interest(principal, interest_rate, months, compound=False)

    if not loans and total_outstanding > 0:
        # back out principal from balance = principal * (1 + rate * months)
        rate_factor = 1 + (interest_rate / 100) * ESTIMATE_AVG_LOAN_MONTHS
        total_original = total_outstanding / rate_factor
        total_interest = total_outstanding - total_original

    box = cash_in_box(total_savings, total_outstanding, available_cash)

    return GroupFinancials(
        total_members=len(members or []),
        total_savings=total_savings,
        total_welfare=total_welfare,
        total_shares=total_shares,
        share_value=share_value,
        total_cash_in_box=box,
        total_loans_outstanding=total_outstanding,
        total_original_loans=total_original,
        total_interest_earned=total_interest,
        group_welfare_amount=welfare_amount,
        interest_rate=interest_rate,
        available_loan_funds=max(0.0, box),
    )


def validate_member_shares(group: dict, members: List[dict]) -> List[str]:
    """Members whose stored total_shares disagree with their savings."""
    share_value = _num(group.get("saving_per_share"))
    errors: List[str] = []
    for m in members or []:
        expected = member_shares(m.get("savings_balance"), share_value)
        stored = int(_num(m.get("total_shares")))
        if stored != expected:
            name = f"{m.get('first_name') or ''} {m.get('last_name') or ''}".strip() or str(m.get("id"))
            errors.append(f"Member {name} has incorrect shares: {stored} (expected: {expected})")
    return errors
