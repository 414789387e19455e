# loans.py
# Loan submission, loan repayments and savings/welfare submission.
# Every workflow: require() -> validate -> write rows -> audit.

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any, Dict, Optional

from audit import audit
from calculations import member_shares
from db import Settings, fetch_one, insert_one, load_settings, now_iso
from loans_core import CENTS, MONTHS_PER_YEAR, compute_schedule
from rbac import (
    KIND_MEMBER,
    SUBMIT_LOAN,
    SUBMIT_LOAN_PAYMENT,
    SUBMIT_SAVINGS,
    Principal,
    require,
)

logger = logging.getLogger("VSLA.Loans")

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"


def check_group_scope(principal: Principal, group_id) -> None:
    """Group members may only act inside their own group."""
    if principal.kind == KIND_MEMBER and str(principal.group_id) != str(group_id):
        raise PermissionError(f"Permission denied: group {group_id} is not your group.")


def _money(x) -> float:
    """Amount as float; NaN, inf and non-numbers raise ValueError."""
    try:
        v = float(x or 0)
    except (TypeError, ValueError):
        raise ValueError(f"Not an amount: {x!r}") from None
    if not math.isfinite(v):
        raise ValueError(f"Not an amount: {x!r}")
    return v


def _get_member(c, group_id, member_id) -> Dict[str, Any]:
    member = fetch_one(c.table("members").select("*").eq("id", str(member_id)))
    if not member:
        raise LookupError(f"Member {member_id} not found.")
    if str(member.get("group_id")) != str(group_id):
        raise ValueError(f"Member {member_id} does not belong to group {group_id}.")
    return member


def _get_group(c, group_id) -> Dict[str, Any]:
    group = fetch_one(c.table("groups").select("*").eq("id", str(group_id)))
    if not group:
        raise LookupError(f"Group {group_id} not found.")
    return group


def _group_monthly_rate(group: dict, settings: Settings) -> Decimal:
    raw = group.get("interest_rate")
    if raw in (None, ""):
        logger.info("Group %s has no interest rate; using fallback %s%%", group.get("id"), settings.loan_fallback_rate_percent)
        return settings.loan_fallback_rate_percent
    return Decimal(str(raw))


# ============================================================
# LOANS
# ============================================================
def submit_loan(
    c,
    principal: Principal,
    group_id: str,
    member_id: str,
    amount,
    term_months: int,
    purpose: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Creates a loan for a member at the group's monthly rate.

    The loan is stored approved when settings.auto_approve_loans is on,
    otherwise pending. total_amount_due comes from the amortization
    schedule (monthly group rate x 12 as the annual rate).

    With settings.book_approved_loans, an approved loan's total_amount_due
    is added to the member's current_loan so repayments can be recorded
    against it right away.
    """
    settings = settings or load_settings()
    require(principal, SUBMIT_LOAN)
    check_group_scope(principal, group_id)

    group = _get_group(c, group_id)
    member = _get_member(c, group_id, member_id)

    monthly_rate = _group_monthly_rate(group, settings)
    schedule = compute_schedule(amount, monthly_rate * MONTHS_PER_YEAR, term_months, quantum=CENTS)

    approved = settings.auto_approve_loans
    ts = now_iso()
    payload = {
        "group_id": str(group_id),
        "member_id": str(member_id),
        "amount": str(schedule.terms.principal),
        "interest_rate": str(monthly_rate),
        "term_months": schedule.terms.term_months,
        "status": STATUS_APPROVED if approved else STATUS_PENDING,
        "application_date": ts,
        "remaining_balance": str(schedule.terms.principal),
        "total_amount_due": str(schedule.total_amount),
        "purpose": (purpose or "").strip() or None,
    }
    if approved:
        payload["approval_date"] = ts
        payload["approved_by"] = principal.subject_id

    row = insert_one(c, "loans", payload)

    if approved and settings.book_approved_loans:
        outstanding = _money(member.get("current_loan")) + float(schedule.total_amount)
        c.table("members").update({
            "current_loan": outstanding,
            "updated_at": now_iso(),
        }).eq("id", str(member_id)).execute()
        logger.info("Booked loan %s on member %s; outstanding %s", row.get("id"), member_id, outstanding)

    audit(
        c, "loan_submitted", "ok",
        {"loan_id": row.get("id"), **payload},
        actor_user_id=principal.subject_id, schema=settings.schema,
    )
    return row


def record_loan_payment(
    c,
    principal: Principal,
    group_id: str,
    member_id: str,
    amount,
    processed_by: str,
    settings: Optional[Settings] = None,
) -> Dict[str, float]:
    """
    Applies a repayment against the member's current loan.
    Over-payments are capped at the outstanding balance.
    """
    settings = settings or load_settings()
    require(principal, SUBMIT_LOAN_PAYMENT)
    check_group_scope(principal, group_id)

    amt = _money(amount)
    if amt <= 0:
        raise ValueError("Payment amount must be > 0.")

    member = _get_member(c, group_id, member_id)
    current_loan = _money(member.get("current_loan"))
    if current_loan <= 0:
        raise ValueError("Member has no outstanding loan.")

    paid = min(amt, current_loan)
    remaining = current_loan - paid

    insert_one(c, "transactions", {
        "group_id": str(group_id),
        "member_id": str(member_id),
        "type": "loan_payment",
        "amount": paid,
        "description": f"Loan payment processed by {processed_by}",
        "created_by": principal.subject_id,
        "transaction_date": now_iso(),
    })

    c.table("members").update({
        "current_loan": remaining,
        "updated_at": now_iso(),
    }).eq("id", str(member_id)).execute()

    name = f"{member.get('first_name') or ''} {member.get('last_name') or ''}".strip()
    insert_one(c, "cashbox", {
        "group_id": str(group_id),
        "amount": paid,
        "transaction_type": "deposit",
        "description": f"Loan payment from {name or member_id}",
        "recorded_by": principal.subject_id,
        "recorded_at": now_iso(),
    })

    audit(
        c, "loan_payment_recorded", "ok",
        {"member_id": member_id, "amount": paid, "remaining_balance": remaining},
        actor_user_id=principal.subject_id, schema=settings.schema,
    )
    return {"payment_amount": paid, "remaining_balance": remaining}


# ============================================================
# SAVINGS + WELFARE
# ============================================================
def submit_savings(
    c,
    principal: Principal,
    group_id: str,
    member_id: str,
    savings_amount,
    welfare_amount,
    submitted_by: str,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Records a savings deposit and/or welfare payment for a member.
    Shares are recomputed from the new savings balance and the group's
    saving-per-share value.
    """
    settings = settings or load_settings()
    require(principal, SUBMIT_SAVINGS)
    check_group_scope(principal, group_id)

    savings = _money(savings_amount)
    welfare = _money(welfare_amount)
    if savings < 0 or welfare < 0:
        raise ValueError("Amounts must not be negative.")
    if savings == 0 and welfare == 0:
        raise ValueError("Nothing to submit.")

    group = _get_group(c, group_id)
    member = _get_member(c, group_id, member_id)

    updates: Dict[str, Any] = {"updated_at": now_iso()}

    if savings > 0:
        insert_one(c, "transactions", {
            "group_id": str(group_id),
            "member_id": str(member_id),
            "type": "deposit",
            "amount": savings,
            "description": f"Savings deposit submitted by {submitted_by}",
            "created_by": principal.subject_id,
            "transaction_date": now_iso(),
        })
        new_savings = _money(member.get("savings_balance")) + savings
        updates["savings_balance"] = new_savings
        updates["total_shares"] = member_shares(new_savings, group.get("saving_per_share"))

    if welfare > 0:
        insert_one(c, "transactions", {
            "group_id": str(group_id),
            "member_id": str(member_id),
            "type": "welfare_payment",
            "amount": welfare,
            "description": f"Welfare payment submitted by {submitted_by}",
            "created_by": principal.subject_id,
            "transaction_date": now_iso(),
        })
        updates["welfare_balance"] = _money(member.get("welfare_balance")) + welfare

    c.table("members").update(updates).eq("id", str(member_id)).execute()

    insert_one(c, "cashbox", {
        "group_id": str(group_id),
        "amount": savings + welfare,
        "transaction_type": "deposit",
        "description": f"Savings and welfare deposits submitted by {submitted_by}",
        "recorded_by": principal.subject_id,
        "recorded_at": now_iso(),
    })

    audit(
        c, "savings_submitted", "ok",
        {"member_id": member_id, "savings": savings, "welfare": welfare},
        actor_user_id=principal.subject_id, schema=settings.schema,
    )
    return updates
