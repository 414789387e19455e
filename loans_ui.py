# loans_ui.py
# Loan Calculator, Loan Submission and Loan Payments screens.

from __future__ import annotations

from decimal import Decimal

import streamlit as st
from postgrest.exceptions import APIError

import loans as svc
from currency import format_currency
from db import Settings
from loans_core import CENTS, WHOLE_UNITS, InvalidLoanTerms, compute_schedule
from pdfs import make_loan_schedule_pdf
from rbac import (
    KIND_MEMBER,
    SUBMIT_LOAN,
    SUBMIT_LOAN_PAYMENT,
    USE_LOAN_CALCULATOR,
    Principal,
    require,
)


# ============================================================
# Helpers
# ============================================================
def apierror_message(e: Exception) -> str:
    """
    Extracts PostgREST / Supabase error payload message cleanly.
    """
    if isinstance(e, APIError):
        return str(getattr(e, "message", None) or getattr(e, "details", None) or getattr(e, "hint", None) or "APIError")
    return str(e)


def pick_group(c, principal: Principal, key: str) -> str | None:
    """Members are pinned to their own group; staff pick one."""
    if principal.kind == KIND_MEMBER:
        return principal.group_id

    rows = (
        c.table("groups")
        .select("id,name,location,interest_rate,is_active")
        .eq("is_active", True)
        .order("name", desc=False)
        .limit(2000)
        .execute().data
        or []
    )
    if not rows:
        st.info("No active groups.")
        return None
    labels = {f"{r.get('name')} • {r.get('location') or ''}": str(r["id"]) for r in rows}
    pick = st.selectbox("Group", list(labels), key=key)
    return labels[pick]


def pick_member(c, group_id: str, key: str, only_with_loans: bool = False) -> dict | None:
    rows = (
        c.table("members")
        .select("id,first_name,last_name,group_role,current_loan,savings_balance,welfare_balance")
        .eq("group_id", str(group_id))
        .eq("is_active", True)
        .order("first_name", desc=False)
        .limit(5000)
        .execute().data
        or []
    )
    if only_with_loans:
        rows = [r for r in rows if float(r.get("current_loan") or 0) > 0]
    if not rows:
        st.info("No members with outstanding loans." if only_with_loans else "No members in this group.")
        return None

    def _lbl(r):
        name = f"{r.get('first_name') or ''} {r.get('last_name') or ''}".strip()
        return f"{name} ({r.get('group_role') or 'member'})"

    by_label = {_lbl(r): r for r in rows}
    pick = st.selectbox("Member", list(by_label), key=key)
    return by_label[pick]


# ============================================================
# Loan Calculator
# ============================================================
def render_loan_calculator(principal: Principal, settings: Settings):
    require(principal, USE_LOAN_CALCULATOR)

    st.subheader("Loan Calculator")
    st.caption("Calculate loan repayments, interest, and generate payment schedules.")

    with st.form("loan_calc", clear_on_submit=False):
        c1, c2, c3 = st.columns(3)
        with c1:
            amount = st.text_input("Loan amount", value="1000000", key="calc_amount")
        with c2:
            rate = st.text_input("Annual interest rate (%)", value="12", key="calc_rate")
        with c3:
            months = st.number_input("Term (months)", min_value=1, step=1, value=12, key="calc_months")
        whole = st.checkbox(f"Round to whole {settings.currency}", value=True, key="calc_whole")
        ok = st.form_submit_button("Calculate", use_container_width=True)

    if not ok:
        return

    try:
        schedule = compute_schedule(amount, rate, int(months), quantum=(WHOLE_UNITS if whole else CENTS))
    except InvalidLoanTerms as e:
        st.error(str(e))
        return

    k = st.columns(3)
    k[0].metric("Monthly payment", format_currency(schedule.monthly_payment, settings.currency))
    k[1].metric("Total interest", format_currency(schedule.total_interest, settings.currency))
    k[2].metric("Total amount", format_currency(schedule.total_amount, settings.currency))

    df = schedule.to_frame()
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.line_chart(df.set_index("month")["balance"])

    st.download_button(
        "Download schedule (PDF)",
        data=make_loan_schedule_pdf(settings.brand, schedule, currency=settings.currency),
        file_name="loan_schedule.pdf",
        mime="application/pdf",
        use_container_width=True,
        key="calc_pdf",
    )


# ============================================================
# Loan Submission
# ============================================================
def render_loan_submission(c, principal: Principal, settings: Settings):
    require(principal, SUBMIT_LOAN)

    st.subheader("Loan Submission")
    group_id = pick_group(c, principal, key="loan_sub_group")
    if not group_id:
        return
    member = pick_member(c, group_id, key="loan_sub_member")
    if not member:
        return

    with st.form("loan_submit", clear_on_submit=True):
        amount = st.number_input("Amount", min_value=0.0, step=1000.0, value=0.0, key="loan_sub_amount")
        months = st.number_input("Repayment period (months)", min_value=1, step=1, value=6, key="loan_sub_months")
        purpose = st.text_area("Purpose", key="loan_sub_purpose")
        ok = st.form_submit_button("Submit loan", use_container_width=True)

    if not ok:
        return
    if float(amount) <= 0:
        st.error("Amount must be > 0.")
        return

    try:
        row = svc.submit_loan(
            c, principal,
            group_id=group_id,
            member_id=str(member["id"]),
            amount=Decimal(str(amount)).quantize(CENTS),
            term_months=int(months),
            purpose=purpose,
            settings=settings,
        )
        st.success(f"Loan submitted ({row.get('status')}). Total due {format_currency(row.get('total_amount_due'), settings.currency)}")
    except (PermissionError, ValueError, LookupError) as e:
        st.error(str(e))
    except APIError as e:
        st.error("Loan submission failed.")
        st.code(apierror_message(e), language="text")


# ============================================================
# Loan Payments
# ============================================================
def render_loan_payments(c, principal: Principal, settings: Settings):
    require(principal, SUBMIT_LOAN_PAYMENT)

    st.subheader("Loan Payments")
    group_id = pick_group(c, principal, key="loan_pay_group")
    if not group_id:
        return
    member = pick_member(c, group_id, key="loan_pay_member", only_with_loans=True)
    if not member:
        return

    st.caption(f"Outstanding: {format_currency(member.get('current_loan') or 0, settings.currency)}")
    with st.form("loan_pay", clear_on_submit=True):
        amount = st.number_input("Payment amount", min_value=0.0, step=1000.0, value=0.0, key="loan_pay_amount")
        ok = st.form_submit_button("Record payment", use_container_width=True)

    if not ok:
        return

    try:
        res = svc.record_loan_payment(
            c, principal,
            group_id=group_id,
            member_id=str(member["id"]),
            amount=float(amount),
            processed_by=principal.name or principal.subject_id,
            settings=settings,
        )
        st.success(
            f"Paid {format_currency(res['payment_amount'], settings.currency)} • "
            f"remaining {format_currency(res['remaining_balance'], settings.currency)}"
        )
    except (PermissionError, ValueError, LookupError) as e:
        st.error(str(e))
    except APIError as e:
        st.error("Loan payment failed.")
        st.code(apierror_message(e), language="text")
