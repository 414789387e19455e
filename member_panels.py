from __future__ import annotations

import pandas as pd
import streamlit as st
from postgrest.exceptions import APIError

import loans as svc
from currency import format_currency
from db import Settings
from loans_ui import apierror_message, pick_group, pick_member
from rbac import EDIT_MEMBERS, SUBMIT_SAVINGS, VIEW_MEMBERS, Principal, is_permitted, require

MEMBER_COLUMNS = [
    "first_name",
    "last_name",
    "gender",
    "group_role",
    "phone",
    "total_shares",
    "savings_balance",
    "welfare_balance",
    "current_loan",
]


def render_members(c, principal: Principal, settings: Settings):
    require(principal, VIEW_MEMBERS)

    st.subheader("Members")
    group_id = pick_group(c, principal, key="members_group")
    if not group_id:
        return

    rows = (
        c.table("members")
        .select("*")
        .eq("group_id", str(group_id))
        .order("first_name", desc=False)
        .limit(5000)
        .execute().data
        or []
    )
    df = pd.DataFrame(rows)
    if df.empty:
        st.info("No members in this group.")
        return

    cols = [col for col in MEMBER_COLUMNS if col in df.columns]
    if not is_permitted(principal, EDIT_MEMBERS):
        # regular members do not see other members' balances
        cols = [col for col in cols if col not in ("savings_balance", "welfare_balance", "current_loan")]
    st.dataframe(df[cols], use_container_width=True, hide_index=True)


def render_submit_savings(c, principal: Principal, settings: Settings):
    require(principal, SUBMIT_SAVINGS)

    st.subheader("Submit Savings")
    st.caption("Savings deposit and welfare payment for one member.")

    group_id = pick_group(c, principal, key="savings_group")
    if not group_id:
        return
    member = pick_member(c, group_id, key="savings_member")
    if not member:
        return

    st.caption(
        f"Savings {format_currency(member.get('savings_balance') or 0, settings.currency)} • "
        f"Welfare {format_currency(member.get('welfare_balance') or 0, settings.currency)}"
    )

    with st.form("savings_submit", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            savings = st.number_input("Savings amount", min_value=0.0, step=1000.0, value=0.0, key="savings_amt")
        with col2:
            welfare = st.number_input("Welfare amount", min_value=0.0, step=500.0, value=0.0, key="welfare_amt")
        ok = st.form_submit_button("Submit", use_container_width=True)

    if not ok:
        return

    try:
        svc.submit_savings(
            c, principal,
            group_id=group_id,
            member_id=str(member["id"]),
            savings_amount=float(savings),
            welfare_amount=float(welfare),
            submitted_by=principal.name or principal.subject_id,
            settings=settings,
        )
        st.success("Savings and welfare submitted successfully.")
    except (PermissionError, ValueError, LookupError) as e:
        st.error(str(e))
    except APIError as e:
        st.error("Submission failed.")
        st.code(apierror_message(e), language="text")
