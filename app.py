# app.py
import logging

import pandas as pd
import streamlit as st

from calculations import group_financials
from dashboard_panel import render_group_dashboard, render_meetings
from db import authed_client, configure_logging, fetch_one, load_settings, public_client
from loans_ui import render_loan_calculator, render_loan_payments, render_loan_submission
from member_panels import render_members, render_submit_savings
from rbac import (
    MANAGE_USERS,
    NAV_ROUTES,
    VIEW_GROUPS,
    VIEW_LOANS,
    VIEW_REPORTS,
    VIEW_TRANSACTIONS,
    Unauthenticated,
    classify_principal,
    require,
    session_from_payload,
    visible_routes,
)

APP_VERSION = "v1.0"

settings = load_settings()
configure_logging(settings)
logger = logging.getLogger("VSLA.App")

st.set_page_config(page_title=f"{settings.brand} • VSLA", layout="wide", page_icon="🏦")

st.markdown(
    """
<style>
.card{
  border: 1px solid rgba(128,128,128,0.25);
  border-radius: 16px;
  padding: 14px;
  height: 100%;
}
.kpi-title{ opacity: .7; font-weight: 800; font-size: .82rem; }
.kpi-value{ font-weight: 900; font-size: 1.35rem; margin-top: 6px; }
.kpi-sub{ opacity: .7; font-size: .78rem; margin-top: 5px; }
</style>
""",
    unsafe_allow_html=True,
)


# -------------------------
# SESSION -> PRINCIPAL
# -------------------------
def auth_payload(c, user_id: str) -> dict | None:
    """
    Builds the staff/member auth payload from profiles (+ members for
    group members). Re-read on every run so role changes apply at once.
    """
    profile = fetch_one(c.table("profiles").select("id,role,approved,member_id,first_name,last_name").eq("id", user_id))
    if not profile or not bool(profile.get("approved", False)):
        return None

    if profile.get("member_id"):
        member = fetch_one(
            c.table("members")
            .select("id,group_id,group_role,first_name,last_name,is_active")
            .eq("id", str(profile["member_id"]))
        )
        if not member or member.get("is_active") is False:
            return None
        group = fetch_one(c.table("groups").select("id,is_active").eq("id", str(member.get("group_id"))))
        if not group or group.get("is_active") is False:
            st.error("Access denied. Your group has been deactivated. Please contact your administrator.")
            return None
        return {"userType": "member", "member": member}

    return {"userType": "staff", "user": profile}


# -------------------------
# SIMPLE TABLE PAGES
# -------------------------
def _render_table(c, principal, action: str, title: str, table: str, order_col: str):
    require(principal, action)
    st.subheader(title)
    rows = c.table(table).select("*").order(order_col, desc=True).limit(2000).execute().data or []
    df = pd.DataFrame(rows)
    if df.empty:
        st.info("Nothing to show yet.")
    else:
        st.dataframe(df.drop(columns=["pin"], errors="ignore"), use_container_width=True, hide_index=True)


def render_reports(c, principal, settings):
    require(principal, VIEW_REPORTS)
    st.subheader("Reports")
    groups = c.table("groups").select("*").limit(2000).execute().data or []
    out = []
    for g in groups:
        members = c.table("members").select("*").eq("group_id", str(g["id"])).limit(5000).execute().data or []
        loans = c.table("loans").select("*").eq("group_id", str(g["id"])).limit(5000).execute().data or []
        out.append({"group": g.get("name"), "location": g.get("location"), **group_financials(g, members, loans).to_dict()})
    df = pd.DataFrame(out)
    if df.empty:
        st.info("No groups yet.")
        return
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.download_button("Download CSV", df.to_csv(index=False), file_name="group_report.csv", mime="text/csv")


PAGES = {
    "/": render_group_dashboard,
    "/field-dashboard": render_group_dashboard,
    "/member-dashboard": render_group_dashboard,
    "/groups": lambda c, p, s: _render_table(c, p, VIEW_GROUPS, "Groups", "groups", "created_at"),
    "/members": render_members,
    "/transactions": lambda c, p, s: _render_table(c, p, VIEW_TRANSACTIONS, "Transactions", "transactions", "transaction_date"),
    "/loans": lambda c, p, s: _render_table(c, p, VIEW_LOANS, "Loans", "loans", "application_date"),
    "/loan-calculator": lambda c, p, s: render_loan_calculator(p, s),
    "/submit-savings": render_submit_savings,
    "/loan-payments": render_loan_payments,
    "/loan-submission": render_loan_submission,
    "/meetings": render_meetings,
    "/user-management": lambda c, p, s: _render_table(c, p, MANAGE_USERS, "User Management", "profiles", "created_at"),
    "/reports": render_reports,
}


# -------------------------
# AUTH UI
# -------------------------
try:
    sb_public = public_client(settings)
except RuntimeError as e:
    st.error(str(e))
    st.stop()

if "session" not in st.session_state:
    st.session_state.session = None

with st.sidebar:
    st.markdown(f"### 🏦 {settings.brand}")

    if st.session_state.session is None:
        email = st.text_input("Email", key="auth_email")
        password = st.text_input("Password / PIN", type="password", key="auth_pass")
        if st.button("Login", use_container_width=True, key="auth_login_btn"):
            try:
                res = sb_public.auth.sign_in_with_password({"email": email, "password": password})
                st.session_state.session = res.session
                st.rerun()
            except Exception as e:
                logger.info("Login failed for %s: %s", email, e)
                st.error("Invalid credentials")
    else:
        if st.button("Logout", use_container_width=True, key="auth_logout_btn"):
            sb_public.auth.sign_out()
            st.session_state.session = None
            st.rerun()

if st.session_state.session is None:
    st.info("Please login from the sidebar.")
    st.stop()


# -------------------------
# AFTER LOGIN
# -------------------------
client = authed_client(settings, st.session_state.session)
user_id = str(st.session_state.session.user.id)

try:
    principal = classify_principal(session_from_payload(auth_payload(client, user_id)))
except Unauthenticated as e:
    logger.info("Rejected session for %s: %s", user_id, e.reason)
    st.warning("Your account is not active or has no role yet. Ask an administrator.")
    st.stop()

routes = visible_routes(principal, NAV_ROUTES)

with st.sidebar:
    st.caption(f"{principal.name or user_id} • {principal.role.replace('_', ' ')} • {APP_VERSION}")
    labels = [r.label for r in routes]
    pick = st.radio("Navigate", labels, key="nav_pick")

route = routes[labels.index(pick)]
PAGES[route.path](client, principal, settings)
