# dashboard_panel.py
# Group dashboard: financial KPIs (calculations.group_financials) and
# upcoming meetings with countdown urgency.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pandas as pd
import streamlit as st
from postgrest.exceptions import APIError

from calculations import group_financials, validate_member_shares
from currency import format_currency
from db import Settings
from loans_ui import apierror_message, pick_group
from meetings import SCHEDULED, schedule_meeting, should_alert, time_remaining, urgency_level
from rbac import (
    SCHEDULE_MEETING,
    TIER_ADMIN,
    TIER_FIELD,
    VIEW_MEETINGS,
    Principal,
    is_permitted,
    require,
)

_URGENCY_BADGE = {
    "happening-now": "NOW",
    "urgent": "< 1h",
    "soon": "< 24h",
    "scheduled": "",
}


def kpi(title, value, sub=""):
    st.markdown(
        f"""
<div class="card">
  <div class="kpi-title">{title}</div>
  <div class="kpi-value">{value}</div>
  <div class="kpi-sub">{sub}</div>
</div>
""",
        unsafe_allow_html=True,
    )


def _parse_ts(x) -> datetime | None:
    try:
        dt = datetime.fromisoformat(str(x).replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def render_group_dashboard(c, principal: Principal, settings: Settings):
    titles = {TIER_ADMIN: "Dashboard", TIER_FIELD: "Field Dashboard"}
    st.subheader(titles.get(principal.tier, "My Group"))

    group_id = pick_group(c, principal, key="dash_group")
    if not group_id:
        return

    group = (c.table("groups").select("*").eq("id", str(group_id)).limit(1).execute().data or [{}])[0]
    members = c.table("members").select("*").eq("group_id", str(group_id)).limit(5000).execute().data or []
    loans = c.table("loans").select("*").eq("group_id", str(group_id)).limit(5000).execute().data or []

    fin = group_financials(group, members, loans)
    cur = settings.currency

    k = st.columns(4)
    with k[0]: kpi("Members", str(fin.total_members), f"Shares {fin.total_shares:,}")
    with k[1]: kpi("Savings", format_currency(fin.total_savings, cur), f"Welfare {format_currency(fin.total_welfare, cur)}")
    with k[2]: kpi("Cash in Box", format_currency(fin.total_cash_in_box, cur), f"Available for loans {format_currency(fin.available_loan_funds, cur)}")
    with k[3]: kpi("Loans Outstanding", format_currency(fin.total_loans_outstanding, cur), f"Interest earned {format_currency(fin.total_interest_earned, cur)}")

    if principal.tier in (TIER_ADMIN, TIER_FIELD):
        problems = validate_member_shares(group, members)
        if problems:
            with st.expander(f"Share mismatches ({len(problems)})"):
                st.code("\n".join(problems), language="text")

    st.divider()
    st.markdown("### Upcoming meetings")
    rows = (
        c.table("meetings")
        .select("id,date,location,agenda,status")
        .eq("group_id", str(group_id))
        .eq("status", SCHEDULED)
        .order("date", desc=False)
        .limit(50)
        .execute().data
        or []
    )
    now = datetime.now(timezone.utc)
    upcoming = []
    for r in rows:
        at = _parse_ts(r.get("date"))
        if at is None or at <= now:
            continue
        left = time_remaining(at, now)
        upcoming.append({
            "date": at.strftime("%Y-%m-%d %H:%M"),
            "location": r.get("location") or "",
            "agenda": r.get("agenda") or "",
            "in": f"{left['days']}d {left['hours']}h {left['minutes']}m",
            "alert": _URGENCY_BADGE[urgency_level(at, now)],
        })
        if should_alert(at, now):
            st.warning(f"Meeting on {at:%Y-%m-%d %H:%M} at {r.get('location') or 'TBA'}")

    if upcoming:
        st.dataframe(pd.DataFrame(upcoming), use_container_width=True, hide_index=True)
    else:
        st.info("No upcoming meetings.")

    if is_permitted(principal, SCHEDULE_MEETING):
        render_schedule_meeting(c, principal, settings, group_id)


def render_schedule_meeting(c, principal: Principal, settings: Settings, group_id: str):
    st.markdown("### Schedule a meeting")
    with st.form(f"meeting_form_{group_id}", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            day = st.date_input("Date", value=date.today() + timedelta(days=7), key=f"mt_day_{group_id}")
        with col2:
            at = st.time_input("Time", value=time(10, 0), key=f"mt_time_{group_id}")
        location = st.text_input("Location", key=f"mt_loc_{group_id}")
        agenda = st.text_area("Agenda", key=f"mt_agenda_{group_id}")
        ok = st.form_submit_button("Schedule", use_container_width=True)

    if not ok:
        return
    try:
        schedule_meeting(
            c, principal, group_id,
            meeting_at=datetime.combine(day, at, tzinfo=timezone.utc),
            location=location,
            agenda=agenda,
            settings=settings,
        )
        st.success("Meeting scheduled.")
    except (PermissionError, ValueError) as e:
        st.error(str(e))
    except APIError as e:
        st.error("Scheduling failed.")
        st.code(apierror_message(e), language="text")


def render_meetings(c, principal: Principal, settings: Settings):
    require(principal, VIEW_MEETINGS)

    st.subheader("Meetings")
    rows = (
        c.table("meetings")
        .select("id,group_id,date,location,agenda,status")
        .order("date", desc=True)
        .limit(1000)
        .execute().data
        or []
    )
    df = pd.DataFrame(rows)
    if df.empty:
        st.info("No meetings recorded.")
    else:
        st.dataframe(df, use_container_width=True, hide_index=True)

    group_id = pick_group(c, principal, key="meetings_group")
    if group_id and is_permitted(principal, SCHEDULE_MEETING):
        render_schedule_meeting(c, principal, settings, group_id)
