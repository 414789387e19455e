# rbac.py
# Role-based access for staff (admin / field) and group members
# (chairman / secretary / finance / member).
#
# PERMISSIONS is the only place a capability is granted. Screens and
# workflows ask is_permitted()/require()/visible_routes(); they never test
# role strings themselves.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

logger = logging.getLogger("VSLA.RBAC")

# ============================================================
# Roles
# ============================================================
KIND_STAFF = "staff"
KIND_MEMBER = "member"

ROLE_ADMIN = "admin"
ROLE_FIELD_MONITOR = "field_monitor"
ROLE_FIELD_ATTENDANT = "field_attendant"

ROLE_CHAIRMAN = "chairman"
ROLE_SECRETARY = "secretary"
ROLE_FINANCE = "finance"
ROLE_MEMBER = "member"

STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_FIELD_MONITOR, ROLE_FIELD_ATTENDANT})
MEMBER_ROLES = frozenset({ROLE_CHAIRMAN, ROLE_SECRETARY, ROLE_FINANCE, ROLE_MEMBER})
VALID_ROLES = STAFF_ROLES | MEMBER_ROLES

# ============================================================
# Tiers (coarse UI gating)
# ============================================================
TIER_ADMIN = "admin"
TIER_FIELD = "field"
TIER_GROUP_LEADER = "group_leader"
TIER_REGULAR_MEMBER = "regular_member"

VALID_TIERS = frozenset({TIER_ADMIN, TIER_FIELD, TIER_GROUP_LEADER, TIER_REGULAR_MEMBER})
MEMBER_TIERS = frozenset({TIER_GROUP_LEADER, TIER_REGULAR_MEMBER})

_ROLE_TIERS: dict[str, str] = {
    ROLE_ADMIN: TIER_ADMIN,
    ROLE_FIELD_MONITOR: TIER_FIELD,
    ROLE_FIELD_ATTENDANT: TIER_FIELD,
    ROLE_CHAIRMAN: TIER_GROUP_LEADER,
    ROLE_SECRETARY: TIER_GROUP_LEADER,
    ROLE_FINANCE: TIER_GROUP_LEADER,
    ROLE_MEMBER: TIER_REGULAR_MEMBER,
}

# ============================================================
# Actions
# ============================================================
VIEW_GROUPS = "view-groups"
EDIT_GROUPS = "edit-groups"
VIEW_MEMBERS = "view-members"
EDIT_MEMBERS = "edit-members"
VIEW_TRANSACTIONS = "view-transactions"
SUBMIT_SAVINGS = "submit-savings"
SUBMIT_LOAN_PAYMENT = "submit-loan-payment"
SUBMIT_LOAN = "submit-loan"
VIEW_LOANS = "view-loans"
EDIT_LOANS = "edit-loans"
USE_LOAN_CALCULATOR = "use-loan-calculator"
VIEW_MEETINGS = "view-meetings"
SCHEDULE_MEETING = "schedule-meeting"
MANAGE_USERS = "manage-users"
VIEW_REPORTS = "view-reports"

ACTIONS = frozenset({
    VIEW_GROUPS,
    EDIT_GROUPS,
    VIEW_MEMBERS,
    EDIT_MEMBERS,
    VIEW_TRANSACTIONS,
    SUBMIT_SAVINGS,
    SUBMIT_LOAN_PAYMENT,
    SUBMIT_LOAN,
    VIEW_LOANS,
    EDIT_LOANS,
    USE_LOAN_CALCULATOR,
    VIEW_MEETINGS,
    SCHEDULE_MEETING,
    MANAGE_USERS,
    VIEW_REPORTS,
})

# ============================================================
# Canonical permissions by role
# ============================================================
_FIELD_ACTIONS = frozenset({
    VIEW_GROUPS,
    EDIT_GROUPS,
    VIEW_MEMBERS,
    EDIT_MEMBERS,
    SUBMIT_SAVINGS,
    SUBMIT_LOAN_PAYMENT,
    SUBMIT_LOAN,
})

_LEADER_ACTIONS = frozenset({
    VIEW_MEMBERS,
    EDIT_MEMBERS,
    SUBMIT_SAVINGS,
    SUBMIT_LOAN_PAYMENT,
    SUBMIT_LOAN,
    SCHEDULE_MEETING,
})

PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_ADMIN: ACTIONS,
    ROLE_FIELD_MONITOR: _FIELD_ACTIONS,
    ROLE_FIELD_ATTENDANT: _FIELD_ACTIONS,
    ROLE_CHAIRMAN: _LEADER_ACTIONS,
    ROLE_SECRETARY: _LEADER_ACTIONS,
    ROLE_FINANCE: _LEADER_ACTIONS,
    ROLE_MEMBER: frozenset({VIEW_MEMBERS}),
}


def _check_matrix() -> None:
    missing = VALID_ROLES - set(PERMISSIONS)
    extra = set(PERMISSIONS) - VALID_ROLES
    if missing or extra:
        raise RuntimeError(f"PERMISSIONS must cover exactly {sorted(VALID_ROLES)}; missing={sorted(missing)} extra={sorted(extra)}")
    for role, perms in PERMISSIONS.items():
        unknown = set(perms) - ACTIONS
        if unknown:
            raise RuntimeError(f"PERMISSIONS[{role!r}] grants unknown actions: {sorted(unknown)}")


_check_matrix()


# ============================================================
# Errors
# ============================================================
class Unauthenticated(Exception):
    """No usable session: none at all, or one without a valid role."""

    def __init__(self, reason: str = "no session"):
        self.reason = reason
        super().__init__(f"Unauthenticated: {reason}")


class UnknownAction(LookupError):
    def __init__(self, action):
        self.action = action
        super().__init__(f"Unknown action: {action!r}")


# ============================================================
# Sessions + principals
# ============================================================
@dataclass(frozen=True)
class StaffSession:
    user_id: str
    role: Optional[str]
    name: Optional[str] = None
    assigned_groups: tuple = ()


@dataclass(frozen=True)
class MemberSession:
    member_id: str
    group_id: Optional[str]
    group_role: Optional[str]
    name: Optional[str] = None


Session = Union[StaffSession, MemberSession, None]


@dataclass(frozen=True)
class Principal:
    kind: str
    role: str
    subject_id: str
    group_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def tier(self) -> str:
        return role_group(self.role)


def _clean_role(raw) -> str:
    return str(raw or "").strip().lower()


def classify_principal(session: Session) -> Principal:
    """
    Turns the caller's current session into a Principal.
    Must be called with the live session on every request; roles are
    never cached across calls.
    """
    if session is None:
        raise Unauthenticated("no session")

    if isinstance(session, StaffSession):
        role = _clean_role(session.role)
        if not role:
            raise Unauthenticated("staff session has no role")
        if role not in STAFF_ROLES:
            raise Unauthenticated(f"'{role}' is not a staff role")
        return Principal(kind=KIND_STAFF, role=role, subject_id=str(session.user_id), name=session.name)

    if isinstance(session, MemberSession):
        role = _clean_role(session.group_role)
        if not role:
            raise Unauthenticated("member session has no group role")
        if role not in MEMBER_ROLES:
            raise Unauthenticated(f"'{role}' is not a group role")
        return Principal(
            kind=KIND_MEMBER,
            role=role,
            subject_id=str(session.member_id),
            group_id=(str(session.group_id) if session.group_id is not None else None),
            name=session.name,
        )

    raise Unauthenticated(f"unrecognised session payload: {type(session).__name__}")


def _pick(d: dict, *keys):
    for k in keys:
        if d.get(k) not in (None, ""):
            return d.get(k)
    return None


def _full_name(d: dict) -> Optional[str]:
    first = str(_pick(d, "firstName", "first_name") or "").strip()
    last = str(_pick(d, "lastName", "last_name") or "").strip()
    return " ".join(x for x in (first, last) if x) or None


def session_from_payload(payload: Optional[dict]) -> Session:
    """
    Parses the backend's auth payload:
      {"userType": "staff",  "user":   {"id", "role", ...}}
      {"userType": "member", "member": {"id", "groupId", "groupRole", ...}}
    An empty payload means "not logged in" and returns None.
    """
    if not payload:
        return None
    if not isinstance(payload, dict):
        raise Unauthenticated("session payload must be a mapping")

    kind = _clean_role(_pick(payload, "userType", "user_type"))

    if kind == KIND_STAFF:
        user = payload.get("user")
        if not isinstance(user, dict) or _pick(user, "id", "userId", "user_id") is None:
            raise Unauthenticated("staff payload has no user")
        groups = _pick(user, "assignedGroups", "assigned_groups") or ()
        return StaffSession(
            user_id=str(_pick(user, "id", "userId", "user_id")),
            role=_pick(user, "role"),
            name=_full_name(user),
            assigned_groups=tuple(str(g) for g in groups),
        )

    if kind == KIND_MEMBER:
        member = payload.get("member")
        if not isinstance(member, dict) or _pick(member, "id", "memberId", "member_id") is None:
            raise Unauthenticated("member payload has no member")
        return MemberSession(
            member_id=str(_pick(member, "id", "memberId", "member_id")),
            group_id=_pick(member, "groupId", "group_id"),
            group_role=_pick(member, "groupRole", "group_role"),
            name=_full_name(member),
        )

    raise Unauthenticated(f"unknown userType {kind!r}")


# ============================================================
# Lookups
# ============================================================
def _role_of(subject: Union[str, Principal]) -> str:
    role = subject.role if isinstance(subject, Principal) else _clean_role(subject)
    if role not in VALID_ROLES:
        raise Unauthenticated(f"unknown role {role!r}")
    return role


def role_group(role: Union[str, Principal]) -> str:
    return _ROLE_TIERS[_role_of(role)]


def is_member_tier(tier: str) -> bool:
    return tier in MEMBER_TIERS


def is_permitted(role: Union[str, Principal], action: str) -> bool:
    if action not in ACTIONS:
        raise UnknownAction(action)
    return action in PERMISSIONS[_role_of(role)]


def require(role: Union[str, Principal], action: str) -> None:
    if not is_permitted(role, action):
        r = _role_of(role)
        logger.warning("Permission denied: %s for role %s", action, r)
        raise PermissionError(f"Permission denied: {action} for role '{r}'.")


# ============================================================
# Navigation
# ============================================================
@dataclass(frozen=True)
class Route:
    path: str
    label: str
    action: Optional[str] = None
    tiers: Optional[frozenset] = None

    def __post_init__(self):
        if self.action is not None and self.action not in ACTIONS:
            raise UnknownAction(self.action)
        if self.tiers is not None:
            object.__setattr__(self, "tiers", frozenset(self.tiers))
            bad = self.tiers - VALID_TIERS
            if bad:
                raise ValueError(f"Route {self.path}: unknown tiers {sorted(bad)}")


def visible_routes(role: Union[str, Principal], routes: Iterable[Route]) -> list[Route]:
    """
    Routes the role may see, in input order. A route is shown when its
    action (if any) is permitted and its tiers (if any) include the role's
    tier. A route with neither is public.
    """
    tier = role_group(role)
    out: list[Route] = []
    for route in routes:
        if route.action is not None and not is_permitted(role, route.action):
            continue
        if route.tiers is not None and tier not in route.tiers:
            continue
        out.append(route)
    return out


NAV_ROUTES: tuple = (
    Route("/", "Dashboard", tiers=frozenset({TIER_ADMIN})),
    Route("/field-dashboard", "Field Dashboard", tiers=frozenset({TIER_FIELD})),
    Route("/member-dashboard", "My Dashboard", tiers=MEMBER_TIERS),
    Route("/groups", "Groups", action=VIEW_GROUPS),
    Route("/members", "Members", action=VIEW_MEMBERS),
    Route("/transactions", "Transactions", action=VIEW_TRANSACTIONS),
    Route("/loans", "Loans", action=VIEW_LOANS),
    Route("/loan-calculator", "Loan Calculator", action=USE_LOAN_CALCULATOR),
    Route("/submit-savings", "Submit Savings", action=SUBMIT_SAVINGS),
    Route("/loan-payments", "Loan Payments", action=SUBMIT_LOAN_PAYMENT),
    Route("/loan-submission", "Loan Submission", action=SUBMIT_LOAN),
    Route("/meetings", "Meetings", action=VIEW_MEETINGS),
    Route("/user-management", "User Management", action=MANAGE_USERS),
    Route("/reports", "Reports", action=VIEW_REPORTS),
)
