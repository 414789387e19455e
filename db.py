# db.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import streamlit as st
from supabase import create_client

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# -------------------------
# TIME HELPERS
# -------------------------
def now_iso() -> str:
    """UTC ISO string with Z suffix."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


# -------------------------
# SECRETS
# -------------------------
def get_secret(key: str):
    # Railway / Docker (env vars)
    if os.getenv(key):
        return os.getenv(key)

    # Streamlit Cloud (secrets)
    try:
        if key in st.secrets:
            return st.secrets[key]
    except Exception:
        # no secrets.toml outside Streamlit
        return None

    return None


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("true", "1", "yes", "on"):
        return True
    if s in ("false", "0", "no", "off"):
        return False
    return default


def _as_decimal(value, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return d if d.is_finite() and d >= 0 else default


# -------------------------
# SETTINGS
# -------------------------
@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    schema: str = "public"
    brand: str = "VSLA"
    currency: str = "UGX"
    loan_fallback_rate_percent: Decimal = Decimal("10")
    auto_approve_loans: bool = True
    book_approved_loans: bool = False
    log_level: str = "INFO"

    @property
    def log_level_int(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)


def load_settings() -> Settings:
    """
    Reads settings from env vars, then Streamlit secrets.
    Values that do not parse fall back to the defaults.
    """
    defaults = Settings()
    return Settings(
        supabase_url=get_secret("SUPABASE_URL"),
        supabase_anon_key=get_secret("SUPABASE_ANON_KEY"),
        schema=str(get_secret("VSLA_SCHEMA") or defaults.schema),
        brand=str(get_secret("VSLA_BRAND") or defaults.brand),
        currency=str(get_secret("VSLA_CURRENCY") or defaults.currency).upper(),
        loan_fallback_rate_percent=_as_decimal(
            get_secret("VSLA_LOAN_FALLBACK_RATE"), defaults.loan_fallback_rate_percent
        ),
        auto_approve_loans=_as_bool(get_secret("VSLA_AUTO_APPROVE_LOANS"), defaults.auto_approve_loans),
        book_approved_loans=_as_bool(get_secret("VSLA_BOOK_APPROVED_LOANS"), defaults.book_approved_loans),
        log_level=str(get_secret("VSLA_LOG_LEVEL") or defaults.log_level),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level_int, format=LOG_FORMAT)
    # supabase-py talks through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# -------------------------
# SUPABASE CLIENTS
# -------------------------
def _extract_access_token(session: Any) -> Optional[str]:
    """
    Pulls an access token from either session shape:
    - supabase-py session object: session.access_token
    - dict-like session: session["access_token"]
    """
    if session is None:
        return None
    token = getattr(session, "access_token", None)
    if token:
        return token
    if isinstance(session, dict):
        return session.get("access_token")
    return None


def public_client(settings: Settings):
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise RuntimeError("Missing SUPABASE_URL / SUPABASE_ANON_KEY.")
    return create_client(settings.supabase_url, settings.supabase_anon_key)


def authed_client(settings: Settings, session: Any):
    """
    Supabase client with the user's JWT attached to PostgREST,
    so row level security applies to every query.
    """
    c = public_client(settings)
    token = _extract_access_token(session)
    if token:
        c.postgrest.auth(token)
    return c


# -------------------------
# QUERY HELPERS
# -------------------------
def fetch_one(query_builder) -> Optional[Dict[str, Any]]:
    """
    Execute a Supabase query builder and return the first row (dict) or None.
    """
    resp = query_builder.limit(1).execute()
    data = getattr(resp, "data", None) or []
    return data[0] if data else None


def insert_one(c, table: str, payload: dict) -> Dict[str, Any]:
    res = c.table(table).insert(payload).execute()
    row = (getattr(res, "data", None) or [None])[0]
    if not row:
        raise RuntimeError(f"Insert into {table} returned no row.")
    return row
