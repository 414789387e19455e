# audit.py
from __future__ import annotations

import json
import logging
from typing import Any

from db import now_iso

logger = logging.getLogger("VSLA.Audit")

AUDIT_TABLE = "audit_log"


def audit(
    c,
    action: str,
    status: str = "ok",
    details: dict[str, Any] | None = None,
    actor_user_id: str | None = None,
    schema: str = "public",
) -> bool:
    """
    Writes one audit_log row: created_at, action, status, details (JSON),
    actor_user_id.

    Never breaks the calling workflow: a failed write is logged and
    reported as False.
    """
    payload: dict[str, Any] = {
        "created_at": now_iso(),
        "action": action,
        "status": status,
        "details": json.dumps(details or {}, default=str),
    }
    if actor_user_id is not None:
        payload["actor_user_id"] = str(actor_user_id)

    try:
        c.schema(schema).table(AUDIT_TABLE).insert(payload).execute()
    except Exception as e:
        logger.warning("Audit write failed for %s: %s", action, e)
        return False
    return True
