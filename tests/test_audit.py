from __future__ import annotations

import json
import logging

from audit import audit


def test_audit_writes_row(client) -> None:
    assert audit(client, "loan_submitted", details={"amount": 100}, actor_user_id=42) is True

    (row,) = client.rows("audit_log")
    assert row["action"] == "loan_submitted"
    assert row["status"] == "ok"
    assert row["actor_user_id"] == "42"
    assert json.loads(row["details"]) == {"amount": 100}
    assert row["created_at"].endswith("Z")


def test_audit_without_actor(client) -> None:
    audit(client, "login", status="failed")
    (row,) = client.rows("audit_log")
    assert "actor_user_id" not in row
    assert json.loads(row["details"]) == {}


def test_audit_failure_is_reported_not_raised(client, caplog) -> None:
    client.failing_tables.add("audit_log")
    with caplog.at_level(logging.WARNING, logger="VSLA.Audit"):
        assert audit(client, "loan_submitted") is False
    assert "Audit write failed" in caplog.text
