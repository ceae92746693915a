"""Worker task: close forgotten clock-in sessions.

POST /tasks/staff/auto-clock-out (scheduler, task auth required)

Sessions open for 16h or more are closed at clock_in + 16h. Sessions tied
to a shift are closed once auto_clock_out_minutes have passed since the
shift end. Each session is closed in its own transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from swadeshi.api.errors import ApiError
from swadeshi.api.task_auth import require_task_auth
from swadeshi.domain.time_clock import STAFF_STATUS_ACTIVE, decide_auto_clock_out
from swadeshi.infra.db import txn
from swadeshi.infra.repositories.time_clock_repository import (
    close_session,
    list_open_sessions,
    set_staff_status,
)
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks/staff", tags=["tasks"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def run_auto_clock_out(now: datetime) -> dict[str, Any]:
    """Close every open session that crossed its limit. Returns counters."""
    results: dict[str, Any] = {
        "checkedSessions": 0,
        "autoClosedByShift": 0,
        "autoClosedByMaxDuration": 0,
        "errors": [],
    }

    with txn() as cur:
        sessions = list_open_sessions(cur)
    results["checkedSessions"] = len(sessions)

    for session in sessions:
        clock_in = session["clock_in"]
        if clock_in.tzinfo is None:
            clock_in = clock_in.replace(tzinfo=timezone.utc)

        decision = decide_auto_clock_out(
            clock_in,
            now,
            shift_end_time=session["shift_end_time"],
            auto_clock_out_minutes=session["auto_clock_out_minutes"],
        )
        if decision is None:
            continue

        try:
            with txn() as cur:
                closed = close_session(
                    cur,
                    session_id=session["id"],
                    notes=decision.note,
                    clock_out_at=decision.clock_out_at,
                )
                if closed is not None:
                    set_staff_status(cur, staff_id=session["staff_id"], status=STAFF_STATUS_ACTIVE)
        except Exception as e:
            results["errors"].append(f"Failed to close session {session['id']}: {type(e).__name__}")
            continue

        if closed is None:
            # Staff clocked out manually in the meantime
            continue
        if decision.reason == "max_duration":
            results["autoClosedByMaxDuration"] += 1
        else:
            results["autoClosedByShift"] += 1

    return results


@router.post("/auto-clock-out", dependencies=[Depends(require_task_auth)])
def auto_clock_out() -> dict:
    """Scheduled sweep of open time clock sessions."""
    try:
        results = run_auto_clock_out(_now())
    except Exception:
        logger.exception(
            "auto clock-out sweep failed",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        raise ApiError(500, "Auto clock-out failed")

    logger.info(
        "auto clock-out sweep finished",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                checked=results["checkedSessions"],
                closed_by_shift=results["autoClosedByShift"],
                closed_by_max_duration=results["autoClosedByMaxDuration"],
                errors=len(results["errors"]),
            )
        },
    )
    return {"success": True, **results}
