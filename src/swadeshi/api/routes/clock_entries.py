"""Staff clock-in / clock-out.

POST /staff/clock-entries → 200 {success, data, action}

The staff row is locked for the duration of the punch, so a double-submitted
clock-in cannot open two sessions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from swadeshi.api.auth import CurrentUser
from swadeshi.api.errors import ApiError
from swadeshi.api.ids import UuidStr
from swadeshi.api.rate_limit import limit_per_user, standard_limiter
from swadeshi.api.tenancy import authorize_restaurant
from swadeshi.domain.time_clock import (
    STAFF_STATUS_ACTIVE,
    STAFF_STATUS_WORKING,
    merge_notes,
)
from swadeshi.infra.db import txn
from swadeshi.infra.repositories.time_clock_repository import (
    close_session,
    find_open_session,
    insert_clock_in,
    lock_staff,
    set_staff_status,
)
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"])

_rate_limited_user = limit_per_user(standard_limiter)


class ClockEntryRequest(BaseModel):
    staff_id: UuidStr | None = None
    restaurant_id: str | None = None
    action: str | None = None
    notes: str | None = None


def _clock_in(cur, *, staff_id: str, restaurant_id: str, notes: str | None) -> dict:
    if find_open_session(cur, staff_id=staff_id) is not None:
        raise ApiError(
            400,
            "Active session exists",
            message="You already have an active clock-in session",
        )
    record = insert_clock_in(cur, staff_id=staff_id, restaurant_id=restaurant_id, notes=notes)
    set_staff_status(cur, staff_id=staff_id, status=STAFF_STATUS_WORKING)
    return record


def _clock_out(cur, *, staff_id: str, notes: str | None) -> dict:
    session = find_open_session(cur, staff_id=staff_id)
    if session is None:
        raise ApiError(
            400,
            "No active session",
            message="No active clock-in session found to clock out from",
        )
    record = close_session(
        cur,
        session_id=session["id"],
        notes=merge_notes(session.get("notes"), notes),
    )
    if record is None:
        # Closed by auto clock-out between the read and the update
        raise ApiError(400, "No active session", message="Session was already closed")
    set_staff_status(cur, staff_id=staff_id, status=STAFF_STATUS_ACTIVE)
    return record


@router.post("/clock-entries")
def record_clock_entry(
    body: ClockEntryRequest,
    user: CurrentUser = Depends(_rate_limited_user),
) -> dict:
    """Record a clock-in or clock-out for a staff member of the caller's restaurant."""
    ctx = authorize_restaurant(user, body.restaurant_id)

    if body.action not in ("in", "out"):
        raise ApiError(400, "Invalid action", message="Action must be 'in' or 'out'")
    action = body.action
    if not body.staff_id:
        raise ApiError(400, "Missing required fields: staff_id")

    try:
        with txn() as cur:
            staff = lock_staff(cur, restaurant_id=ctx.restaurant_id, staff_id=body.staff_id)
            if staff is None:
                raise ApiError(404, "Staff member not found")

            if action == "in":
                record = _clock_in(
                    cur,
                    staff_id=body.staff_id,
                    restaurant_id=ctx.restaurant_id,
                    notes=body.notes,
                )
            else:
                record = _clock_out(cur, staff_id=body.staff_id, notes=body.notes)
    except ApiError:
        raise
    except Exception:
        logger.exception(
            "clock entry failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    restaurant_id=ctx.restaurant_id,
                    action=action,
                )
            },
        )
        raise ApiError(500, "Failed to record clock entry")

    logger.info(
        "clock entry recorded",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                restaurant_id=ctx.restaurant_id,
                staff_id=body.staff_id,
                action=action,
            )
        },
    )

    return {"success": True, "data": [record], "action": action}
