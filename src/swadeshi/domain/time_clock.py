"""Staff time clock rules: note merging and auto clock-out."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Literal

MAX_SHIFT_HOURS = 16
DEFAULT_AUTO_CLOCK_OUT_MINUTES = 120

STAFF_STATUS_WORKING = "working"
STAFF_STATUS_ACTIVE = "active"


def merge_notes(existing: str | None, new: str | None) -> str | None:
    """Append clock-out notes to the clock-in notes."""
    if not new:
        return existing
    return f"{existing or ''} {new}".strip()


@dataclass(frozen=True)
class AutoClockOut:
    """Decision to close an open session."""

    clock_out_at: datetime
    reason: Literal["max_duration", "shift_end"]
    note: str


def shift_end_for(clock_in: datetime, end_time: time) -> datetime:
    """Shift end on the clock-in date; overnight shifts roll to the next day."""
    shift_end = datetime.combine(clock_in.date(), end_time, tzinfo=clock_in.tzinfo)
    if shift_end < clock_in:
        shift_end += timedelta(days=1)
    return shift_end


def decide_auto_clock_out(
    clock_in: datetime,
    now: datetime,
    shift_end_time: time | None = None,
    auto_clock_out_minutes: int | None = None,
) -> AutoClockOut | None:
    """Return when and why an open session should be closed, or None.

    The 16 hour cap wins over any shift rule and closes the session at
    exactly clock_in + 16h.
    """
    if now - clock_in >= timedelta(hours=MAX_SHIFT_HOURS):
        return AutoClockOut(
            clock_out_at=clock_in + timedelta(hours=MAX_SHIFT_HOURS),
            reason="max_duration",
            note=f"System auto clock-out: Exceeded {MAX_SHIFT_HOURS}h max shift duration",
        )

    if shift_end_time is None:
        return None

    minutes = auto_clock_out_minutes or DEFAULT_AUTO_CLOCK_OUT_MINUTES
    cutoff = shift_end_for(clock_in, shift_end_time) + timedelta(minutes=minutes)
    if now >= cutoff:
        return AutoClockOut(
            clock_out_at=cutoff,
            reason="shift_end",
            note=f"System auto clock-out: {minutes} min after shift end",
        )
    return None
