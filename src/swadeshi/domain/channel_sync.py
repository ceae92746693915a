"""Booking channel sync (simulated push of rates and availability).

No outbound OTA/GDS API is called. Each channel type reports how many
records a real push would have sent so the dashboard can show sync health.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

SyncType = Literal["rates", "availability", "all"]


class ChannelSyncError(Exception):
    """Raised when a single channel cannot be synced."""

    pass


@dataclass
class ChannelSyncResult:
    channel_id: str
    channel_name: str
    status: Literal["success", "error"] = "success"
    synced_records: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "channelName": self.channel_name,
            "status": self.status,
            "syncedRecords": self.synced_records,
            "errors": list(self.errors),
        }


def synced_record_count(channel_type: str, room_count: int, rate_plan_count: int) -> int:
    """Records pushed for one channel.

    ota: every room under every rate plan. direct: one per room.
    gds: rooms plus rate-formatted duplicates (1.5x, floored).

    Raises:
        ChannelSyncError: For an unknown channel type.
    """
    if channel_type == "ota":
        return room_count * rate_plan_count
    if channel_type == "direct":
        return room_count
    if channel_type == "gds":
        return math.floor(room_count * 1.5)
    raise ChannelSyncError(f"Unknown channel type: {channel_type}")


def success_settings(settings: dict[str, Any] | None, synced: int, sync_type: SyncType) -> dict[str, Any]:
    """channel_settings after a successful sync (existing keys preserved)."""
    merged = dict(settings or {})
    merged.pop("lastSyncError", None)
    merged.update(
        {
            "lastSyncStatus": "success",
            "syncedRecords": synced,
            "lastSyncType": sync_type,
        }
    )
    return merged


def error_settings(settings: dict[str, Any] | None, error: str, sync_type: SyncType) -> dict[str, Any]:
    """channel_settings after a failed sync (existing keys preserved)."""
    merged = dict(settings or {})
    merged.update(
        {
            "lastSyncStatus": "error",
            "lastSyncError": error,
            "lastSyncType": sync_type,
        }
    )
    return merged
