"""Booking channel sync.

POST /channels/sync → 200 {success, message, results, syncType, timestamp}

Each channel is synced and its outcome stored in its own transaction, so one
failing channel never rolls back or blocks the others.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from swadeshi.api.auth import CurrentUser, get_current_user
from swadeshi.api.errors import ApiError
from swadeshi.api.ids import UuidStr
from swadeshi.api.tenancy import authorize_restaurant
from swadeshi.domain.channel_sync import (
    ChannelSyncError,
    ChannelSyncResult,
    SyncType,
    error_settings,
    success_settings,
    synced_record_count,
)
from swadeshi.infra.db import txn
from swadeshi.infra.repositories.channels_repository import (
    count_active_rate_plans,
    count_rooms,
    list_active_channels,
    update_channel_sync,
)
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: UuidStr | None = Field(None, alias="channelId")
    restaurant_id: str | None = Field(None, alias="restaurantId")
    sync_type: SyncType = Field("all", alias="syncType")
    bulk_sync: bool = Field(False, alias="bulkSync")


def _sync_channel(
    channel: dict[str, Any],
    *,
    room_count: int,
    rate_plan_count: int,
    sync_type: SyncType,
) -> ChannelSyncResult:
    result = ChannelSyncResult(channel_id=channel["id"], channel_name=channel["channel_name"])
    try:
        result.synced_records = synced_record_count(channel["channel_type"], room_count, rate_plan_count)
        with txn() as cur:
            update_channel_sync(
                cur,
                channel_id=channel["id"],
                channel_settings=success_settings(
                    channel["channel_settings"], result.synced_records, sync_type
                ),
                last_sync=datetime.now(timezone.utc),
            )
        return result
    except Exception as e:
        result.status = "error"
        result.synced_records = 0
        result.errors.append(str(e) if isinstance(e, ChannelSyncError) else "Failed to store sync result")
        logger.warning(
            "channel sync failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    channel_id=channel["id"],
                    channel_type=channel["channel_type"],
                    error_type=type(e).__name__,
                )
            },
        )

    try:
        with txn() as cur:
            update_channel_sync(
                cur,
                channel_id=channel["id"],
                channel_settings=error_settings(channel["channel_settings"], result.errors[-1], sync_type),
            )
    except Exception:
        logger.exception(
            "could not store channel sync error",
            extra={"extra_fields": safe_log_context(channel_id=channel["id"])},
        )
    return result


@router.post("/sync")
def sync_channels(
    body: SyncRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Push rates and/or availability to the restaurant's active booking channels."""
    ctx = authorize_restaurant(user, body.restaurant_id)
    single_channel = body.channel_id if body.channel_id and not body.bulk_sync else None

    try:
        with txn() as cur:
            channels = list_active_channels(cur, restaurant_id=ctx.restaurant_id, channel_id=single_channel)
            room_count = count_rooms(cur, restaurant_id=ctx.restaurant_id)
            rate_plan_count = count_active_rate_plans(cur, restaurant_id=ctx.restaurant_id)
    except Exception:
        logger.exception(
            "channel sync lookup failed",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        raise ApiError(500, "Channel sync failed")

    if single_channel and not channels:
        raise ApiError(404, "Channel not found")

    logger.info(
        "channel sync started",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                restaurant_id=ctx.restaurant_id,
                channels=len(channels),
                sync_type=body.sync_type,
            )
        },
    )

    results = [
        _sync_channel(
            channel,
            room_count=room_count,
            rate_plan_count=rate_plan_count,
            sync_type=body.sync_type,
        ).to_dict()
        for channel in channels
    ]

    return {
        "success": True,
        "message": f"Synchronized {len(channels)} channels",
        "results": results,
        "syncType": body.sync_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
