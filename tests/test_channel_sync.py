"""Tests for POST /channels/sync and the channel sync rules."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from swadeshi.api.auth import get_current_user
from swadeshi.api.factory import create_app
from swadeshi.domain.channel_sync import (
    ChannelSyncError,
    error_settings,
    success_settings,
    synced_record_count,
)

from helpers import OTHER_RESTAURANT_ID, RESTAURANT_ID, _make_user, _mock_txn

URL = "/channels/sync"
MODULE = "swadeshi.api.routes.channel_sync"
DIRECT_ID = "66666666-6666-6666-6666-666666666666"
MISSING_CHANNEL_ID = "66666666-0000-0000-0000-000000000000"

CHANNELS = [
    {"id": "ch-ota", "channel_name": "Booking", "channel_type": "ota", "channel_settings": {"hotelId": "H1"}},
    {"id": DIRECT_ID, "channel_name": "Website", "channel_type": "direct", "channel_settings": {}},
    {"id": "ch-gds", "channel_name": "Amadeus", "channel_type": "gds", "channel_settings": {}},
]


class TestSyncedRecordCount:
    @pytest.mark.parametrize(
        "channel_type,expected",
        [("ota", 15), ("direct", 5), ("gds", 7)],
    )
    def test_counts(self, channel_type, expected):
        assert synced_record_count(channel_type, 5, 3) == expected

    def test_unknown_type(self):
        with pytest.raises(ChannelSyncError, match="Unknown channel type: fax"):
            synced_record_count("fax", 5, 3)

    def test_settings_merge(self):
        ok = success_settings({"hotelId": "H1", "lastSyncError": "boom"}, 12, "rates")
        assert ok == {"hotelId": "H1", "lastSyncStatus": "success", "syncedRecords": 12, "lastSyncType": "rates"}

        failed = error_settings(None, "boom", "all")
        assert failed == {"lastSyncStatus": "error", "lastSyncError": "boom", "lastSyncType": "all"}


@pytest.fixture
def client():
    app = create_app(role="public")
    app.dependency_overrides[get_current_user] = lambda: _make_user()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def repo():
    fake_txn, _ = _mock_txn()
    with patch(f"{MODULE}.txn", fake_txn), patch(
        f"{MODULE}.list_active_channels", return_value=list(CHANNELS)
    ) as list_mock, patch(f"{MODULE}.count_rooms", return_value=5), patch(
        f"{MODULE}.count_active_rate_plans", return_value=3
    ), patch(f"{MODULE}.update_channel_sync") as update_mock:
        yield {"list_active_channels": list_mock, "update_channel_sync": update_mock}


class TestSyncEndpoint:
    def test_bulk_sync(self, client, repo):
        response = client.post(URL, json={"restaurantId": RESTAURANT_ID, "syncType": "rates", "bulkSync": True})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Synchronized 3 channels"
        assert data["syncType"] == "rates"
        assert data["timestamp"]
        assert [r["syncedRecords"] for r in data["results"]] == [15, 5, 7]
        assert all(r["status"] == "success" and r["errors"] == [] for r in data["results"])

        assert repo["list_active_channels"].call_args.kwargs["channel_id"] is None
        first = repo["update_channel_sync"].call_args_list[0].kwargs
        assert first["channel_id"] == "ch-ota"
        assert first["channel_settings"]["hotelId"] == "H1"
        assert first["channel_settings"]["lastSyncStatus"] == "success"
        assert first["last_sync"] is not None

    def test_single_channel(self, client, repo):
        repo["list_active_channels"].return_value = [CHANNELS[1]]

        response = client.post(URL, json={"restaurantId": RESTAURANT_ID, "channelId": DIRECT_ID})

        assert response.status_code == 200
        assert response.json()["syncType"] == "all"
        assert repo["list_active_channels"].call_args.kwargs == {
            "restaurant_id": RESTAURANT_ID,
            "channel_id": DIRECT_ID,
        }

    def test_bulk_sync_ignores_channel_id(self, client, repo):
        client.post(URL, json={"restaurantId": RESTAURANT_ID, "channelId": DIRECT_ID, "bulkSync": True})
        assert repo["list_active_channels"].call_args.kwargs["channel_id"] is None

    def test_single_channel_not_found(self, client, repo):
        repo["list_active_channels"].return_value = []
        response = client.post(URL, json={"restaurantId": RESTAURANT_ID, "channelId": MISSING_CHANNEL_ID})
        assert response.status_code == 404
        assert response.json() == {"error": "Channel not found"}

    def test_malformed_channel_id_is_400(self, client, repo):
        response = client.post(URL, json={"restaurantId": RESTAURANT_ID, "channelId": "booking-com"})
        assert response.status_code == 400
        assert "channelId" in response.json()["details"]
        repo["list_active_channels"].assert_not_called()

    def test_unknown_type_reported_per_channel(self, client, repo):
        repo["list_active_channels"].return_value = [
            CHANNELS[0],
            {"id": "ch-x", "channel_name": "Fax", "channel_type": "fax", "channel_settings": {}},
        ]

        data = client.post(URL, json={"restaurantId": RESTAURANT_ID}).json()

        assert data["success"] is True
        ok, failed = data["results"]
        assert ok["status"] == "success"
        assert failed == {
            "channelId": "ch-x",
            "channelName": "Fax",
            "status": "error",
            "syncedRecords": 0,
            "errors": ["Unknown channel type: fax"],
        }
        stored = repo["update_channel_sync"].call_args_list[-1].kwargs
        assert stored["channel_settings"]["lastSyncStatus"] == "error"
        assert stored.get("last_sync") is None

    def test_store_failure_isolated(self, client, repo):
        def update(cur, *, channel_id, channel_settings, last_sync=None):
            if channel_id == DIRECT_ID and last_sync is not None:
                raise RuntimeError("deadlock")

        repo["update_channel_sync"].side_effect = update

        data = client.post(URL, json={"restaurantId": RESTAURANT_ID}).json()

        statuses = {r["channelId"]: r["status"] for r in data["results"]}
        assert statuses == {"ch-ota": "success", DIRECT_ID: "error", "ch-gds": "success"}
        direct = next(r for r in data["results"] if r["channelId"] == DIRECT_ID)
        assert direct["errors"] == ["Failed to store sync result"]

    def test_invalid_sync_type(self, client, repo):
        response = client.post(URL, json={"restaurantId": RESTAURANT_ID, "syncType": "everything"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_other_restaurant_forbidden(self, client, repo):
        response = client.post(URL, json={"restaurantId": OTHER_RESTAURANT_ID})
        assert response.status_code == 403
        repo["list_active_channels"].assert_not_called()

    def test_lookup_failure_is_500(self, client, repo):
        repo["list_active_channels"].side_effect = RuntimeError("db down")
        response = client.post(URL, json={"restaurantId": RESTAURANT_ID})
        assert response.status_code == 500
        assert response.json() == {"error": "Channel sync failed"}
