"""Tests for restaurant-scoped authorization."""

import pytest

from swadeshi.api.errors import ApiError
from swadeshi.api.tenancy import authorize_restaurant

from helpers import OTHER_RESTAURANT_ID, RESTAURANT_ID, USER_ID, _make_user


class TestAuthorizeRestaurant:
    def test_same_restaurant(self):
        ctx = authorize_restaurant(_make_user(), RESTAURANT_ID)
        assert ctx.restaurant_id == RESTAURANT_ID
        assert ctx.user.id == USER_ID

    @pytest.mark.parametrize(
        "profile_restaurant,requested",
        [
            (RESTAURANT_ID, OTHER_RESTAURANT_ID),
            (RESTAURANT_ID, None),
            (RESTAURANT_ID, ""),
            (None, RESTAURANT_ID),
            (None, None),
        ],
    )
    def test_denied(self, profile_restaurant, requested):
        with pytest.raises(ApiError) as exc_info:
            authorize_restaurant(_make_user(restaurant_id=profile_restaurant), requested)
        assert exc_info.value.status_code == 403
        assert exc_info.value.to_body() == {"error": "Unauthorized access to this restaurant"}

    def test_non_ascii_request_denied_not_crashing(self):
        with pytest.raises(ApiError):
            authorize_restaurant(_make_user(), "résto")
