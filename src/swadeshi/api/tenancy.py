"""Tenant (restaurant) scoping for authenticated requests.

The restaurant id in a request body is untrusted input. It is only ever
compared with the restaurant resolved server-side from the caller's profile;
all database access then uses the profile's value.
"""

from __future__ import annotations

from dataclasses import dataclass

from swadeshi.api.auth import CurrentUser
from swadeshi.api.errors import ApiError
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthorizationContext:
    """Caller plus the single tenant the request is scoped to."""

    user: CurrentUser
    restaurant_id: str


def authorize_restaurant(user: CurrentUser, requested_restaurant_id: str | None) -> AuthorizationContext:
    """Check that the caller belongs to the requested restaurant.

    Raises:
        ApiError: 403 when the profile has no restaurant or it differs.
    """
    profile_restaurant = user.restaurant_id
    if (
        not profile_restaurant
        or not requested_restaurant_id
        or str(profile_restaurant) != str(requested_restaurant_id)
    ):
        logger.warning(
            "cross-tenant access denied",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    user_id=user.id,
                    has_profile_restaurant=bool(profile_restaurant),
                )
            },
        )
        raise ApiError(403, "Unauthorized access to this restaurant")

    return AuthorizationContext(user=user, restaurant_id=profile_restaurant)
