"""Bearer-token authentication against the auth provider's JWKS.

Provides:
- verify_token(): Validates an RS256 JWT and returns its subject claim
- get_current_user(): FastAPI dependency resolving the caller's profile

Only the token subject is trusted. The restaurant a caller may act for comes
from their profile row, never from the request.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import Request

from swadeshi.api.errors import ApiError
from swadeshi.api.ids import is_uuid
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)

_JWKS_CACHE_TTL = 600  # 10 minutes
_REQUIRED_CLAIMS = ["exp", "iss", "aud", "sub"]


@dataclass
class CurrentUser:
    """Authenticated caller and the tenant their profile belongs to."""

    id: str
    restaurant_id: str | None
    role: str | None
    email: str | None
    full_name: str | None


@dataclass(frozen=True)
class OidcSettings:
    issuer: str | None
    audience: str | None
    jwks_url: str | None
    authorized_parties: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "OidcSettings":
        raw_parties = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
        return cls(
            issuer=os.environ.get("OIDC_ISSUER"),
            audience=os.environ.get("OIDC_AUDIENCE"),
            jwks_url=os.environ.get("OIDC_JWKS_URL"),
            authorized_parties=tuple(p.strip() for p in raw_parties.split(",") if p.strip()),
        )

    @property
    def configured(self) -> bool:
        return bool(self.issuer and self.audience and self.jwks_url)


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


class JwksCache:
    """Process-wide JWKS cache with a TTL and forced refresh for key rotation."""

    def __init__(self, ttl_seconds: int = _JWKS_CACHE_TTL) -> None:
        self.ttl_seconds = ttl_seconds
        self._keys: dict[str, Any] | None = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def get(self, jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
        with self._lock:
            now = time.time()
            fresh = self._keys is not None and (now - self._fetched_at) < self.ttl_seconds
            if fresh and not force_refresh:
                return self._keys

            try:
                self._keys = _fetch_jwks(jwks_url)
            except requests.RequestException as e:
                logger.error(
                    "JWKS fetch failed",
                    extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
                )
                raise ApiError(503, "Auth temporarily unavailable")
            self._fetched_at = now
            return self._keys

    def find_key(self, jwks_url: str, kid: str, force_refresh: bool = False) -> dict[str, Any] | None:
        for key in self.get(jwks_url, force_refresh).get("keys", []):
            if key.get("kid") == kid:
                return key
        return None

    def clear(self) -> None:
        with self._lock:
            self._keys = None
            self._fetched_at = 0.0


_jwks = JwksCache()


def _reject(details: str | None = None) -> ApiError:
    logger.warning(
        "bearer token rejected",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                reason=details or "invalid",
            )
        },
    )
    return ApiError(401, "Invalid token", details)


def _decode(token: str, key_data: dict[str, Any], settings: OidcSettings) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(key_data)
    except (jwt.exceptions.InvalidKeyError, ValueError, TypeError, KeyError):
        raise _reject("unusable signing key")

    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=settings.issuer,
        audience=settings.audience,
        options={"require": _REQUIRED_CLAIMS},
    )


def verify_token(token: str) -> str:
    """Verify JWT and return subject claim.

    An unknown kid or a bad signature triggers one JWKS refetch before the
    token is rejected, so provider key rotation does not cause an outage.

    Raises:
        ApiError: 401 if the token is invalid or auth is not configured,
            503 if the JWKS cannot be fetched.
    """
    settings = OidcSettings.from_env()
    if not settings.configured:
        raise ApiError(401, "Auth not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise _reject("malformed token")
    if not kid:
        raise _reject("missing key id")

    payload: dict[str, Any] | None = None
    for force_refresh in (False, True):
        key_data = _jwks.find_key(settings.jwks_url, kid, force_refresh=force_refresh)
        if key_data is None:
            continue
        try:
            payload = _decode(token, key_data, settings)
            break
        except jwt.InvalidSignatureError:
            if force_refresh:
                raise _reject("signature verification failed")
        except jwt.ExpiredSignatureError:
            raise _reject("token expired")
        except jwt.InvalidTokenError:
            raise _reject()

    if payload is None:
        raise _reject("unknown key id")

    if settings.authorized_parties and "azp" in payload:
        if payload["azp"] not in settings.authorized_parties:
            raise _reject("unauthorized party")

    sub = payload.get("sub")
    if not sub:
        raise _reject()
    return sub


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        ApiError: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise ApiError(401, "Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise ApiError(401, "Invalid authorization header")

    return parts[1]


def _get_profile_from_db(user_id: str) -> CurrentUser | None:
    from swadeshi.infra.db import txn
    from swadeshi.infra.repositories.profiles_repository import get_profile

    with txn() as cur:
        profile = get_profile(cur, user_id=user_id)
    return CurrentUser(**profile) if profile else None


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated user with tenant scope.

    Raises:
        ApiError: 401 if token invalid/missing or its subject is not a user
            id, 403 if no profile exists, 503 if the profile store fails.
    """
    sub = verify_token(_extract_bearer_token(request))
    if not is_uuid(sub):
        raise _reject("subject is not a user id")

    try:
        user = _get_profile_from_db(sub)
    except Exception as e:
        logger.exception(
            "profile lookup failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    error_type=type(e).__name__,
                )
            },
        )
        raise ApiError(503, "Auth temporarily unavailable")
    if user is None:
        raise ApiError(403, "Profile not found")
    return user
