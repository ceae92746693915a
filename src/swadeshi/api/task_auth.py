"""Caller authentication for the worker's /tasks routes.

A scheduler signs each call with a Google-issued OIDC token whose audience is
TASKS_OIDC_AUDIENCE. When that audience is the local-dev marker, a shared
X-Internal-Task-Secret header is accepted as well.
"""

from __future__ import annotations

import hmac
import os
from dataclasses import dataclass

from fastapi import Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from swadeshi.api.errors import ApiError
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import safe_log_context

logger = get_logger(__name__)

LOCAL_DEV_AUDIENCE = "swadeshi-tasks-local"
INTERNAL_SECRET_HEADER = "X-Internal-Task-Secret"


@dataclass(frozen=True)
class TaskAuthSettings:
    audience: str
    service_account: str
    internal_secret: str

    @classmethod
    def from_env(cls) -> "TaskAuthSettings":
        return cls(
            audience=os.environ.get("TASKS_OIDC_AUDIENCE", ""),
            service_account=os.environ.get("TASKS_OIDC_SERVICE_ACCOUNT", ""),
            internal_secret=os.environ.get("INTERNAL_TASK_SECRET", ""),
        )

    @property
    def local_dev(self) -> bool:
        return self.audience == LOCAL_DEV_AUDIENCE


def _bearer(request: Request) -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token


def _internal_secret_matches(request: Request, settings: TaskAuthSettings) -> bool:
    if not (settings.local_dev and settings.internal_secret):
        return False
    supplied = request.headers.get(INTERNAL_SECRET_HEADER, "")
    return hmac.compare_digest(supplied.encode(), settings.internal_secret.encode())


def verify_task_oidc(token: str, settings: TaskAuthSettings) -> bool:
    """Check a Google OIDC token against the configured audience.

    No audience configured means no token is accepted. When a service account
    is configured, the token's email claim must equal it.
    """
    if not settings.audience:
        logger.error(
            "task auth audience not configured",
            extra={"extra_fields": safe_log_context(reason="missing_audience_env")},
        )
        return False

    try:
        claims = id_token.verify_oauth2_token(token, google_requests.Request(), audience=settings.audience)
    except ValueError as e:
        logger.warning(
            "task OIDC verification failed",
            extra={"extra_fields": safe_log_context(error=str(e), expected_audience=settings.audience)},
        )
        return False

    if settings.service_account and claims.get("email") != settings.service_account:
        logger.warning(
            "task OIDC service account mismatch",
            extra={"extra_fields": safe_log_context(expected_email=settings.service_account)},
        )
        return False
    return True


def verify_task_auth(request: Request) -> bool:
    settings = TaskAuthSettings.from_env()

    if _internal_secret_matches(request, settings):
        logger.info(
            "task auth via internal secret",
            extra={"extra_fields": safe_log_context(auth_method="internal_secret")},
        )
        return True

    token = _bearer(request)
    if token is None:
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(reason="missing_bearer_token")},
        )
        return False
    return verify_task_oidc(token, settings)


def require_task_auth(request: Request) -> None:
    """FastAPI dependency rejecting unauthenticated task calls with 401."""
    if not verify_task_auth(request):
        raise ApiError(401, "Unauthorized")
