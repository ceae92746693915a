"""FastAPI application factory.

APP_ROLE=public serves the browser- and Meta-facing routes. APP_ROLE=worker
serves the same plus the scheduler-invoked /tasks routes, which must never be
reachable from the public deployment.
"""

import os
from typing import Literal

from fastapi import APIRouter, FastAPI, Request, Response

from swadeshi.observability.correlation import (
    CORRELATION_ID_HEADER,
    reset_correlation_id,
    resolve_correlation_id,
    set_correlation_id,
)

from .cors import install_cors
from .errors import install_error_handlers, unhandled_error_response
from .routers import public, worker

AppRole = Literal["public", "worker"]

_ROLE_ROUTERS: dict[str, tuple[APIRouter, ...]] = {
    "public": (public.router,),
    "worker": (public.router, worker.router),
}


def _install_correlation_id(app: FastAPI) -> None:
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = resolve_correlation_id(request.headers)
        token = set_correlation_id(cid)
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # JSON 500 built inside CORS, with the correlation id still set
                response = await unhandled_error_response(request, exc)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)


def create_app(role: AppRole | None = None) -> FastAPI:
    """Build the app for a role (default: APP_ROLE, else "public").

    Unknown roles fall back to the public surface.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    app = FastAPI(title="Swadeshi API", docs_url=None, redoc_url=None)

    install_error_handlers(app)
    _install_correlation_id(app)
    # Added last, so it is the outermost middleware and sees preflights first
    install_cors(app)

    for router in _ROLE_ROUTERS.get(role, _ROLE_ROUTERS["public"]):
        app.include_router(router)

    return app
