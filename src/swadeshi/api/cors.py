"""Permissive CORS for browser clients (QR ordering, staff dashboard).

Starlette's CORSMiddleware answers browser preflights and stamps
Access-Control-Allow-Origin on responses to cross-origin requests. An OPTIONS
request that is not a preflight (no Origin, or no requested method) would
otherwise reach routing and fail with 405; those are answered 204 here.
"""

from fastapi import FastAPI, Request, Response
from starlette.middleware.cors import CORSMiddleware

ALLOW_ORIGINS = ["*"]
ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "x-hub-signature-256"]
EXPOSE_HEADERS = [
    "X-Correlation-ID",
    "Retry-After",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
]

OPTIONS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ", ".join(ALLOW_METHODS),
    "Access-Control-Allow-Headers": ", ".join(ALLOW_HEADERS),
}


def install_cors(app: FastAPI) -> None:
    """Install CORS; call last so the library middleware is outermost."""

    @app.middleware("http")
    async def options_middleware(request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=OPTIONS_HEADERS)
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOW_ORIGINS,
        allow_methods=ALLOW_METHODS,
        allow_headers=ALLOW_HEADERS,
        expose_headers=EXPOSE_HEADERS,
    )
