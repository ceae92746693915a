"""ASGI entry point: ``uvicorn swadeshi.api.app:app`` (role from APP_ROLE)."""

from swadeshi.api.factory import create_app

app = create_app()
