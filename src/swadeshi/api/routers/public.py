"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from swadeshi.api.routes import channel_sync, clock_entries, orders, webhooks_whatsapp

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(webhooks_whatsapp.router)
router.include_router(orders.router)
router.include_router(clock_entries.router)
router.include_router(channel_sync.router)
