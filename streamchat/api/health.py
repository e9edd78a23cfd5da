"""Health check API endpoints."""

from fastapi import APIRouter

from streamchat.core.config import settings
from streamchat.core.health import get_health_status
from streamchat.core.logging import setup_logger

logger = setup_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Reports whether the application is running and whether the completion
    backend credential is configured.
    """
    health = get_health_status(settings)
    if not health["data"]["backend_configured"]:
        logger.warning("Health check: completion backend credential is missing")
    return health
