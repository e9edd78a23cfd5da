"""Health check module for application monitoring."""

from typing import Any, Dict

from streamchat.core.config import Settings


def check_backend_configured(config: Settings) -> bool:
    """Check if the completion backend credential is set."""
    return bool(config.OPENAI_API_KEY)


def get_health_status(config: Settings) -> Dict[str, Any]:
    """
    Get health status response.

    The completion backend itself is not contacted; a missing credential marks
    the service as degraded because every chat request would fail.

    Args:
        config: Settings to report on
    """
    backend_configured = check_backend_configured(config)
    status = "healthy" if backend_configured else "degraded"
    return {
        "message": f"Service is {status}",
        "data": {
            "status": status,
            "app": config.APP_NAME,
            "environment": config.ENVIRONMENT,
            "backend_configured": backend_configured,
            "model": config.OPENAI_MODEL,
        },
    }
