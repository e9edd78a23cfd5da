"""Application starter."""

import uvicorn

from streamchat.core.config import settings
from streamchat.core.logging import setup_logger

logger = setup_logger(__name__)

if __name__ == "__main__":
    # Start the app
    logger.info(f"Starting server in {settings.ENVIRONMENT} mode")
    uvicorn.run(
        "streamchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
