import logging

import uvicorn

from driftchat.config import get_settings
from driftchat.logging_config import configure_logging

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting Driftchat relay...")
    uvicorn.run(
        "driftchat.main:app",
        host="0.0.0.0",
        port=8000,
        workers=1,
        log_level=settings.log_level.lower(),
    )
