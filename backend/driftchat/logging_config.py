"""Process-wide logging setup."""

import logging
import sys

from driftchat.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from settings."""

    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
