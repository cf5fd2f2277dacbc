"""
Process entry point: load configuration, wire the app and serve it.
"""

from __future__ import annotations

import logging
import sys

import uvicorn

from backend.app import create_app
from backend.config import ConfigError, load_settings
from backend.wiring import StartupError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "info") -> None:
    numeric_level = logging.getLevelName("WARNING" if level == "warn" else level.upper())
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        configure_logging()
        logger.critical("Failed to load configuration: %s", exc)
        return 1

    configure_logging(settings.log_level)
    logger.info(
        "Configuration loaded (env=%s, port=%s, use_mock_data=%s)",
        settings.env,
        settings.port,
        settings.use_mock_data,
    )

    try:
        app = create_app(settings)
    except StartupError as exc:
        logger.critical("%s", exc)
        return 1

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port_number,
        log_level="warning" if settings.log_level == "warn" else settings.log_level,
        access_log=True,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
