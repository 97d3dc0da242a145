from __future__ import annotations

import logging

from flask import Flask

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
PACKAGE_LOGGER = "stocktracker"


def configure_logging(app: Flask) -> None:
    """Apply LOG_LEVEL to the app logger and the package's module loggers."""
    level = _coerce_level(app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(level)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)

    if level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _coerce_level(raw_level) -> int:
    if isinstance(raw_level, int):
        return raw_level
    if isinstance(raw_level, str):
        candidate = raw_level.strip().upper()
        level = logging.getLevelName(candidate)
        if isinstance(level, int):
            return level
    return logging.INFO
