"""
Logging setup shared by the whole package.

Every module calls ``get_logger(__name__)``; ``configure_logging`` attaches a
single stderr handler with UTC timestamps to the package logger and is safe to
call more than once.
"""
import logging
import time

_APP_LOGGER_NAME = "odm_api"


class _UTCFormatter(logging.Formatter):
    converter = staticmethod(time.gmtime)


def configure_logging(level_name: str = "INFO") -> logging.Logger:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    app_logger = logging.getLogger(_APP_LOGGER_NAME)
    app_logger.setLevel(level)

    # Avoid duplicate handlers (tests, reloads)
    if getattr(app_logger, "_configured", False):
        return app_logger

    handler = logging.StreamHandler()
    handler.setFormatter(_UTCFormatter(
        fmt="%(asctime)sZ %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    app_logger.addHandler(handler)
    app_logger.propagate = False
    app_logger._configured = True  # type: ignore[attr-defined]
    return app_logger


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger(__name__)``."""
    name = module_name or _APP_LOGGER_NAME
    if name == _APP_LOGGER_NAME or name.startswith(_APP_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_APP_LOGGER_NAME}.{name}")
