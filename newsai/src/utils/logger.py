"""
NewsAI - Logging
=================
Logger factory shared by every NewsAI module.

All ``newsai.*`` loggers hang off one package logger that owns the only
stdout handler, so the API, the ingestion CLI and the core services
write through the same formatter and can be re-levelled in one place.

Level resolution:
  • ``settings.LOG_LEVEL`` when set
  • otherwise ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

Log lines carry a bracketed component tag so a single request can be
followed across modules::

    [QUERY] [RETRIEVAL] [SESSION] [GENERATION]

Usage:
    from newsai.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RETRIEVAL] Something happened")
"""

import logging
import sys

from newsai.config.settings import settings

PACKAGE_LOGGER = "newsai"

# ── Resolve default level from settings ───────────────────────────────
_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}


def _resolve_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL)
    return _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)


_DEFAULT_LEVEL = _resolve_level()

# Client libraries that are chatty at DEBUG level.
_NOISY_LIBRARIES = ("httpx", "httpcore", "urllib3", "pymongo", "lancedb", "google_genai")

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _attach_console_handler(logger: logging.Logger) -> None:
    if logger.handlers:
        return
    logger.setLevel(_DEFAULT_LEVEL)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)
    # Uvicorn configures the root logger; keep our lines out of it.
    logger.propagate = False


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a named logger.

    Args:
        name:  Typically ``__name__`` of the calling module.  Names under
               ``newsai`` share the package handler; any other name
               (e.g. ``__main__``) gets its own.
        level: Explicit level for this logger only.  If *None* it
               inherits the package level.
    """
    logger = logging.getLogger(name)
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        _attach_console_handler(logging.getLogger(PACKAGE_LOGGER))
    else:
        _attach_console_handler(logger)

    if level is not None:
        logger.setLevel(level)
    return logger


def set_level(level: int | str) -> None:
    """Re-level every NewsAI logger at once."""
    _attach_console_handler(logging.getLogger(PACKAGE_LOGGER))
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def quiet_third_party(level: int = logging.WARNING) -> None:
    """Raise the threshold of HTTP / database client loggers."""
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(level)
