"""
Newsbot - Logging
==================
Logger factory shared by every Newsbot module.  All records go to
stdout as ``time | LEVEL | module | message``; each pipeline stage tags
its messages (``[RAG]``, ``[SESSION]``, ``[INGEST]``, ``[EMBED]``,
``[FILTER]``, ``[API]``) so one chat turn or one ingestion run can be
followed with a single grep.

Level resolution:
  1. explicit ``level`` argument
  2. ``settings.LOG_LEVEL`` when set
  3. ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

``quiet_third_party()`` caps the HTTP and database client libraries at
WARNING; httpx in particular logs one INFO line per request, which
drowns the ingestion output.

Usage:
    from newsbot.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[INGEST] Something happened")
"""

import logging
import sys

from newsbot.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = logging.getLevelName(settings.LOG_LEVEL) if settings.LOG_LEVEL else _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_FORMATTER = logging.Formatter(fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

_NOISY_LIBRARIES = ("httpx", "httpcore", "pymongo", "motor", "lancedb", "langchain_google_genai")


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the named logger, attaching the stdout handler on first use.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level override; see the module docstring for
               the fallback order.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger.setLevel(resolved_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved_level)
    handler.setFormatter(_FORMATTER)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def quiet_third_party(level: int = logging.WARNING) -> None:
    """Raise the threshold of chatty client libraries to *level*."""
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(level)
