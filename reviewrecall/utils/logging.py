# reviewrecall/utils/logging.py

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO


# ============================================================
# Logging Configuration
# ------------------------------------------------------------
# Library modules only ever call get_logger(); handlers are
# attached by the CLI (or an embedding application) through
# configure_logging(). Without it, retrieval stays silent apart
# from Python's last-resort WARNING output on stderr.
# ============================================================

_LOGGER_NAME = "reviewrecall"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(
    debug: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the ReviewRecall logger.

    - DEBUG level if debug=True, INFO otherwise
    - debug=None defers to REVIEWRECALL_DEBUG
    - Single StreamHandler, stdout unless `stream` is given

    Calling it again replaces the handler, so a later call can move
    output to another stream.
    """
    if debug is None:
        from reviewrecall.config.settings import get_settings

        debug = get_settings().debug

    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)

    for old in list(logger.handlers):
        logger.removeHandler(old)

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%H:%M:%S"))
    handler.setLevel(level)
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Child logger under "reviewrecall", e.g. get_logger("search").
    """
    base_logger = logging.getLogger(_LOGGER_NAME)
    return base_logger.getChild(name) if name else base_logger
