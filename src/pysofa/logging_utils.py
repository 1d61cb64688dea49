"""Console logging for the ``pysofa`` logger namespace."""

from __future__ import annotations

import logging
from typing import IO, Optional

PACKAGE_LOGGER = "pysofa"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_HANDLER_NAME = "pysofa-console"


def configure_logging(
    level: str | int = "INFO",
    *,
    stream: Optional[IO[str]] = None,
    propagate: bool = False,
    force: bool = False,
) -> logging.Logger:
    """Send pipeline log records of every ``pysofa.*`` module to a console handler.

    Only the package logger is touched; the root logger and handlers owned by
    the host application are left alone.

    Parameters
    ----------
    level:
        Level name (case-insensitive, e.g. ``"debug"``) or number.
    stream:
        Target stream of the handler, ``sys.stderr`` when omitted.
    propagate:
        Whether records are also passed on to the root logger's handlers.
    force:
        Replace a handler installed by an earlier call (e.g. to switch
        streams). Without it repeated calls only adjust the level.

    Returns
    -------
    logging.Logger
        The ``pysofa`` package logger.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level!r}")
        level = resolved

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = propagate

    installed = [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]
    if installed and not force:
        return logger
    for handler in installed:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger


__all__ = ["PACKAGE_LOGGER", "LOG_FORMAT", "configure_logging"]
