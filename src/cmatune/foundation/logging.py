"""
Console logging for cmatune runs.

Two logger trees matter: ``cmatune`` carries the one-line progress report per
generation (INFO), and ``cmatune.engine`` additionally emits per-step details
of the CMA-ES update and checkpoint traffic (DEBUG).
"""

from __future__ import annotations

import logging
from typing import TextIO

PACKAGE_LOGGER = "cmatune"
ENGINE_LOGGER = "cmatune.engine"

PROGRESS_FORMAT = "%(message)s"
DETAIL_FORMAT = "%(levelname)s %(name)s: %(message)s"


def levels_for_verbosity(verbosity: int) -> tuple[int, int | None]:
    """
    Map a verbosity count to ``(package level, engine level)``.

    Negative counts keep warnings only, zero reports progress and any positive
    count also turns on the engine's DEBUG output. An engine level of ``None``
    means the engine inherits the package level.
    """
    if verbosity < 0:
        return logging.WARNING, None
    if verbosity == 0:
        return logging.INFO, None
    return logging.INFO, logging.DEBUG


def configure_cmatune_logging(
    *,
    level: int = logging.INFO,
    engine_level: int | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Set cmatune logger levels and attach a console handler when nothing else logs.

    Levels are always applied. The handler is only attached if neither the root
    logger nor the "cmatune" logger has handlers, so an application's own
    logging setup keeps receiving the records. Library code never calls
    logging.basicConfig().
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    logging.getLogger(ENGINE_LOGGER).setLevel(logging.NOTSET if engine_level is None else engine_level)

    if logging.getLogger().handlers or package_logger.handlers:
        return package_logger

    detailed = engine_level is not None and engine_level <= logging.DEBUG
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(DETAIL_FORMAT if detailed or level <= logging.DEBUG else PROGRESS_FORMAT))
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger


__all__ = ["configure_cmatune_logging", "levels_for_verbosity", "PACKAGE_LOGGER", "ENGINE_LOGGER"]
