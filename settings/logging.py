"""Logging configuration."""

import sys

from loguru import logger

from settings import LOG_DIR, LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL, to_file: bool = True, verbose: bool = False):
    """Console sink plus an optional daily debug file under LOG_DIR.

    `verbose` adds the logger name to console lines; queries and cache misses
    are logged at DEBUG and only reach the file unless the level is lowered.
    """
    logger.remove()

    console = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | "
    if verbose:
        console += "<cyan>{name}</cyan> | "
    logger.add(sys.stderr, format=console + "<level>{message}</level>", level=level.upper(), colorize=True)

    if to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            LOG_DIR / "cube_cache_{time:YYYY-MM-DD}.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="00:00",
            retention="14 days",
            compression="gz",
            enqueue=True,
        )
        logger.debug("Logging to {}", LOG_DIR)

    return logger
