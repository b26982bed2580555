"""Logging setup for the dashboard and scripts."""

import sys

from loguru import logger

LOG_FORMAT = (
    '<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>'
)


def configure_logging(level='INFO'):
    """
    Replace loguru's default sink with a single stderr sink.

    The library itself never adds sinks; callers that want output (the
    Streamlit app, ad hoc scripts) call this once at startup.

    Args:
        level: Minimum level name (DEBUG, INFO, ...)

    Returns:
        int: Id of the installed sink
    """
    logger.remove()
    return logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
