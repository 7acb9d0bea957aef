import logging
import os
import sys
from typing import Union

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
LOG_LEVEL_ENV = "PT_LOG_LEVEL"


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Turn ``level`` (or ``PT_LOG_LEVEL``) into a logging level number."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV) or logging.INFO
    if isinstance(level, str):
        named = logging.getLevelName(level.strip().upper())
        if not isinstance(named, int):
            raise ValueError(f"unknown log level: {level}")
        return named
    return level


def get_logger(name: str, level: Union[int, str, None] = None) -> logging.Logger:
    """Return the tracker logger ``name`` with a single stdout handler."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(resolve_level(level))
    return logger
