# log_config.py

import logging
import os
import sys

from errors import ConfigurationError

LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

logger = logging.getLogger("sql2graph")
logger.propagate = False

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", "%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(_handler)

# a bad LOG_LEVEL is reported by Settings.from_env, not at import
_env_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
logger.setLevel(_env_level if _env_level in LEVELS else "INFO")


def set_level(level):
    level = str(level).strip().upper()
    if level not in LEVELS:
        raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(LEVELS)}, got {level!r}")
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger(name=None):
    """Child of the `sql2graph` logger, e.g. get_logger("graph") -> sql2graph.graph."""
    return logging.getLogger(f"sql2graph.{name}") if name else logger
