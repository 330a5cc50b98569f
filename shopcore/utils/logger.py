"""
Logging setup for the order pipeline.

Two logger hierarchies are in use: "shopcore.*" for the domain library and
"shop.*" for the service (orders, side effects, API). setup_logging() gives
both a stdout handler at LOG_LEVEL; it is safe to call more than once.
"""
import logging
import os
import sys
from typing import Optional

LOGGER_NAMESPACES = ("shopcore", "shop")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("shopcore")


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the shopcore and shop loggers.

    Args:
        level: Level name such as "INFO" or "DEBUG". Falls back to the
            LOG_LEVEL environment variable, then INFO.
    """
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    for namespace in LOGGER_NAMESPACES:
        ns_logger = logging.getLogger(namespace)
        ns_logger.setLevel(level)
        handler = next((h for h in ns_logger.handlers if getattr(h, "_shop_handler", False)), None)
        if handler is None:
            handler = logging.StreamHandler(sys.stdout)
            handler._shop_handler = True
            handler.setFormatter(formatter)
            ns_logger.addHandler(handler)
        handler.setLevel(level)
        # Own handler; avoid duplicates through root
        ns_logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a library logger.

    Args:
        name: Optional name, appended to 'shopcore'

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"shopcore.{name}")
    return logger


setup_logging()
