"""
Logging utilities for the web application and the Graph client.
"""

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet the per-request httpx chatter."""
    logging.basicConfig(level=level.upper(), format=_FORMAT, stream=sys.stdout)
    if level.upper() != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
