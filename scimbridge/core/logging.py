"""
Logging setup for scimbridge.

Every module obtains its logger once at import time:

    logger = get_logger(__name__)

The returned object is the shared loguru logger bound with the module name,
so records can be filtered per module with ``record["extra"]["name"]``.
"""

from loguru import logger

logger.configure(extra={"name": "scimbridge"})


def get_logger(name: str):
    """Return the loguru logger bound to ``name``."""
    return logger.bind(name=name)

