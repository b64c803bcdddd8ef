"""Logging setup for the marketplace service."""

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``mess_market`` logger.

    Repeated calls only adjust the level. httpx logs every mess API request
    at INFO, so it is held at WARNING.
    """
    logger = logging.getLogger("mess_market")
    logger.setLevel(level.upper())
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
