"""Configure logging for the CLI."""

import logging
import sys

LOGGER_NAME = "tweetbird"


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)
    app_logger.handlers.clear()
    app_logger.addHandler(handler)

    # Keep httpx quiet unless debugging
    httpx_level = logging.DEBUG if debug else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(httpx_level)
