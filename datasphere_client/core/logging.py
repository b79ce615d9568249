"""
Logging utilities for the client library and the command-line front end.

The library itself only creates module loggers; handlers are installed by
``configure_logging`` when the CLI starts.
"""

import logging
import sys

# Third-party loggers that log every request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    level = level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )
    if level != "DEBUG":
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, logger: logging.Logger | None = None) -> logging.Logger:
    """Return an injected logger, falling back to the module logger."""
    return logger if logger is not None else logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
