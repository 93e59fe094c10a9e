from __future__ import annotations

import logging
import sys

from notekeeper.config import settings

# Third-party loggers that flood INFO with per-request or websocket chatter
_QUIET_LOGGERS = ("realtime", "websockets", "httpx", "httpcore", "hpack")


def setup_logging(level: str | None = None) -> None:
    """Configure stdout logging for the API process.

    Safe to call more than once; ``basicConfig`` only installs a handler
    the first time.
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    for name in ("uvicorn", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(logging.INFO)
    if level_name != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured", extra={"level": level_name})


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
