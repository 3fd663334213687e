from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Iterable

SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    *,
    max_bytes: int = 1_000_000,
    backup_count: int = 5,
    console: bool = True,
) -> logging.Logger:
    """
    The `noderegistry` logger: rotating text file in log_dir, plus stderr when
    `console` is set. Safe to call again with new settings (e.g. once config is
    loaded); handlers are replaced, not stacked.
    """
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger("noderegistry")
    logger.setLevel(getattr(logging, str(level or "INFO").upper(), logging.INFO))
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    fh = RotatingFileHandler(os.path.join(log_dir, "noderegistry.log"), maxBytes=int(max_bytes), backupCount=int(backup_count), encoding="utf-8")
    fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(fh)

    if console:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(sh)

    return logger


def route_server_logs(logger: logging.Logger, names: Iterable[str] = SERVER_LOGGERS) -> None:
    """Send the HTTP server's own loggers through our handlers."""
    for name in names:
        srv = logging.getLogger(name)
        srv.handlers = list(logger.handlers)
        srv.setLevel(logger.level)
        srv.propagate = False
