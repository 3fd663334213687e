from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from noderegistry.core.logger import route_server_logs, setup_logging


def test_setup_logging_replaces_handlers(tmp_path):
    first = setup_logging(str(tmp_path / "a"), "debug")
    assert first.level == logging.DEBUG
    again = setup_logging(str(tmp_path / "b"), "WARNING", backup_count=2, console=False)
    assert again is first
    assert again.level == logging.WARNING
    assert len(again.handlers) == 1
    fh = again.handlers[0]
    assert isinstance(fh, RotatingFileHandler)
    assert fh.backupCount == 2
    again.warning("node type x failed")
    fh.flush()
    with open(os.path.join(str(tmp_path / "b"), "noderegistry.log"), "r", encoding="utf-8") as f:
        assert "node type x failed" in f.read()


def test_route_server_logs(tmp_path):
    logger = setup_logging(str(tmp_path), "INFO", console=False)
    route_server_logs(logger)
    srv = logging.getLogger("uvicorn.access")
    assert srv.handlers == logger.handlers
    assert srv.propagate is False
