from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

import uvicorn

from noderegistry.core.config.manager import get_config
from noderegistry.core.error_reporter import ErrorReporter, ErrorReporterConfig
from noderegistry.core.errors import ConfigError
from noderegistry.core.events import EventLogger
from noderegistry.core.logger import route_server_logs, setup_logging
from noderegistry.core.nodes import build_registry
from noderegistry.web.api import create_app


def main() -> None:
    ap = argparse.ArgumentParser(description="Node module registry (install/uninstall/enable/disable node types)")
    ap.add_argument("--root", default=".", help="Directory holding config/ and logs/.")
    ap.add_argument("--host", default=None, help="Bind host (overrides config/web.json).")
    ap.add_argument("--port", type=int, default=None, help="Bind port (overrides config/web.json).")
    ap.add_argument("--read-only", action="store_true", help="Never write config; administrative changes are refused.")
    ap.add_argument("--list", action="store_true", help="Print the seeded node type list as JSON and exit.")
    args = ap.parse_args()

    bootstrap = setup_logging(os.path.join(args.root, "logs"))
    try:
        config = get_config(root=args.root, logger=bootstrap, read_only=bool(args.read_only))
    except ConfigError as e:
        bootstrap.error(f"{e.user_message} {e.context.get('errors', '')}")
        sys.exit(2)
    cfg = config.get()

    log_dir = cfg.logging.log_dir if os.path.isabs(cfg.logging.log_dir) else os.path.join(args.root, cfg.logging.log_dir)
    logger = setup_logging(
        log_dir,
        cfg.logging.level,
        max_bytes=cfg.logging.max_bytes,
        backup_count=cfg.logging.backup_count,
        console=cfg.logging.console,
    )
    event_logger = EventLogger(os.path.join(log_dir, "events.jsonl"))
    reporter = ErrorReporter(path=os.path.join(log_dir, "errors.jsonl"), cfg=ErrorReporterConfig(include_tracebacks=cfg.logging.include_tracebacks), logger=logger)

    registry = build_registry(config_manager=config, event_logger=event_logger, logger=logger)
    asyncio.run(registry.start())

    if args.list:
        print(json.dumps(registry.get_all(), indent=2, ensure_ascii=False))
        return

    app = create_app(
        registry,
        logger=logger,
        event_logger=event_logger,
        error_reporter=reporter,
        allowed_origins=cfg.web.allowed_origins,
        max_request_bytes=cfg.web.max_request_bytes,
    )
    host = args.host or cfg.web.bind_host
    port = int(args.port or cfg.web.port)
    logger.info(f"Node registry listening on http://{host}:{port}")
    route_server_logs(logger)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
