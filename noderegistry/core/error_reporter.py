from __future__ import annotations

import json
import os
import threading
import time
import traceback
from dataclasses import dataclass
from typing import Any, Dict, Optional

from noderegistry.core.errors import NodeRegistryError, Severity
from noderegistry.core.events import redact


@dataclass
class ErrorReporterConfig:
    include_tracebacks: bool = False


class ErrorReporter:
    """
    Writes every error surfaced to a caller into logs/errors.jsonl.

    Registry errors are recorded as-is. Anything else is normalized to a generic
    internal_error so that exception text never reaches a client.
    """

    def __init__(self, *, path: str = os.path.join("logs", "errors.jsonl"), cfg: Optional[ErrorReporterConfig] = None, logger: Any = None):
        self.path = path
        self.cfg = cfg or ErrorReporterConfig()
        self.logger = logger
        self._lock = threading.Lock()
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def report_exception(self, exc: BaseException, *, trace_id: str, subsystem: str, context: Optional[Dict[str, Any]] = None) -> NodeRegistryError:
        err = normalize_exception(exc, context=context or {})
        self.write_error(err, trace_id=trace_id, subsystem=subsystem, internal_exc=exc)
        return err

    def write_error(self, err: NodeRegistryError, *, trace_id: str, subsystem: str, internal_exc: Optional[BaseException] = None) -> None:
        entry: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": trace_id,
            "subsystem": subsystem,
            "error_code": err.code,
            "outcome": err.outcome.value,
            "severity": err.severity.value,
            "recoverable": bool(err.recoverable),
            "user_message": err.user_message,
            "safe_context": redact(err.context or {}),
        }
        if self.cfg.include_tracebacks and internal_exc is not None:
            entry["internal_context"] = {"traceback": "".join(traceback.format_exception(type(internal_exc), internal_exc, internal_exc.__traceback__, limit=30))}
        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        if self.logger is not None:
            if err.severity in {Severity.ERROR, Severity.CRITICAL}:
                self.logger.error(f"[{trace_id}] {subsystem}: {err.code}: {err.user_message}")
            else:
                self.logger.info(f"[{trace_id}] {subsystem}: {err.code}")

    def tail(self, n: int = 20) -> list[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []
        with self._lock:
            with open(self.path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        out = []
        for line in lines[-max(1, int(n)) :]:
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return out

    def by_trace_id(self, trace_id: str) -> list[Dict[str, Any]]:
        return [e for e in self.tail(10_000) if e.get("trace_id") == trace_id]


def normalize_exception(exc: BaseException, *, context: Dict[str, Any]) -> NodeRegistryError:
    if isinstance(exc, NodeRegistryError):
        return exc
    ctx = dict(context or {})
    ctx.setdefault("exception_type", type(exc).__name__)
    return NodeRegistryError(code="internal_error", user_message="Something went wrong.", context=ctx)
