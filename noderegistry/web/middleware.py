from __future__ import annotations

import re
import time
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from noderegistry.core.events import EventLogger
from noderegistry.web.request_guard import enforce_body_limits, json_depth, parse_json_body

_TRACE_ID_RE = re.compile(r"[A-Za-z0-9_.-]{1,64}")


def _client_ip(request: Request) -> Optional[str]:
    return getattr(getattr(request, "client", None), "host", None)


class RequestTraceMiddleware:
    """
    Per request (order matters):
    1) trace_id (X-Trace-Id honored when well-formed) + request audit
    2) request size + JSON guard for bodies
    3) response audit, trace id echoed back
    """

    def __init__(self, *, event_logger: Optional[EventLogger] = None, logger: Any = None, max_request_bytes: int = 65536):
        self.event_logger = event_logger
        self.logger = logger
        self.max_request_bytes = int(max_request_bytes)

    async def __call__(self, request: Request, call_next):  # noqa: ANN001
        supplied = request.headers.get("X-Trace-Id", "")
        trace_id = supplied if _TRACE_ID_RE.fullmatch(supplied or "") else uuid.uuid4().hex
        request.state.trace_id = trace_id
        path = request.url.path
        method = request.method
        t0 = time.time()

        if self.event_logger is not None:
            self.event_logger.log(trace_id, "web.request", {"path": path, "method": method, "client_host": _client_ip(request)})

        if method in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            try:
                enforce_body_limits(body, max_bytes=self.max_request_bytes)
                obj = parse_json_body(body)
                if obj is not None:
                    json_depth(obj, max_depth=10)
            except ValueError as e:
                if self.event_logger is not None:
                    self.event_logger.log(trace_id, "web.request_rejected", {"path": path, "reason": str(e)})
                status = 413 if "large" in str(e) else 400
                return JSONResponse(status_code=status, content={"detail": "Request rejected.", "code": "request_rejected"}, headers={"X-Trace-Id": trace_id})

        resp = await call_next(request)
        resp.headers["X-Trace-Id"] = trace_id
        elapsed_ms = (time.time() - t0) * 1000.0
        if self.event_logger is not None:
            self.event_logger.log(trace_id, "web.response", {"path": path, "method": method, "status": resp.status_code, "ms": round(elapsed_ms, 1)})
        if self.logger is not None:
            self.logger.debug(f"[{trace_id}] {method} {path} -> {resp.status_code} ({elapsed_ms:.1f}ms)")
        return resp
