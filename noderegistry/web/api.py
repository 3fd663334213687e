from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from noderegistry.core.error_reporter import ErrorReporter
from noderegistry.core.errors import NodeRegistryError, http_status_for
from noderegistry.core.nodes.models import OutputFormat
from noderegistry.web.middleware import RequestTraceMiddleware
from noderegistry.web.request_guard import parse_json_body, wants_html


def _trace_id(request: Request) -> str:
    return getattr(getattr(request, "state", None), "trace_id", None) or "web"


def _output_format(request: Request) -> OutputFormat:
    return OutputFormat.HTML if wants_html(request.headers.get("accept", "")) else OutputFormat.JSON


def create_app(
    registry,
    *,
    logger: Any = None,
    event_logger: Any = None,
    error_reporter: Optional[ErrorReporter] = None,
    allowed_origins: list[str] | None = None,
    max_request_bytes: int = 65536,
) -> FastAPI:
    app = FastAPI(title="Node Registry", version="0.1.0")

    if allowed_origins:
        if any(o == "*" for o in allowed_origins):
            raise ValueError("Wildcard CORS origins are not allowed.")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )
    reporter = error_reporter or ErrorReporter()
    app.middleware("http")(RequestTraceMiddleware(event_logger=event_logger, logger=logger, max_request_bytes=max_request_bytes))

    @app.exception_handler(NodeRegistryError)
    async def registry_error_handler(request: Request, exc: NodeRegistryError):
        reporter.write_error(exc, trace_id=_trace_id(request), subsystem="web")
        return JSONResponse(status_code=http_status_for(exc), content={"detail": exc.user_message, "code": exc.code})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        err = reporter.report_exception(exc, trace_id=_trace_id(request), subsystem="web", context={"path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": err.user_message, "code": err.code})

    @app.get("/health")
    async def health():
        return registry.health()

    @app.get("/nodes")
    async def list_nodes(request: Request):
        fmt = _output_format(request)
        out = registry.get_all(fmt)
        if fmt == OutputFormat.HTML:
            return HTMLResponse(out)
        return out

    @app.post("/nodes")
    async def install_module(request: Request):
        body = parse_json_body(await request.body())
        return await registry.install(body, trace_id=_trace_id(request))

    @app.get("/modules/{module_id}")
    async def get_module(module_id: str):
        return registry.get_module(module_id)

    @app.get("/nodes/{node_id:path}")
    async def get_node(node_id: str, request: Request):
        fmt = _output_format(request)
        out = registry.get_one(node_id, fmt)
        if fmt == OutputFormat.HTML:
            return HTMLResponse(out)
        return out

    @app.put("/nodes/{node_id:path}")
    async def set_node_enabled(node_id: str, request: Request):
        body = parse_json_body(await request.body())
        return registry.set_enabled(node_id, body, trace_id=_trace_id(request))

    @app.delete("/nodes/{node_id:path}")
    async def uninstall_module(node_id: str, request: Request):
        return await registry.uninstall(node_id, trace_id=_trace_id(request))

    return app
