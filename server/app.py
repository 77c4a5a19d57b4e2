"""FastAPI application for newtab.

Exposes:
- GET /                 (link list)
- POST /add, POST /edit, GET|POST /delete, GET /move
- GET /headers          (request header echo)
- GET /static/*         (bundled assets)
- GET /favicon.ico
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine
from starlette.middleware.base import BaseHTTPMiddleware

from .config import NewtabConfig
from .favicons import FaviconResolver
from .logging_config import get_logger

from web import STATIC_DIR
from web import router as web_router

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log the first client connection, then mutating requests."""

    async def dispatch(self, request, call_next):
        request_logger = logging.getLogger("newtab.request")
        if not getattr(request.app.state, "logged_first_request", False):
            user_agent = request.headers.get("user-agent", "")
            client_name = user_agent.split("/")[0] if user_agent else "unknown"
            client_ip = request.client.host if request.client else "unknown"
            request_logger.info(
                'client_connected="%s" ip="%s" url="%s %s" ua="%s"',
                client_name,
                client_ip,
                request.method,
                str(request.url),
                user_agent,
            )
            request.app.state.logged_first_request = True
        response = await call_next(request)
        if request.method == "POST" or request.url.path in ("/move", "/delete"):
            request_logger.debug(
                "%s %s -> %s", request.method, request.url.path, response.status_code
            )
        return response


@asynccontextmanager
async def _lifespan(app: FastAPI):
    async def _print_startup_messages():
        await asyncio.sleep(0.1)
        logger.info("Started server process [" + str(os.getpid()) + "]")
        logger.info("Application startup complete. (Press CTRL+C to quit)")
        public_url = getattr(app.state, "public_url", None)
        if public_url:
            logger.info("New tab page available at: " + public_url)

    asyncio.create_task(_print_startup_messages())
    yield


def create_app(
    config: NewtabConfig,
    engine: Engine,
    resolver: Optional[FaviconResolver] = None,
) -> FastAPI:
    """Build the app around one engine and one resolver shared by all requests."""
    app = FastAPI(title="newtab", lifespan=_lifespan)
    app.state.config = config
    app.state.engine = engine
    app.state.resolver = resolver or FaviconResolver.from_config(config.favicons)

    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> FileResponse:
        return FileResponse(
            STATIC_DIR / "favicon.ico",
            media_type="image/x-icon",
            headers={"Cache-Control": "public, max-age=86400"},
        )

    app.include_router(web_router)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    return app


class _UvicornStartupFilter(logging.Filter):
    """Suppress uvicorn startup messages; we print our own in lifespan."""

    _MARKERS = (
        "Started server process",
        "Waiting for application startup",
        "Application startup complete",
        "running on",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        raw = str(getattr(record, "msg", ""))
        return not any(m in msg or m in raw for m in self._MARKERS)


def run_server(
    config: NewtabConfig,
    engine: Engine,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Run the FastAPI app with Uvicorn."""
    import uvicorn

    effective_host = host or config.server_host
    effective_port = port or config.server_port

    app = create_app(config, engine)
    display_host = "localhost" if effective_host == "0.0.0.0" else effective_host
    app.state.public_url = f"http://{display_host}:{effective_port}/"

    startup_filter = _UvicornStartupFilter()
    for name in ("uvicorn", "uvicorn.error", "uvicorn.lifespan"):
        logging.getLogger(name).addFilter(startup_filter)

    uvicorn.run(
        app,
        host=effective_host,
        port=effective_port,
        log_level="info",
        log_config=None,
        access_log=config.logging.access_log,
    )
