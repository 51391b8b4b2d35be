import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.config import Config, config as default_config
from telemetry_relay import metrics
from telemetry_relay.acceptor import ConnectionAcceptor
from telemetry_relay.hub import BroadcastHub
from telemetry_relay.ingest import IngestEndpoint
from telemetry_relay.registry import ObserverRegistry
from telemetry_relay.state import get_last_seen, get_start_time, set_start_time

log = logging.getLogger(__name__)


def create_app(
    *,
    settings: Optional[Config] = None,
    registry: Optional[ObserverRegistry] = None,
    hub: Optional[BroadcastHub] = None,
    acceptor: Optional[ConnectionAcceptor] = None,
) -> FastAPI:
    settings = settings or default_config
    registry = registry or ObserverRegistry()
    hub = hub or BroadcastHub(registry, send_timeout=settings.SEND_TIMEOUT)
    acceptor = acceptor or ConnectionAcceptor(registry, greeting=settings.GREETING)
    ingest = IngestEndpoint(hub)

    @asynccontextmanager
    async def _lifespan(_: FastAPI):
        set_start_time(int(time.time() * 1000))
        log.info(
            "Mission Control Backend running: dashboard GET /, WS %s, POST %s (port %s)",
            settings.WS_PATH, settings.INGEST_PATH, settings.PORT,
        )
        try:
            yield
        finally:
            await acceptor.shutdown()
            log.info("Mission Control Backend stopped")

    app = FastAPI(title="Telemetry Relay", version="1.0.0", lifespan=_lifespan)
    app.state.registry = registry
    app.state.hub = hub
    app.state.acceptor = acceptor
    app.state.ingest = ingest

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def _not_found(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return PlainTextResponse(f"Not Found. Use POST {settings.INGEST_PATH} to send data.", status_code=404)
        return await http_exception_handler(request, exc)

    @app.options("/{path:path}", include_in_schema=False)
    async def options_any(path: str):
        # CORS preflights are answered by the middleware; bare OPTIONS get an empty 204
        return Response(status_code=204)

    @app.get("/", response_class=HTMLResponse)
    async def dashboard():
        html_path = Path(settings.DASHBOARD_HTML)
        try:
            content = html_path.read_bytes()
        except OSError:
            log.exception("could not read dashboard document %s", html_path)
            return PlainTextResponse(f"Error loading {html_path.name}", status_code=500)
        return HTMLResponse(content=content)

    @app.post(settings.INGEST_PATH)
    async def telemetry(request: Request):
        result = await ingest.handle_ingest(await request.body())
        return JSONResponse(result.to_dict(), status_code=result.status_code)

    @app.get("/health")
    def health():
        now = int(time.time() * 1000)
        start_time = get_start_time()
        uptime = now - start_time if start_time else None

        return {
            "status": "ok",
            "uptime_ms": uptime,
            "observers": len(registry.live()),
            "metrics": metrics.snapshot(),
            "agents": get_last_seen(),
        }

    @app.websocket(settings.WS_PATH)
    async def observer_stream(ws: WebSocket):
        """
        Push channel for dashboards.
        Receives nothing meaningful; only server->client pushes.
        """
        observer = await acceptor.on_connect(ws)
        if observer is None:
            return
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except Exception as exc:
            acceptor.on_error(observer, exc)
        finally:
            acceptor.on_close(observer)

    return app
