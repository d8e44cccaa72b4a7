"""
RTMP Squid backend service: HTTP API over the stream engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from squid import __version__, config
from squid.engine import StreamEngine
from squid.routes import events, health, playlists, streams

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def create_app(engine: Optional[StreamEngine] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        engine: Stream engine to serve. A default engine is created if not provided.

    Returns:
        FastAPI application. The engine is available as app.state.engine.
    """
    engine = engine or StreamEngine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        logger.info("[API] Stream engine started")
        try:
            yield
        finally:
            logger.info("[API] Shutting down, stopping all streams")
            await engine.shutdown()

    app = FastAPI(title="RTMP Squid", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine

    app.include_router(health.router)
    app.include_router(streams.router)
    app.include_router(playlists.router)
    app.include_router(events.router)

    @app.get("/")
    async def root():
        return {"service": "rtmp-squid", "status": "running"}

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """
    Run the API server.

    Args:
        host: Host to bind to (default: config.HOST)
        port: Port to listen on (default: config.PORT)
    """
    import uvicorn

    configure_logging()
    host = host or config.HOST
    port = port or config.PORT
    logger.info(f"[API] Starting RTMP Squid on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level=config.LOG_LEVEL.lower())
