from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tubely.api.v1 import get_api_router
from tubely.core.config import get_settings
from tubely.core.db import create_engine, create_session_factory
from tubely.core.errors import TubelyError
from tubely.core.logging import configure_logging, get_logger, level_from_name
from tubely.core.storage import Storage, get_storage
from tubely.media import FFmpegRemuxer, FFprobeProber, MediaProber, StreamRemuxer

logger = get_logger(component="api")


async def handle_tubely_error(request: Request, exc: TubelyError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request_failed", path=request.url.path, status=exc.status_code, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


def create_app(
    *,
    storage: Storage | None = None,
    prober: MediaProber | None = None,
    remuxer: StreamRemuxer | None = None,
) -> FastAPI:
    """Build the API. Collaborators can be injected; otherwise they follow settings."""
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage or get_storage(settings)
        app.state.prober = prober or FFprobeProber(settings.ffprobe_binary, timeout_s=settings.media_tool_timeout_s)
        app.state.remuxer = remuxer or FFmpegRemuxer(settings.ffmpeg_binary, timeout_s=settings.media_tool_timeout_s)
        app.state.engine = engine
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_exception_handler(TubelyError, handle_tubely_error)
    app.include_router(get_api_router())
    return app


app = create_app()


__all__ = ["app", "create_app"]
