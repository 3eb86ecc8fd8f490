"""FastAPI application factory."""
from __future__ import annotations
import logging
import threading
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from imgsearch import __version__
from imgsearch.config import settings
from imgsearch.domain.exceptions import (
    ConfigurationError,
    ForbiddenError,
    InvalidInputError,
    ModelUnavailableError,
    NotFoundError,
)
from imgsearch.logging import configure_logging
from imgsearch.runtime import Runtime, get_runtime, set_runtime

logger = logging.getLogger(__name__)


def _warm_up(rt: Runtime) -> None:
    """Load the model off the event loop, then kick the pipeline once."""
    load = getattr(rt.model, "load", None)
    if load is None:
        return
    if load():
        rt.pipeline.trigger()


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from imgsearch.db import init_db
        configure_logging()
        init_db()
        rt = get_runtime()
        if settings.LOAD_MODEL_ON_STARTUP and not rt.model.ready():
            threading.Thread(
                target=_warm_up, args=(rt,), name="imgsearch-model-load", daemon=True,
            ).start()
        if settings.EMBEDDINGS_ON_STARTUP:
            rt.pipeline.start()
        try:
            yield
        finally:
            rt.close()
            set_runtime(None)

    app = FastAPI(
        title="Image Search API",
        version=__version__,
        lifespan=lifespan,
    )

    # Import routers inside create_app() to avoid circular imports at module load time
    from imgsearch.api.routers.collections import router as collections_router
    from imgsearch.api.routers.images import router as images_router
    from imgsearch.api.routers.status import router as status_router

    app.include_router(images_router)
    app.include_router(collections_router)
    app.include_router(status_router)

    @app.exception_handler(NotFoundError)
    def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.message})

    @app.exception_handler(ForbiddenError)
    def _forbidden(request: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.message})

    @app.exception_handler(InvalidInputError)
    def _invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(ConfigurationError)
    def _configuration(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error: %s", exc.message)
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(ModelUnavailableError)
    def _model_unavailable(request: Request, exc: ModelUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.message})

    return app
