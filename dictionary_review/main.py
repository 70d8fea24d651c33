from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from opentelemetry.sdk.trace import TracerProvider
from starlette.requests import Request

from dictionary_review.api.router import api_router
from dictionary_review.core.config import get_settings
from dictionary_review.core.telemetry import setup_api_telemetry, shutdown_api_telemetry
from dictionary_review.services.engine import get_engine
from dictionary_review.services.repository import get_entity_store

settings = get_settings()
_tracer_provider: TracerProvider | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _tracer_provider
    try:
        yield
    finally:
        if _tracer_provider is not None:
            shutdown_api_telemetry(app, _tracer_provider)
            _tracer_provider = None
        # Closes the asyncpg pool behind the cached engine.
        await get_engine().close()
        get_engine.cache_clear()
        get_entity_store.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_tracer_provider = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
