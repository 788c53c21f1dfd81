from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

import ats.models  # noqa: F401
from ats.api.routes import router as api_router
from ats.core.config import get_settings
from ats.core.context import RequestContextMiddleware
from ats.core.responses import register_exception_handlers
from ats.logging import configure_logging
from ats.middleware.correlation_id import CorrelationIdMiddleware
from ats.middleware.rate_limit import MutationRateLimitMiddleware
from ats.middleware.request_logging import RequestLoggingMiddleware
from ats.otel import server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("ats.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("system.started", extra={"service": settings.app_name, "environment": settings.app_env})
    yield
    logger.info("system.stopped", extra={"service": settings.app_name})


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(MutationRateLimitMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(app)
app.include_router(api_router)

setup_otel(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)
