from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from newsdesk.access.seed import access_seed_helper
from newsdesk.api.routes import router as api_router
from newsdesk.core.config import get_settings
from newsdesk.core.context import RequestContextMiddleware
from newsdesk.core.database import SessionLocal
from newsdesk.logging import configure_logging
from newsdesk.middleware.correlation_id import CorrelationIdMiddleware
from newsdesk.middleware.request_logging import RequestLoggingMiddleware
from newsdesk.otel import configure_tracing, correlation_request_hook


configure_logging(get_settings())
logger = logging.getLogger("newsdesk.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.seed_on_startup:
        with SessionLocal() as session:
            access_seed_helper.ensure_baseline(session, admin_user_id=settings.default_admin_user_id)
        logger.info("access.seed.completed")
    logger.info("system.started", extra={"service": "api"})
    yield


app = FastAPI(title=get_settings().app_name, version=get_settings().app_version, lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

configure_tracing(get_settings())

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=correlation_request_hook)
