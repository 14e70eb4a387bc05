"""FastAPI application entry point."""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status

from userapi.api import users
from userapi.api.responses import (
    APIResponse,
    JSONCORSMiddleware,
    error_response,
    register_exception_handlers,
    unhandled_exception_handler,
)
from userapi.config import Settings, get_settings
from userapi.database import connect, create_session_factory
from userapi.logging_config import setup_logging
from userapi.migrations import run_migrations

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
BODY_METHODS = ("POST", "PUT", "PATCH")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect to the database and migrate it before serving traffic."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)

    engine = await asyncio.to_thread(connect, settings)
    await asyncio.to_thread(run_migrations, engine, settings.environment)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    logger.info(f"User API ready on {settings.host} ({settings.environment})")

    yield

    engine.dispose()
    logger.info("Database connections closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; the database is attached by the lifespan."""
    settings = settings or get_settings()

    app = FastAPI(
        title="User API",
        description="User accounts, opaque token login and pair subscriptions",
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=APIResponse,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def enforce_deadline(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), settings.request_timeout_seconds)
        except TimeoutError:
            logger.warning(f"Request {request.method} {request.url.path} timed out")
            return error_response(status.HTTP_504_GATEWAY_TIMEOUT, "request timed out")

    @app.middleware("http")
    async def require_json_body(request: Request, call_next):
        if request.method in BODY_METHODS and request.headers.get("content-length", "0") != "0":
            content_type = request.headers.get("content-type", "")
            if content_type.split(";")[0].strip().lower() != "application/json":
                return error_response(
                    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                    f"unsupported content type {content_type!r}",
                )
        return await call_next(request)

    app.add_middleware(
        JSONCORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["Link"],
        max_age=300,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            response = await unhandled_exception_handler(request, e)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{elapsed_ms:.1f}ms request_id={request_id}"
        )
        return response

    register_exception_handlers(app)
    app.include_router(users.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "environment": settings.environment}

    return app


app = create_app()
