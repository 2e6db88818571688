"""Tidewater FastAPI application.

Checkout, payment webhook, refund, VAT and receipt endpoints for the
storefront. Collaborators (store, gateway, mail transport) are built once in
the lifespan handler, or injected by the caller of ``create_app``.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000
"""

import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from container import Services, build_services
from ordering.api.routes import order_router, payment_router, vat_router
from ordering.domain import ordering
from shared.errors import GatewayError, StoreError, StoreUnavailableError, error_message
from shared.logging import bind_context, clear_context, configure_logging
from shared.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

# PROTEAN_ENV controls which config overlay is applied
ordering.init()

SHUTDOWN_DRAIN_SECONDS = 30


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain and adapter errors into ``{"error": message}`` responses."""

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(400, error_message(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}" for err in exc.errors()
        ]
        return _error(400, "; ".join(problems) or "Invalid request")

    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError):
        return _error(404, error_message(exc))

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError):
        logger.error("gateway_error", path=request.url.path, error=exc.message)
        return _error(500, exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error("store_unavailable", path=request.url.path, error=exc.message)
        return _error(503, "Order store is temporarily unavailable")

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        logger.error("store_error", path=request.url.path, error=exc.message)
        return _error(500, "Order store error")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
        return _error(500, "Internal server error")


def create_app(services: Services | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)
        if app.state.services is None:
            # Fails fast: a store or gateway that cannot be built stops startup
            app.state.services = build_services(settings)
        logger.info("app_started", environment=settings.ENVIRONMENT)
        yield
        await app.state.services.jobs.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
        logger.info("app_stopped")

    app = FastAPI(
        title="Tidewater API",
        description="Checkout, payments and tax invoices for the storefront",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the ordering domain context for API requests."""
        if request.url.path.startswith("/api"):
            with ordering.domain_context():
                return await call_next(request)
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        clear_context()
        bind_context(request_id=request.headers.get("x-request-id") or uuid4().hex[:12])
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    register_exception_handlers(app)

    app.include_router(payment_router)
    app.include_router(vat_router)
    app.include_router(order_router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/debug")
    async def debug(request: Request):
        current = request.app.state.services
        return {
            "environment": settings.ENVIRONMENT,
            "storeBackend": settings.STORE_BACKEND,
            "store": type(current.store).__name__ if current else None,
            "gateway": type(current.gateway).__name__ if current else None,
            "email": type(current.email).__name__ if current else None,
            "stripeConfigured": bool(settings.STRIPE_SECRET_KEY),
            "webhookSecretConfigured": bool(settings.STRIPE_WEBHOOK_SECRET),
            "smtpConfigured": bool(settings.SMTP_HOST),
            "pendingJobs": current.jobs.pending if current else 0,
            "corsOrigins": settings.cors_origins,
        }

    return app


app = create_app()
