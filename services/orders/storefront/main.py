"""
Storefront order service
Order placement, card payment reconciliation and fulfillment status
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
from sqlalchemy import Engine
from starlette.middleware.base import BaseHTTPMiddleware

from shared.core import ServiceHealth, HealthStatus, setup_logging, RequestLoggingMiddleware, get_logger
from storefront.core_settings import Settings, get_settings
from storefront.application.errors import StorefrontError
from storefront.api.routes import router as orders_router
from storefront.api.payment_routes import router as payments_router
from storefront.api.admin_routes import router as admin_router
from storefront.api.menu_routes import router as menu_router
from storefront.infrastructure.db import build_engine, build_session_factory, init_models
from storefront.infrastructure.catalog import HttpCatalogReader
from storefront.infrastructure.payment_gateway import PaymentGateway, StripePaymentGateway

SERVICE_NAME = "storefront-orders"
SERVICE_DESCRIPTION = "Order placement and payment reconciliation for the chocolate storefront"

logger = get_logger(__name__)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

def create_app(
    settings: Optional[Settings] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """Build the application with its collaborators.

    Tests pass their own settings (e.g. an in-memory SQLite URL) and a fake
    payment gateway; production uses environment settings and Stripe.
    """
    settings = settings or get_settings()
    setup_logging(
        service_name=SERVICE_NAME,
        level=settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        version=settings.SERVICE_VERSION,
    )

    engine = engine or build_engine(settings)
    if payment_gateway is None:
        payment_gateway = StripePaymentGateway(
            api_key=settings.STRIPE_SECRET_KEY,
            currency=settings.PAYMENT_CURRENCY,
            currency_exponent=settings.PAYMENT_CURRENCY_EXPONENT,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        )
    remote_catalog = None
    if settings.CATALOG_SERVICE_URL:
        remote_catalog = HttpCatalogReader(settings.CATALOG_SERVICE_URL, timeout=settings.CATALOG_TIMEOUT_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME} version {settings.SERVICE_VERSION}")
        try:
            init_models(engine)
            logger.info("Database models initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database models: {e}")
            raise
        logger.info(f"{SERVICE_NAME} started successfully")
        yield
        logger.info(f"Shutting down {SERVICE_NAME}")
        engine.dispose()

    app = FastAPI(
        title=SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.payment_gateway = payment_gateway
    app.state.remote_catalog = remote_catalog

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={'extra_fields': {'path': request.url.path}})
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message},
            headers=headers,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    health_service = ServiceHealth(SERVICE_NAME, settings.SERVICE_VERSION, engine=engine)
    health_service.add_check("payments:stripe", lambda: {
        "status": HealthStatus.PASS if getattr(payment_gateway, "is_configured", True) else HealthStatus.WARN,
        "componentType": "component",
    })
    app.include_router(health_service.create_health_router())

    app.include_router(menu_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    return app

app = create_app()
