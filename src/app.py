"""Checkout FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
checkout domain context, and routes reach the service container through
``app.state.services``.

Usage:
    uvicorn app:create_app --factory --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from checkout.config import Settings
from checkout.container import CheckoutServices
from checkout.domain import checkout
from checkout.utils.db import configure_database
from checkout.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, services: CheckoutServices | None = None) -> FastAPI:
    """Build the application.

    ``services`` lets tests inject a container wired with fakes; otherwise one
    is assembled from ``settings`` (read from the environment when omitted).
    """
    settings = settings or (services.settings if services else Settings.from_env())
    configure_logging(settings)

    # ---------------------------------------------------------------------------
    # Domain initialization
    # ---------------------------------------------------------------------------
    if services is None:
        configure_database(checkout, settings)
        checkout.init()
        services = CheckoutServices.build(checkout, settings)
    domain = services.domain

    app = FastAPI(
        title="Checkout API",
        description="Marketplace checkout: orders, stock reservations and payments",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the checkout domain context for each request."""
        with domain.domain_context():
            return await call_next(request)

    # ---------------------------------------------------------------------------
    # Routers
    # ---------------------------------------------------------------------------
    from checkout.api import maintenance_router, order_router, payment_router, stock_router
    from checkout.api.errors import request_validation_handler

    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(stock_router)
    app.include_router(maintenance_router)
    register_exception_handlers(app)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # ---------------------------------------------------------------------------
    # Health / root
    # ---------------------------------------------------------------------------
    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "service": "checkout",
                "gateway": type(services.gateway).__name__,
            }
        )

    logger.info("Checkout API ready", environment=settings.environment, gateway=settings.gateway)
    return app

