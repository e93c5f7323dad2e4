"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from merceton_billing.api.middleware import RequestIDMiddleware, MetricsMiddleware
from merceton_billing.api.v1 import jobs, merchants, orders, payments
from merceton_billing.infrastructure.observability.logging import setup_logging
from merceton_billing.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Merceton Billing",
        description="Order fees, ledger and platform invoicing service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(orders.router, prefix="/v1", tags=["orders"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(merchants.router, prefix="/v1", tags=["merchants"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])

    return app


app = create_app()
