"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from rentverse_bookings.api.errors import register_exception_handlers
from rentverse_bookings.api.middleware import RequestIDMiddleware, MetricsMiddleware
from rentverse_bookings.api.v1 import bookings, properties
from rentverse_bookings.infrastructure.observability.logging import setup_logging
from rentverse_bookings.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Rentverse Bookings",
        description="Property bookings, installment payments and rental agreements",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(bookings.router, prefix="/v1", tags=["bookings"])
    app.include_router(properties.router, prefix="/v1", tags=["properties"])

    return app


app = create_app()
