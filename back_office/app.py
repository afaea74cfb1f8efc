"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from back_office.routers import (
    customer_products, customers, dashboard, message_templates, products,
    settings, tasks, transactions, webhooks,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        from back_office.scheduler import scheduler
        scheduler.start()
        logger.info("Scheduler started, checking lifecycle expiry")
    except Exception as e:
        logger.warning("Scheduler failed to start: %s", e)

    yield

    try:
        from back_office.scheduler import scheduler
        scheduler.shutdown(wait=False)
    except Exception as e:
        logger.debug("Scheduler shutdown: %s", e)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Shop Back Office",
        description=(
            "Product catalog, point-of-sale transactions and customer "
            "service-lifecycle scheduling."
        ),
        version="1.0.0",
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}

    for r in [products, customers, transactions, customer_products, tasks,
              message_templates, settings, dashboard]:
        app.include_router(r.router)

    # Delivery callbacks, hidden from API docs
    app.include_router(webhooks.router, include_in_schema=False)

    return app
