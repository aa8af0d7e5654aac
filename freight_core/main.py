"""
Freight Core: FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from freight_core.config import get_settings
from freight_core.logging_config import configure_logging
from freight_core.api.health import router as health_router
from freight_core.api.trips import router as trips_router
from freight_core.api.driver_payments import router as driver_payments_router
from freight_core.api.ledger import router as ledger_router

settings = get_settings()

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Trip lifecycle and inter-organization ledger for freight",
)

# Register routers
app.include_router(health_router)
app.include_router(trips_router)
app.include_router(driver_payments_router)
app.include_router(ledger_router)
