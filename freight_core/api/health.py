"""
Health check endpoint.

Used by load balancers and monitoring to verify the service is
running and can reach its database.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freight_core.config import get_settings
from freight_core.models.base import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return service health including database connectivity.

    A failed database query reports the instance as degraded
    rather than failing the request.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        db_status = "unhealthy"

    settings = get_settings()
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "freight-core",
        "version": settings.APP_VERSION,
        "database": db_status,
    }
