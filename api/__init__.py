"""
API Module
FastAPI routers for the MedDrop application
"""

from api.patients import router as patients_router
from api.medicines import router as medicines_router
from api.doses import router as doses_router
from api.adherence import router as adherence_router
from api.sync import router as sync_router
from api.alerts import router as alerts_router

from api.deps import (
    ServiceContainer,
    get_services,
    get_now,
)


__all__ = [
    # Routers
    "patients_router",
    "medicines_router",
    "doses_router",
    "adherence_router",
    "sync_router",
    "alerts_router",
    # Dependencies
    "ServiceContainer",
    "get_services",
    "get_now",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(patients_router, prefix=prefix)
    app.include_router(medicines_router, prefix=prefix)
    app.include_router(doses_router, prefix=prefix)
    app.include_router(adherence_router, prefix=prefix)
    app.include_router(sync_router, prefix=prefix)
    app.include_router(alerts_router, prefix=prefix)
