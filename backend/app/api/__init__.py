"""API routers for the Pediatric Safety Engine."""

from app.api.patients import router as patients_router
from app.api.safety import router as safety_router
from app.api.vitals import router as vitals_router

__all__ = [
    "patients_router",
    "safety_router",
    "vitals_router",
]
