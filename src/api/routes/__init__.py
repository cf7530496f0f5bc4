"""API route modules."""

from .absenteeism import router as absenteeism_router
from .health import router as health_router

__all__ = ["health_router", "absenteeism_router"]
