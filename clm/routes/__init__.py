"""API routes package."""

from clm.routes.contracts import router as contracts_router
from clm.routes.health import router as health_router
from clm.routes.validations import router as validations_router

__all__ = ["contracts_router", "health_router", "validations_router"]
