from .pollen import router as pollen_router
from .locations import router as locations_router

__all__ = ["pollen_router", "locations_router"]
