# Routers package
from . import appointments_router
from . import appointment_links_router

__all__ = [
    "appointments_router",
    "appointment_links_router",
]
