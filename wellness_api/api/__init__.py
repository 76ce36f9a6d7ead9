# API Package - Centralized imports
# Allows easy importing of all routers and the auth dependencies

from .auth import router as auth_router, get_current_user, get_principal
from .users import router as users_router
from .medicines import router as medicines_router
from .doctors import router as doctors_router
from .labs import router as labs_router
from .appointments import router as appointments_router
from .orders import router as orders_router
from .search import router as search_router
from .upload import router as upload_router

__all__ = [
    # Auth
    "auth_router",
    "get_current_user",
    "get_principal",

    # Routers
    "users_router",
    "medicines_router",
    "doctors_router",
    "labs_router",
    "appointments_router",
    "orders_router",
    "search_router",
    "upload_router",
]
