from .auth import router as auth_router
from .contacts import router as contacts_router

__all__ = [
    'auth_router',
    'contacts_router',
]
