from .connection import (
    Base, get_db, init_db, create_engine_from_settings, create_session_factory,
    run_with_timeout
)

# Import models to ensure they are registered with Base
from .models import UserDB, ContactDB

__all__ = [
    'Base', 'get_db', 'init_db', 'create_engine_from_settings',
    'create_session_factory', 'run_with_timeout',
    'UserDB', 'ContactDB',
]
