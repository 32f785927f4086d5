from .schemas import (
    RegisterRequest, LoginRequest, AuthResponse, CurrentUserResponse,
    ContactInput, ContactCreate, ContactUpdate, ContactResponse, DeletedContactResponse,
    PagedResponse, ErrorResponse
)

__all__ = [
    'RegisterRequest', 'LoginRequest', 'AuthResponse', 'CurrentUserResponse',
    'ContactInput', 'ContactCreate', 'ContactUpdate', 'ContactResponse', 'DeletedContactResponse',
    'PagedResponse', 'ErrorResponse'
]
