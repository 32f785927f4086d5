"""
Authentication Dependencies

Provides:
- get_token_signer: the TokenSigner built at startup
- get_current_user_required: verify the bearer token and expose the caller
- get_current_user_id: just the verified subject id

The caller's identity comes only from the verified "sub" claim. Nothing in a
request body or query string can change it.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from logging_config import set_request_context
from sentry_integration import set_user
from services.errors import InvalidTokenError
from services.tokens import TokenSigner

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller, as asserted by a verified token"""
    id: str
    email: str


def get_token_signer(request: Request) -> TokenSigner:
    return request.app.state.token_signer


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user_required(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    signer: TokenSigner = Depends(get_token_signer),
) -> CurrentUser:
    """
    Extract current user from JWT token.
    Raises 401 if no token or invalid token.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Not authenticated")

    try:
        claims = signer.verify(credentials.credentials)
    except InvalidTokenError:
        raise _unauthorized("Invalid or expired token")

    set_request_context(user_id=claims.user_id)
    set_user(claims.user_id)

    return CurrentUser(id=claims.user_id, email=claims.email)


async def get_current_user_id(
    user: CurrentUser = Depends(get_current_user_required),
) -> str:
    return user.id
