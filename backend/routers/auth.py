from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from middleware.auth import CurrentUser, get_current_user_required, get_token_signer
from models.schemas import AuthResponse, CurrentUserResponse, LoginRequest, RegisterRequest
from services.audit import AuditAction, log_auth_action
from services.auth import AuthResult, AuthService
from services.tokens import TokenSigner

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_auth_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    signer: TokenSigner = Depends(get_token_signer),
) -> AuthService:
    return AuthService(
        db,
        signer,
        timeout=request.app.state.settings.DB_OPERATION_TIMEOUT_SECONDS,
    )


def _to_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        succeeded=result.succeeded,
        token=result.token,
        expires_at=result.expires_at,
        user_id=result.user_id,
        email=result.email,
        errors=result.errors or None,
    )


def _failure(result: AuthResult, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_to_response(result).model_dump(by_alias=True, mode="json", exclude_none=True),
    )


# ==================== PUBLIC ENDPOINTS ====================

@router.post(
    "/register",
    response_model=AuthResponse,
    response_model_exclude_none=True,
    responses={400: {"model": AuthResponse}},
)
async def register(
    register_data: RegisterRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user account and return an access token.

    Example:
    ```json
    {
      "email": "jane@example.com",
      "password": "S3cure!pass",
      "firstName": "Jane",
      "lastName": "Doe"
    }
    ```
    """
    result = await auth_service.register(
        email=register_data.email,
        password=register_data.password,
        first_name=register_data.first_name,
        last_name=register_data.last_name,
    )

    if not result.succeeded:
        log_auth_action(
            action=AuditAction.USER_REGISTER_FAILED,
            details={"reason": result.error.value if result.error else None},
            request=request,
            success=False,
            error_message="Registration rejected"
        )
        return _failure(result, status.HTTP_400_BAD_REQUEST)

    log_auth_action(
        action=AuditAction.USER_REGISTER,
        user_id=result.user_id,
        request=request
    )
    return _to_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    response_model_exclude_none=True,
    responses={401: {"model": AuthResponse}},
)
async def login(
    login_data: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Authenticate with email and password.

    Unknown emails and wrong passwords get the same 401 response.
    """
    result = await auth_service.login(login_data.email, login_data.password)

    if not result.succeeded:
        log_auth_action(
            action=AuditAction.USER_LOGIN_FAILED,
            details={"reason": "Invalid email or password"},
            request=request,
            success=False,
            error_message="Invalid credentials"
        )
        return _failure(result, status.HTTP_401_UNAUTHORIZED)

    log_auth_action(
        action=AuditAction.USER_LOGIN,
        user_id=result.user_id,
        request=request
    )
    return _to_response(result)


# ==================== AUTHENTICATED ENDPOINTS ====================

@router.get("/me", response_model=CurrentUserResponse)
async def get_me(current_user: CurrentUser = Depends(get_current_user_required)):
    """Identity asserted by the presented token"""
    return CurrentUserResponse(user_id=current_user.id, email=current_user.email)
