"""
Authentication Service for the Contact Manager

Implements:
- Registration with bcrypt password hashing
- Email/password login
- JWT access token issuance (via TokenSigner)

Login never tells the caller whether the email exists: an unknown email and a
wrong password produce the same INVALID_CREDENTIALS result.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import run_with_timeout
from database.models import UserDB
from services.errors import Outcome
from services.tokens import TokenSigner

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_TIMEOUT = 5.0

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
DUPLICATE_EMAIL_MESSAGE = "A user with this email already exists"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ==================== RESULTS ====================

@dataclass
class AuthResult:
    """Outcome of register/login"""
    succeeded: bool
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    error: Optional[Outcome] = None

    @classmethod
    def failure(cls, error: Outcome, message: str) -> "AuthResult":
        return cls(succeeded=False, errors=[message], error=error)


# ==================== PASSWORD UTILITIES ====================

def verify_password(plain_password: str, hashed_password: str, context: CryptContext = pwd_context) -> bool:
    """Verify a password against its hash"""
    try:
        return context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e.__class__.__name__}")
        return False


def get_password_hash(password: str, context: CryptContext = pwd_context) -> str:
    """Hash a password"""
    return context.hash(password)


# ==================== AUTH SERVICE ====================

class AuthService:
    """
    Registers and authenticates users, issuing tokens through a TokenSigner.

    Usage:
        service = AuthService(db, signer)
        result = await service.login("jane@example.com", "S3cret!pass")
    """

    def __init__(
        self,
        db: AsyncSession,
        signer: TokenSigner,
        clock: Callable[[], datetime] = utc_now,
        timeout: float = DEFAULT_OPERATION_TIMEOUT,
        password_context: CryptContext = pwd_context,
    ):
        self.db = db
        self.signer = signer
        self.clock = clock
        self.timeout = timeout
        self.password_context = password_context

    async def get_user_by_email(self, email: str) -> Optional[UserDB]:
        """Case-insensitive lookup"""
        stmt = select(UserDB).where(UserDB.normalized_email == normalize_email(email))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str
    ) -> AuthResult:
        """Register a new user and return a token for it"""
        return await run_with_timeout(
            self._register(email, password, first_name, last_name),
            self.timeout,
            "auth.register",
        )

    async def _register(self, email: str, password: str, first_name: str, last_name: str) -> AuthResult:
        existing = await self.get_user_by_email(email)
        if existing:
            logger.info("Registration rejected: email already registered")
            return AuthResult.failure(Outcome.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

        # Hashing runs in a worker thread
        password_hash = await asyncio.to_thread(get_password_hash, password, self.password_context)

        user = UserDB(
            email=email.strip(),
            normalized_email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            created_at=self.clock(),
        )
        self.db.add(user)

        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent registration won the unique index
            await self.db.rollback()
            return AuthResult.failure(Outcome.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

        logger.info(f"User {user.id} registered successfully")
        return self._issue(user)

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate and return a fresh token"""
        return await run_with_timeout(
            self._login(email, password), self.timeout, "auth.login"
        )

    async def _login(self, email: str, password: str) -> AuthResult:
        user = await self.get_user_by_email(email)

        valid = user is not None and await asyncio.to_thread(
            verify_password, password, user.password_hash, self.password_context
        )
        if not valid:
            logger.warning("Login failed: invalid credentials")
            return AuthResult.failure(Outcome.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        logger.info(f"Login successful: user {user.id}")
        return self._issue(user)

    def _issue(self, user: UserDB) -> AuthResult:
        issued = self.signer.issue(
            user_id=user.id,
            email=user.email,
            given_name=user.first_name,
            family_name=user.last_name,
        )
        return AuthResult(
            succeeded=True,
            token=issued.token,
            expires_at=issued.expires_at,
            user_id=user.id,
            email=user.email,
        )
