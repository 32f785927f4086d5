"""
JWT signing and verification.

TokenSigner is stateless: every token is a pure function of the signing
secret, the claims and the clock it was given. Verification checks the
signature, issuer, audience and expiry with no clock-skew allowance.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt

from services.errors import ConfigurationError, InvalidTokenError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

REQUIRED_CLAIMS = ("sub", "email", "jti", "iat", "exp")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    """Compact token plus the metadata returned to the client"""
    token: str
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims extracted from a bearer token"""
    user_id: str
    email: str
    given_name: Optional[str]
    family_name: Optional[str]
    token_id: str
    issued_at: datetime
    expires_at: datetime


class TokenSigner:
    """
    Issues and verifies HS256 access tokens.

    Construction fails with ConfigurationError when the secret is empty, so a
    misconfigured process dies at startup instead of on the first request.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        audience: str,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
        clock: Callable[[], datetime] = utc_now,
        algorithm: str = ALGORITHM,
    ):
        if not secret_key:
            raise ConfigurationError("JWT_SECRET_KEY is not configured")
        if expire_minutes <= 0:
            raise ConfigurationError("Token expiry must be a positive number of minutes")

        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.expire_minutes = expire_minutes
        self.clock = clock
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], datetime] = utc_now) -> "TokenSigner":
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
            clock=clock,
            algorithm=settings.JWT_ALGORITHM,
        )

    def issue(
        self,
        user_id: str,
        email: str,
        given_name: Optional[str] = None,
        family_name: Optional[str] = None,
    ) -> IssuedToken:
        """Create a signed access token for one user"""
        now = self.clock()
        expires_at = now + timedelta(minutes=self.expire_minutes)
        token_id = str(uuid.uuid4())

        to_encode = {
            "sub": user_id,
            "email": email,
            "given_name": given_name,
            "family_name": family_name,
            "jti": token_id,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
            "aud": self.audience,
        }

        token = jwt.encode(to_encode, self._secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=expires_at, token_id=token_id)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises InvalidTokenError on a bad signature, wrong issuer or audience,
        expiry (exp must be strictly in the future), or missing claims.
        """
        if not token:
            raise InvalidTokenError("Token is empty")

        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_exp": False,
                    "require_aud": True,
                    "require_iss": True,
                    "leeway": 0,
                },
            )
        except JWTError as e:
            logger.warning(f"JWT decode error: {e}")
            raise InvalidTokenError(str(e)) from e

        missing = [claim for claim in REQUIRED_CLAIMS if payload.get(claim) in (None, "")]
        if missing:
            raise InvalidTokenError(f"Missing claims: {', '.join(missing)}")

        try:
            expires_ts = int(payload["exp"])
            issued_ts = int(payload["iat"])
        except (TypeError, ValueError) as e:
            raise InvalidTokenError("Malformed time claims") from e

        if expires_ts <= int(self.clock().timestamp()):
            raise InvalidTokenError("Token has expired")

        return TokenClaims(
            user_id=str(payload["sub"]),
            email=payload["email"],
            given_name=payload.get("given_name"),
            family_name=payload.get("family_name"),
            token_id=payload["jti"],
            issued_at=datetime.fromtimestamp(issued_ts, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_ts, tz=timezone.utc),
        )
