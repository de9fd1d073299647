"""
Authentication utilities for password hashing and session tokens.
Provides bcrypt hashing, JWT session claims, and auth header parsing.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from flatmarket.config import Settings
from flatmarket.models.user import UserRole
from flatmarket.utils.exceptions import InvalidTokenError
import hmac
import logging
import uuid

logger = logging.getLogger(__name__)


class PasswordHasher:
    """One-way salted bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds
        )

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh random salt.

        Args:
            password: Plain text password

        Returns:
            Bcrypt digest string
        """
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: Optional[str]) -> bool:
        """
        Verify password against hash.

        Returns False on mismatch, on an empty or malformed digest, and on
        any error raised by the hashing backend.
        """
        if not password or not hashed_password:
            return False

        try:
            return self._context.verify(password, hashed_password)
        except Exception as e:
            logger.warning(f"Password verification failed closed: {type(e).__name__}")
            return False


@dataclass(frozen=True)
class SessionClaims:
    """Identity and role carried by a session token."""

    user_id: uuid.UUID
    role: UserRole
    expires_at: datetime


class TokenService:
    """Issues and verifies signed, time-bounded session tokens."""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret_key
        self._algorithm = settings.jwt_algorithm
        self._lifetime = timedelta(hours=settings.access_token_expire_hours)

    def issue(self, user_id: uuid.UUID, role: UserRole, now: Optional[datetime] = None) -> str:
        """
        Create a signed token for the user.

        Args:
            user_id: User's UUID
            role: Role to embed in the claims
            now: Issuance time (defaults to the current UTC time)

        Returns:
            Encoded JWT token string
        """
        issued_at = now or datetime.now(timezone.utc)
        expire = issued_at + self._lifetime

        to_encode = {
            "sub": str(user_id),
            "role": UserRole(role).value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expire.timestamp()),
        }

        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str, now: Optional[datetime] = None) -> SessionClaims:
        """
        Verify and decode a session token.

        Args:
            token: JWT token string
            now: Verification time (defaults to the current UTC time)

        Returns:
            SessionClaims for a valid token

        Raises:
            InvalidTokenError: For a bad signature, malformed token, missing
                claims, or a token at or past its expiry
        """
        if not token:
            raise InvalidTokenError()

        try:
            # Expiry is checked below against the supplied clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False}
            )
            user_id = uuid.UUID(payload["sub"])
            role = UserRole(payload["role"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (JWTError, KeyError, ValueError, TypeError) as e:
            raise InvalidTokenError() from e

        current = now or datetime.now(timezone.utc)
        if current >= expires_at:
            raise InvalidTokenError()

        return SessionClaims(user_id=user_id, role=role, expires_at=expires_at)


class AdminBypassPolicy:
    """
    Break-glass administrator login.

    An exact plaintext match against the configured admin email/password pair
    skips the password-hash check. Disabled unless both values are configured.
    """

    def __init__(self, settings: Settings):
        self._email = settings.admin_email
        self._password = settings.admin_password
        self.enabled = settings.admin_bypass_enabled

    def matches(self, email: str, password: str) -> bool:
        """Check whether the supplied pair is the configured break-glass credential."""
        if not self.enabled or email is None or password is None:
            return False

        email_ok = hmac.compare_digest(email.encode(), self._email.encode())
        password_ok = hmac.compare_digest(password.encode(), self._password.encode())
        return email_ok and password_ok


def extract_token(header_value: Optional[str]) -> Optional[str]:
    """
    Extract the token from the auth header.

    Accepts either a raw token or a two-part "<scheme> <token>" value.

    Returns:
        The token, or None when the header is absent or unusable
    """
    if not header_value or not header_value.strip():
        return None

    parts = header_value.split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return parts[1]
    return None
