"""Password hashing and session token issuance/verification."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from pydantic import ValidationError

from accounts.schemas.auth import SessionClaims

DEFAULT_BCRYPT_ROUNDS = 10
DEFAULT_JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Base class for session token verification failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidTokenError(TokenError):
    """Signature mismatch, wrong secret or malformed payload."""


class ExpiredTokenError(TokenError):
    """Token was well-formed and signed but its exp is in the past."""


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors.
    pw_bytes = plain_password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or DEFAULT_BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """Verify a plain password against a stored hash. False when there is no hash."""
    if not hashed:
        return False
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_session_token(
    claims: SessionClaims,
    secret: str,
    ttl: timedelta,
    algorithm: str = DEFAULT_JWT_ALGORITHM,
    now: datetime | None = None,
) -> str:
    """Create a signed JWT carrying claims (sub, username, activated_at) plus iat and exp."""
    issued_at = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(claims.id),
        "username": claims.username,
        "activated_at": claims.activated_at.isoformat() if claims.activated_at else None,
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(
    token: str,
    secret: str,
    algorithm: str = DEFAULT_JWT_ALGORITHM,
) -> SessionClaims:
    """
    Verify token and return its claims.

    Raises ExpiredTokenError when exp has passed and InvalidTokenError for any
    other failure (bad signature, other secret, missing exp/sub, bad claims).
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError("Token has expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError("Invalid token") from e
    try:
        return SessionClaims(
            id=int(payload["sub"]),
            username=payload.get("username"),
            activated_at=payload.get("activated_at"),
        )
    except (ValidationError, ValueError, TypeError) as e:
        raise InvalidTokenError("Invalid token payload") from e
