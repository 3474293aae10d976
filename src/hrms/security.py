"""Password hashing and access token signing."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from hrms.authorization import Role, role_from_authority
from hrms.config import Settings
from hrms.exceptions import UnauthorizedError


class InvalidAccessTokenError(UnauthorizedError):
    """Raised when a bearer token fails verification."""

    code = "INVALID_TOKEN"


# ============================================================================
# Passwords
# ============================================================================


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# ============================================================================
# Access tokens
# ============================================================================


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified claims of an access token."""

    username: str
    roles: frozenset[Role]
    issued_at: datetime
    expires_at: datetime


def create_access_token(
    username: str,
    roles: Iterable[Role],
    settings: Settings,
    now: datetime | None = None,
) -> str:
    """Sign an access token for the user."""
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": username,
        "roles": ",".join(role.authority for role in roles),
        "iss": settings.jwt_issuer,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(seconds=settings.access_token_ttl_seconds)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> AccessTokenClaims:
    """Verify signature, issuer and expiry, and return the claims.

    Raises:
        InvalidAccessTokenError: If the token is malformed, tampered with,
            issued by someone else, or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require_iat": True, "require_exp": True, "require_sub": True},
        )
    except ExpiredSignatureError as e:
        raise InvalidAccessTokenError("Access token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        raise InvalidAccessTokenError("Invalid access token") from e

    username = payload.get("sub")
    if not username:
        raise InvalidAccessTokenError("Access token has no subject")

    roles = {
        role
        for role in (role_from_authority(a) for a in str(payload.get("roles", "")).split(","))
        if role is not None
    }
    return AccessTokenClaims(
        username=username,
        roles=frozenset(roles),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def generate_refresh_token() -> str:
    """Random opaque refresh token value."""
    return secrets.token_urlsafe(48)
