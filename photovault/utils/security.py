"""
Security utility functions for JWT token management and public link tokens.
"""
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from photovault.config import get_settings
from photovault.schemas.user import TokenPayload

settings = get_settings()

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def create_access_token(
    user_id: int,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User ID to encode in the token
        email: Verified email claim (optional)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    expire = datetime.now(timezone.utc) + expires_delta

    to_encode = {
        "sub": str(user_id),  # JWT subject must be a string
        "exp": expire,
    }
    if email:
        to_encode["email"] = email

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string

    Returns:
        TokenPayload if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        user_id = payload.get("sub")
        exp = payload.get("exp")

        if user_id is None or exp is None:
            return None

        return TokenPayload(
            sub=int(user_id),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
            email=payload.get("email"),
        )

    except (JWTError, ValueError, TypeError):
        return None


def generate_public_token(nbytes: Optional[int] = None) -> str:
    """
    Generate an unguessable public link token.

    Args:
        nbytes: Random bytes (default settings.public_token_bytes)

    Returns:
        Lowercase hex string, two characters per byte
    """
    return secrets.token_hex(nbytes or settings.public_token_bytes)


def is_well_formed_public_token(token: str, nbytes: Optional[int] = None) -> bool:
    """Shape check done before any lookup."""
    expected = 2 * (nbytes or settings.public_token_bytes)
    return len(token) == expected and bool(_HEX_RE.match(token))
