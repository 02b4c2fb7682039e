import hashlib
import secrets
from dataclasses import dataclass

from jose import JWTError, jwt
from trustee_portal.config import settings
from trustee_portal.core.exceptions import UnauthorizedException


@dataclass(frozen=True)
class Identity:
    """
    Verified principal resolved from an access token.

    Attributes:
        auth_user_id: 'sub' claim issued by the external auth service
        email: 'email' claim, lower-cased, if present
        is_super_admin: Platform-wide administrator flag
    """

    auth_user_id: str
    email: str | None = None
    is_super_admin: bool = False


def decode_jwt(token: str) -> dict:
    """
    Decode and validate JWT token using shared SECRET_KEY.

    Args:
        token: JWT access token from Authorization header

    Returns:
        Decoded token payload with 'sub' (user_id), 'exp', etc.

    Raises:
        UnauthorizedException: If token invalid, expired, or malformed
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise UnauthorizedException(f"Invalid token: {str(e)}")

    # jose validates exp when present but does not require it
    if payload.get("exp") is None:
        raise UnauthorizedException("Token missing expiration")

    if not payload.get("sub"):
        raise UnauthorizedException("Token missing user identifier")

    return payload


def resolve_identity(token: str) -> Identity:
    """Build an Identity from a verified access token."""
    payload = decode_jwt(token)
    email = payload.get("email")
    return Identity(
        auth_user_id=str(payload["sub"]),
        email=email.strip().lower() if isinstance(email, str) and email.strip() else None,
        is_super_admin=payload.get("is_super_admin") is True,
    )


def generate_invitation_token(nbytes: int | None = None) -> str:
    """Opaque URL-safe token; shown once and never persisted."""
    return secrets.token_urlsafe(nbytes or settings.INVITATION_TOKEN_BYTES)


def hash_invitation_token(token: str) -> str:
    """One-way SHA-256 digest of the raw token, hex encoded."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
