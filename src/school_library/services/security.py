"""
Password hashing and bearer token verification.

Tokens are minted by the identity provider in front of this API; the
backend only verifies them. The ``sub`` claim carries the user id.
"""

import re

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from ..config import get_config
from ..database.errors import AuthenticationError, ValidationError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PASSWORD_MIN_LENGTH = 8
_HAS_LETTER = re.compile(r"[A-Za-z]")
_HAS_DIGIT = re.compile(r"\d")


class TokenData(BaseModel):
    """Decoded JWT payload."""

    sub: str
    exp: int | None = None
    iat: int | None = None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Check a plain password against a stored hash; unknown hash formats never match."""
    if not password_hash or not pwd_context.identify(password_hash):
        return False
    return pwd_context.verify(plain_password, password_hash)


def validate_password_strength(password: str) -> str:
    """
    Require at least eight characters with one letter and one digit.

    Raises:
        ValidationError: If the password is too weak
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not _HAS_LETTER.search(password) or not _HAS_DIGIT.search(password):
        raise ValidationError("Password must contain at least one letter and one number")
    return password


def decode_access_token(token: str) -> TokenData:
    """
    Decode and validate a bearer token.

    Raises:
        AuthenticationError: If the token is expired, malformed or has no subject
    """
    config = get_config()
    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    return TokenData(**{k: payload.get(k) for k in ("sub", "exp", "iat")})
