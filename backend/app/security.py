"""
SpecDate Backend — Password Hashing and Bearer Tokens
=======================================================

What:  bcrypt password hashing and HS256 JWT access tokens.
How:   Tokens carry the user id (`sub`) and the user's token version (`ver`).
       A token is accepted only while `ver` matches users.token_version, so
       logout (which increments the version) revokes every token for that user.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt

from app.config import settings
from app.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(user_id: int, token_version: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "ver": token_version,
        "iat": now,
        "exp": now + timedelta(days=settings.token_ttl_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Validates signature and expiry and returns the claims.

    Raises:
        AuthenticationError for any invalid, expired or malformed token.
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired.")
    except jwt.PyJWTError as e:
        logger.debug("Rejected bearer token: %s", str(e))
        raise AuthenticationError()

    try:
        claims["sub"] = int(claims["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError()
    return claims
