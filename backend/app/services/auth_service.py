"""
SpecDate Backend — Auth Service
=================================

What:  Registration, login, logout and bearer-token resolution.
How:   bcrypt password hashes, HS256 JWTs carrying the user's token version.
       Logout and account deletion invalidate every outstanding token by
       bumping (or removing) that version.

Registration writes, in one transaction:
    users → user_profiles (location from the sign-up screen)
          → user_balances (initial sparks) → spark_skins (default skin)
"""

import logging
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AuthenticationError, ValidationError
from app.models import User, UserProfile
from app.schemas.auth import LoginRequest, RegisterRequest
from app.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from app.services.otp_service import otp_service
from app.services.spark_service import spark_service

logger = logging.getLogger(__name__)


class AuthService:

    async def _uniqueness_errors(self, db: AsyncSession, request: RegisterRequest) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}
        checks = (
            ("username", User.username, request.username),
            ("email", User.email, request.email),
            ("mobile", User.mobile, request.mobile),
        )
        for field, column, value in checks:
            taken = await db.scalar(select(User.id).where(column == value))
            if taken is not None:
                errors[field] = [f"The {field} has already been taken."]
        return errors

    async def register(self, db: AsyncSession, request: RegisterRequest) -> Tuple[User, str]:
        """
        Creates the account and returns (user, token).

        Raises:
            ValidationError: bad OTP code, or username / email / mobile taken
        """
        if request.otp_code:
            if not otp_service.consume(request.channel, request.target, request.otp_code):
                raise ValidationError(
                    message="Invalid or expired verification code.",
                    errors={"otp_code": ["Invalid or expired code."]},
                )

        errors = await self._uniqueness_errors(db, request)
        if errors:
            first = next(iter(errors.values()))[0]
            raise ValidationError(message=first, errors=errors)

        user = User(
            name=request.name or request.username,
            username=request.username,
            email=request.email,
            mobile=request.mobile,
            password_hash=hash_password(request.password),
            terms_accepted=request.terms_accepted,
            is_paused=False,
            token_version=1,
        )
        user.profile = UserProfile(
            latitude=request.latitude,
            longitude=request.longitude,
            city=request.city,
            state=request.state,
            country=request.country,
            continent=request.continent,
        )
        spark_service.initialize_for_user(user)
        db.add(user)
        await db.flush()

        logger.info("Registered user %d (%s)", user.id, user.username)
        return user, create_access_token(user.id, user.token_version)

    async def login(self, db: AsyncSession, request: LoginRequest) -> Tuple[User, str]:
        user = await db.scalar(select(User).where(User.email == request.email.strip()))
        if user is None or not verify_password(request.password, user.password_hash):
            logger.info("Failed login for %s", request.email)
            raise AuthenticationError("Unauthorised.")
        return user, create_access_token(user.id, user.token_version)

    async def logout(self, db: AsyncSession, user: User) -> None:
        user.token_version += 1
        await db.flush()
        logger.info("User %d logged out; tokens revoked", user.id)

    async def resolve_token(self, db: AsyncSession, token: str) -> User:
        """
        Maps a bearer token to its user.

        Raises:
            AuthenticationError: invalid/expired token, unknown user or revoked version
        """
        claims = decode_access_token(token)
        user = await db.get(User, claims["sub"])
        if user is None or claims.get("ver") != user.token_version:
            raise AuthenticationError()
        return user


auth_service = AuthService()
