"""
SpecDate Backend — Request Dependencies
=========================================

What:  FastAPI dependencies that resolve the signed-in user.
How:   `Authorization: Bearer <jwt>` is decoded and matched against the
       user's current token version. The same request-scoped DB session
       is shared with the route (FastAPI caches dependencies per request).

    get_current_user          401 when the token is missing, invalid or revoked
    require_complete_profile  403 PROFILE_INCOMPLETE on top of the above
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import AuthenticationError, PermissionDeniedError
from app.models import User
from app.services.auth_service import auth_service
from app.services.profile_service import is_profile_complete

# auto_error=False: a missing header goes through our 401 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    return await auth_service.resolve_token(db, credentials.credentials)


async def require_complete_profile(user: User = Depends(get_current_user)) -> User:
    if not is_profile_complete(user.profile):
        raise PermissionDeniedError(
            "Please complete your profile to continue.",
            code="PROFILE_INCOMPLETE",
        )
    return user
