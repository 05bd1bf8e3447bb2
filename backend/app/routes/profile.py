"""
SpecDate Backend — Profile and User Route Handlers
====================================================

    GET  /api/user         the signed-in user with profile, balance, skin, gallery
    PUT  /api/profile      partial profile update
    GET  /api/users        search other users (20 per page)
    GET  /api/users/{id}   public profile
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.schemas.common import ApiResponse, ErrorResponse, Page, ok
from app.schemas.profile import (
    MeResponse,
    ProfileUpdateRequest,
    PublicUserResponse,
    UserSummary,
)
from app.services.profile_service import profile_service

router = APIRouter(prefix="/api", tags=["Profile"])


@router.get("/user", response_model=ApiResponse[MeResponse], summary="Current user")
async def me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await profile_service.me(db, user))


@router.put(
    "/profile",
    response_model=ApiResponse[MeResponse],
    responses={422: {"description": "Invalid field value", "model": ErrorResponse}},
    summary="Update the caller's profile",
)
async def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await profile_service.update_profile(db, user, request), "Profile updated successfully.")


@router.get("/users", response_model=ApiResponse[Page[UserSummary]], summary="Search users")
async def search_users(
    sex: Optional[str] = Query(default=None, description="Exact match; 'All' disables the filter"),
    city: Optional[str] = Query(default=None, description="Partial match"),
    query: Optional[str] = Query(default=None, description="Name, full name, city or occupation"),
    page: int = Query(default=1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await profile_service.search_users(db, user, sex=sex, city=city, query=query, page=page)
    return ok(result, "Users retrieved successfully.")


@router.get(
    "/users/{user_id}",
    response_model=ApiResponse[PublicUserResponse],
    responses={404: {"description": "Missing or paused user", "model": ErrorResponse}},
    summary="Public profile",
)
async def public_profile(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await profile_service.public_profile(db, user_id), "Profile retrieved successfully.")
