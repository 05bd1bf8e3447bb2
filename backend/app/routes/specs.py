"""
SpecDate Backend — Spec and Application Route Handlers
========================================================

What:  Feed, my specs, spec CRUD, likes, joining and the owner's decisions.
Who:   Mobile Home (feed), Spec detail, Create spec and Requests screens.

    GET    /api/specs                                  feed (10 per page)
    GET    /api/my-specs                               owned / joined (20 per page)
    POST   /api/specs                                  create (complete profile)
    GET    /api/specs/{id}                             detail
    PUT    /api/specs/{id}                             update (owner)
    DELETE /api/specs/{id}                             delete (owner)
    POST   /api/specs/{id}/like                        toggle like
    POST   /api/specs/{id}/join                        apply (one blue spark)
    POST   /api/specs/{id}/applications/{aid}/approve  owner
    POST   /api/specs/{id}/applications/{aid}/reject   owner
    POST   /api/specs/{id}/applications/{aid}/eliminate owner
    POST   /api/specs/{id}/applications/{aid}/winner   owner
    GET    /api/requests/pending                       pending applications on my specs
"""

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user, require_complete_profile
from app.models import User
from app.schemas.common import ApiResponse, ErrorResponse, Page, ok
from app.schemas.spec import (
    ApplicationResponse,
    LikeResponse,
    SpecCreateRequest,
    SpecDateResponse,
    SpecDetailResponse,
    SpecResponse,
    SpecUpdateRequest,
)
from app.services.spec_service import spec_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Specs"])

OWNER_ERRORS = {
    403: {"description": "Caller is not the spec owner", "model": ErrorResponse},
    404: {"description": "Spec or application not found", "model": ErrorResponse},
}


# ── Listing ───────────────────────────────────────────────────────────────

@router.get("/specs", response_model=ApiResponse[Page[SpecResponse]], summary="Spec feed")
async def list_specs(
    filter: Literal["LIVE", "POPULAR", "HOTTEST", "ONGOING"] = Query(default="LIVE"),
    exclude_own: bool = Query(default=False, description="Hide specs created by the caller"),
    page: int = Query(default=1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.list_feed(db, user, filter=filter, exclude_own=exclude_own, page=page)
    return ok(result, "Specs retrieved successfully.")


@router.get("/my-specs", response_model=ApiResponse[Page[SpecResponse]], summary="Specs I own or joined")
async def my_specs(
    type: Literal["all", "owned", "joined"] = Query(default="all"),
    page: int = Query(default=1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.list_mine(db, user, type=type, page=page)
    return ok(result, "My specs retrieved successfully.")


@router.get(
    "/requests/pending",
    response_model=ApiResponse[List[ApplicationResponse]],
    summary="Pending applications on the caller's specs",
)
async def pending_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.pending_requests(db, user), "Pending requests retrieved.")


# ── CRUD ──────────────────────────────────────────────────────────────────

@router.post(
    "/specs",
    status_code=201,
    response_model=ApiResponse[SpecResponse],
    responses={403: {"description": "Paused account or incomplete profile", "model": ErrorResponse}},
    summary="Create a spec",
)
async def create_spec(
    request: SpecCreateRequest,
    user: User = Depends(require_complete_profile),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.create_spec(db, user, request), "Spec created successfully.")


@router.get(
    "/specs/{spec_id}",
    response_model=ApiResponse[SpecDetailResponse],
    responses={404: {"description": "Spec not found", "model": ErrorResponse}},
    summary="Spec detail",
)
async def show_spec(
    spec_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.get_spec(db, user, spec_id), "Spec retrieved successfully.")


@router.put("/specs/{spec_id}", response_model=ApiResponse[SpecResponse], responses=OWNER_ERRORS)
async def update_spec(
    spec_id: int,
    request: SpecUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.update_spec(db, user, spec_id, request), "Spec updated successfully.")


@router.delete("/specs/{spec_id}", response_model=ApiResponse[None], responses=OWNER_ERRORS)
async def delete_spec(
    spec_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await spec_service.delete_spec(db, user, spec_id)
    return ok(message="Spec deleted successfully.")


@router.post("/specs/{spec_id}/like", response_model=ApiResponse[LikeResponse])
async def toggle_like(
    spec_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.toggle_like(db, user, spec_id), "Like toggled.")


# ── Applications ──────────────────────────────────────────────────────────

@router.post(
    "/specs/{spec_id}/join",
    response_model=ApiResponse[ApplicationResponse],
    responses={
        400: {"description": "Own spec, already applied, or spec closed", "model": ErrorResponse},
        403: {"description": "PROFILE_INCOMPLETE or INSUFFICIENT_FUNDS", "model": ErrorResponse},
        422: {"description": "Requirement not met", "model": ErrorResponse},
    },
    summary="Apply to a spec",
)
async def join_spec(
    spec_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await spec_service.join(db, user, spec_id), "Application sent successfully.")


@router.post(
    "/specs/{spec_id}/applications/{application_id}/approve",
    response_model=ApiResponse[ApplicationResponse],
    responses=OWNER_ERRORS,
)
async def approve_application(
    spec_id: int,
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.approve_application(db, user, spec_id, application_id)
    return ok(result, "Application approved.")


@router.post(
    "/specs/{spec_id}/applications/{application_id}/reject",
    response_model=ApiResponse[ApplicationResponse],
    responses=OWNER_ERRORS,
)
async def reject_application(
    spec_id: int,
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.reject_application(db, user, spec_id, application_id)
    return ok(result, "Application rejected.")


@router.post(
    "/specs/{spec_id}/applications/{application_id}/eliminate",
    response_model=ApiResponse[ApplicationResponse],
    responses=OWNER_ERRORS,
)
async def eliminate_application(
    spec_id: int,
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.eliminate_application(db, user, spec_id, application_id)
    return ok(result, "Participant eliminated.")


@router.post(
    "/specs/{spec_id}/applications/{application_id}/winner",
    response_model=ApiResponse[SpecDateResponse],
    responses=OWNER_ERRORS,
    summary="Choose the winner and complete the spec",
)
async def select_winner(
    spec_id: int,
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await spec_service.select_winner(db, user, spec_id, application_id)
    return ok(result, "Winner selected.")
