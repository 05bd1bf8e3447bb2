"""
Round route handlers.

    POST /api/specs/{id}/rounds          start (owner)
    POST /api/rounds/{id}/answer         participant answer
    POST /api/rounds/{id}/close          owner, ACTIVE → REVIEWING
    POST /api/rounds/{id}/eliminate      owner, one user
    POST /api/rounds/{id}/eliminations   owner, several users then complete
    POST /api/rounds/{id}/nudge          owner, remind non-answerers
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.schemas.common import ApiResponse, ErrorResponse, ok
from app.schemas.spec import (
    AnswerRequest,
    AnswerResponse,
    EliminateUserRequest,
    EliminateUsersRequest,
    NudgeResponse,
    RoundResponse,
    RoundStartRequest,
)
from app.services.round_service import round_service

router = APIRouter(prefix="/api", tags=["Rounds"])

ROUND_ERRORS = {
    400: {"description": "Round is not in the required state", "model": ErrorResponse},
    403: {"description": "Caller may not act on this round", "model": ErrorResponse},
    404: {"description": "Round or participant not found", "model": ErrorResponse},
}


@router.post(
    "/specs/{spec_id}/rounds",
    status_code=201,
    response_model=ApiResponse[RoundResponse],
    responses=ROUND_ERRORS,
    summary="Start the next round",
)
async def start_round(
    spec_id: int,
    request: RoundStartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await round_service.start_round(db, user, spec_id, request), "Round started.")


@router.post(
    "/rounds/{round_id}/answer",
    status_code=201,
    response_model=ApiResponse[AnswerResponse],
    responses=ROUND_ERRORS,
)
async def submit_answer(
    round_id: int,
    request: AnswerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await round_service.submit_answer(db, user, round_id, request), "Answer submitted.")


@router.post("/rounds/{round_id}/close", response_model=ApiResponse[RoundResponse], responses=ROUND_ERRORS)
async def close_round(
    round_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return ok(await round_service.close_round(db, user, round_id), "Round closed for review.")


@router.post("/rounds/{round_id}/eliminate", response_model=ApiResponse[None], responses=ROUND_ERRORS)
async def eliminate_user(
    round_id: int,
    request: EliminateUserRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await round_service.eliminate_user(db, user, round_id, request.user_id)
    return ok(message="User eliminated.")


@router.post("/rounds/{round_id}/eliminations", response_model=ApiResponse[RoundResponse], responses=ROUND_ERRORS)
async def eliminate_users(
    round_id: int,
    request: EliminateUsersRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await round_service.eliminate_users(db, user, round_id, request.user_ids)
    return ok(result, "Round completed and users eliminated.")


@router.post("/rounds/{round_id}/nudge", response_model=ApiResponse[NudgeResponse], responses=ROUND_ERRORS)
async def nudge(
    round_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    nudged = await round_service.nudge(db, user, round_id)
    return ok(NudgeResponse(nudged=nudged), f"Nudged {nudged} participant(s).")
