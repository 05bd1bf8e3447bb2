"""Account pause / unpause / delete."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.schemas.common import ApiResponse, ok
from app.schemas.profile import AccountStatusResponse
from app.services.account_service import account_service

router = APIRouter(prefix="/api/account", tags=["Account"])


@router.post("/pause", response_model=ApiResponse[AccountStatusResponse], summary="Hide the caller")
async def pause(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    paused = await account_service.set_paused(db, user, True)
    return ok(AccountStatusResponse(is_paused=paused), "Account paused.")


@router.post("/unpause", response_model=ApiResponse[AccountStatusResponse], summary="Show the caller again")
async def unpause(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    paused = await account_service.set_paused(db, user, False)
    return ok(AccountStatusResponse(is_paused=paused), "Account unpaused.")


@router.delete("", response_model=ApiResponse[None], summary="Delete the caller's account")
async def delete_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await account_service.delete_account(db, user)
    return ok(message="Account deleted.")
