"""
Notification route handlers and Pusher channel authorization.

    GET  /api/notifications              newest first, with unread_count
    POST /api/notifications/{id}/read
    POST /api/notifications/read-all
    POST /api/notifications/push-token   store the Expo push token
    POST /api/broadcasting/auth          sign a private channel subscription
"""

from fastapi import APIRouter, Depends, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.schemas.common import ApiResponse, ErrorResponse, ok
from app.schemas.notification import (
    ChannelAuthResponse,
    NotificationPage,
    NotificationResponse,
    PushTokenRequest,
    ReadAllResponse,
)
from app.services.broadcast_service import broadcast_service
from app.services.notification_service import notification_service

router = APIRouter(prefix="/api", tags=["Notifications"])


@router.get("/notifications", response_model=ApiResponse[NotificationPage])
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    page: int = Query(default=1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await notification_service.list_notifications(db, user, page=page, limit=limit)
    return ok(result, "Notifications retrieved.")


@router.post("/notifications/read-all", response_model=ApiResponse[ReadAllResponse])
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    updated = await notification_service.mark_all_read(db, user)
    return ok(ReadAllResponse(updated=updated), "All notifications marked as read.")


@router.post("/notifications/push-token", response_model=ApiResponse[None])
async def update_push_token(
    request: PushTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await notification_service.update_push_token(db, user, request.token)
    return ok(message="Push token saved.")


@router.post(
    "/notifications/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    responses={
        403: {"description": "Notification belongs to another user", "model": ErrorResponse},
        404: {"description": "Notification not found", "model": ErrorResponse},
    },
)
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await notification_service.mark_read(db, user, notification_id)
    return ok(result, "Notification marked as read.")


@router.post(
    "/broadcasting/auth",
    response_model=ChannelAuthResponse,
    responses={
        403: {"description": "Channel not allowed for this user", "model": ErrorResponse},
        503: {"description": "Broadcasting not configured", "model": ErrorResponse},
    },
    summary="Authorize a private Pusher channel",
)
async def broadcasting_auth(
    socket_id: str = Form(...),
    channel_name: str = Form(...),
    user: User = Depends(get_current_user),
):
    # pusher-js expects the bare {auth} object, not the success envelope
    auth = broadcast_service.authorize_channel(user.id, socket_id, channel_name)
    return ChannelAuthResponse(auth=auth)
