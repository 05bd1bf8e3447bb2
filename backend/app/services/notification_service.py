"""
SpecDate Backend — Notification Service
=========================================

What:  Creates in-app notifications and mirrors them to the realtime channel
       and the user's device; lists and marks them read.
How:   notify() writes the row inside the caller's transaction, then fires the
       side channel. Broadcast and push failures are logged and swallowed so
       that a flaky gateway never fails the request that caused the event.
Who:   SpecService, RoundService; the notifications routes.

Flow (notify):
    1. INSERT notification (flush for the id)
    2. Pusher  → NotificationCreated on private-App.Models.User.{id}
    3. Expo    → push message, when users.expo_push_token is set
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    CircuitBreakerOpenError,
    GatewayError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models import Notification, User
from app.models.mixins import utcnow
from app.schemas.notification import NotificationPage, NotificationResponse
from app.services.broadcast_service import broadcast_service, user_channel
from app.services.pagination import paginate
from app.services.presenters import notification_response
from app.services.push_service import push_service

logger = logging.getLogger(__name__)


class NotificationService:

    async def broadcast(self, channel: str, event: str, data: Dict[str, Any]) -> None:
        """Fire-and-log realtime event for the spec channels."""
        try:
            await broadcast_service.trigger(channel, event, data)
        except (GatewayError, CircuitBreakerOpenError) as e:
            logger.warning("Broadcast of %s on %s failed: %s", event, channel, e.message)

    async def notify(
        self,
        db: AsyncSession,
        user: User,
        type: str,
        data: Dict[str, Any],
        title: str,
        body: str,
    ) -> Notification:
        notification = Notification(user_id=user.id, type=type, data=data)
        db.add(notification)
        await db.flush()

        payload = {"id": notification.id, "type": type, "data": data, "title": title, "body": body}
        await self.broadcast(user_channel(user.id), "NotificationCreated", payload)

        if user.expo_push_token:
            try:
                await push_service.send(
                    user.expo_push_token,
                    title,
                    body,
                    {"type": type, "notification_id": notification.id, **data},
                )
            except (GatewayError, CircuitBreakerOpenError) as e:
                logger.warning(
                    "Push for notification %d to user %d failed: %s",
                    notification.id,
                    user.id,
                    e.message,
                )

        logger.info("Notification %d (%s) sent to user %d", notification.id, type, user.id)
        return notification

    async def list_notifications(
        self,
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user.id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        rows, meta = await paginate(db, stmt, page, limit)
        unread = await db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.id,
                Notification.read_at.is_(None),
            )
        )
        return NotificationPage(
            data=[notification_response(n) for n in rows],
            unread_count=unread or 0,
            **meta,
        )

    async def mark_read(self, db: AsyncSession, user: User, notification_id: int) -> NotificationResponse:
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(resource="notification", resource_id=notification_id)
        if notification.user_id != user.id:
            raise PermissionDeniedError()
        if notification.read_at is None:
            notification.read_at = utcnow()
            await db.flush()
        return notification_response(notification)

    async def mark_all_read(self, db: AsyncSession, user: User) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.read_at.is_(None))
            .values(read_at=utcnow())
        )
        return result.rowcount or 0

    async def update_push_token(self, db: AsyncSession, user: User, token: Optional[str]) -> None:
        user.expo_push_token = token
        await db.flush()
        logger.info("Push token updated for user %d", user.id)


notification_service = NotificationService()
