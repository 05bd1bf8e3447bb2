"""Account lifecycle: pause, unpause and permanent deletion."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.services.file_service import file_service
from app.services.media_service import media_service

logger = logging.getLogger(__name__)


class AccountService:

    async def set_paused(self, db: AsyncSession, user: User, paused: bool) -> bool:
        """Paused users can still sign in but are hidden from feeds, search and profiles."""
        user.is_paused = paused
        await db.flush()
        logger.info("User %d %s", user.id, "paused" if paused else "unpaused")
        return user.is_paused

    async def delete_account(self, db: AsyncSession, user: User) -> None:
        """
        Deletes the user; child rows go with it through ON DELETE CASCADE.

        Stored files are removed after the row delete has been flushed.
        Outstanding tokens stop resolving because the user no longer exists.
        """
        paths = await media_service.paths_for_user(db, user.id)
        user_id = user.id
        await db.delete(user)
        await db.flush()
        for path in paths:
            await file_service.cleanup_file(path)
        logger.info("Deleted account %d and %d stored file(s)", user_id, len(paths))


account_service = AccountService()
