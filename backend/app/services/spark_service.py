"""
Spark balance bookkeeping.

Blue sparks pay to join a spec; red sparks are lives lost on elimination.
Every debit writes a UserTransaction row in the caller's transaction.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import SparkSkin, User, UserBalance, UserTransaction

logger = logging.getLogger(__name__)

RED = "red"
BLUE = "blue"


class SparkService:

    def initialize_for_user(self, user: User) -> None:
        """Starting balance and the default blue skin, labelled with the username."""
        user.balance = UserBalance(
            red_sparks=settings.initial_red_sparks,
            blue_sparks=settings.initial_blue_sparks,
        )
        user.spark_skin = SparkSkin(color_hex="#0000FF", label=user.username)

    async def get_balance(self, db: AsyncSession, user_id: int) -> Optional[UserBalance]:
        return await db.scalar(select(UserBalance).where(UserBalance.user_id == user_id))

    async def debit(
        self,
        db: AsyncSession,
        user_id: int,
        color: str,
        purpose: str,
        details: Optional[Dict[str, Any]] = None,
        quantity: int = 1,
    ) -> Optional[UserBalance]:
        """
        Takes `quantity` sparks of `color`, never going below zero, and logs it.

        Returns the updated balance, or None when the user has no balance row.
        """
        balance = await self.get_balance(db, user_id)
        if balance is None:
            logger.warning("User %d has no spark balance; debit of %s skipped", user_id, color)
            return None

        attr = "red_sparks" if color == RED else "blue_sparks"
        setattr(balance, attr, max(0, getattr(balance, attr) - quantity))

        db.add(
            UserTransaction(
                user_id=user_id,
                type="DEBIT",
                item_type=f"{color}_spark",
                quantity=quantity,
                amount=0,
                currency="GBP",
                purpose=purpose,
                details=details,
            )
        )
        await db.flush()
        logger.info("Debited %d %s spark(s) from user %d: %s", quantity, color, user_id, purpose)
        return balance


spark_service = SparkService()
