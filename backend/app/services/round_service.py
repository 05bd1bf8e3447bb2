"""
SpecDate Backend — Round Service
==================================

What:  Question rounds inside a spec: start, answer, close, eliminate, nudge.
Who:   Rounds routes.

Round lifecycle:
    ACTIVE ──(owner closes, or every participant answered)──> REVIEWING
    ACTIVE | REVIEWING ──(next round starts, bulk elimination, winner)──> COMPLETED

Elimination target per round: max(1, ceil(10% of accepted participants)).
Eliminating a participant costs them one red spark.
"""

import logging
import math
from datetime import timedelta
from typing import Iterable, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import BadRequestError, NotFoundError, PermissionDeniedError
from app.models import (
    ApplicationStatus,
    MediaType,
    RoundStatus,
    SpecRound,
    SpecRoundAnswer,
    SpecStatus,
    User,
)
from app.models.mixins import ensure_utc, utcnow
from app.schemas.spec import AnswerRequest, AnswerResponse, RoundResponse, RoundStartRequest
from app.services.broadcast_service import spec_channel
from app.services.media_service import media_service
from app.services.notification_service import notification_service
from app.services.presenters import answer_response, round_response
from app.services.spark_service import RED, spark_service
from app.services.spec_service import accepted_participants, get_spec_or_404, require_owner

logger = logging.getLogger(__name__)

ANSWER_MEDIA_TYPES = (MediaType.ROUND_ANSWER_IMAGE.value, MediaType.ROUND_ANSWER_VIDEO.value)
OPEN_ROUND_STATUSES = (RoundStatus.ACTIVE.value, RoundStatus.REVIEWING.value)


def elimination_target(participant_count: int) -> int:
    return max(1, math.ceil(participant_count * 0.1))


class RoundService:

    async def _get_round(self, db: AsyncSession, round_id: int) -> SpecRound:
        spec_round = await db.get(SpecRound, round_id)
        if spec_round is None:
            raise NotFoundError(resource="round", resource_id=round_id, message="Round not found.")
        return spec_round

    async def _owned_round(self, db: AsyncSession, user: User, round_id: int) -> SpecRound:
        spec_round = await self._get_round(db, round_id)
        require_owner(spec_round.spec, user)
        return spec_round

    async def _answers(self, db: AsyncSession, round_id: int) -> List[SpecRoundAnswer]:
        result = await db.execute(
            select(SpecRoundAnswer)
            .where(SpecRoundAnswer.round_id == round_id)
            .order_by(SpecRoundAnswer.id)
        )
        return list(result.scalars().all())

    async def start_round(
        self, db: AsyncSession, user: User, spec_id: int, request: RoundStartRequest
    ) -> RoundResponse:
        """
        Opens the next round, completing any round still open.

        Raises:
            BadRequestError: spec completed, or no accepted participants
        """
        spec = await get_spec_or_404(db, spec_id)
        require_owner(spec, user)
        if spec.status == SpecStatus.COMPLETED.value:
            raise BadRequestError("This spec is already completed.")

        participants = await accepted_participants(db, spec.id)
        if not participants:
            raise BadRequestError("Not enough participants to start a round.")

        open_rounds = (
            await db.execute(
                select(SpecRound).where(
                    SpecRound.spec_id == spec.id,
                    SpecRound.status.in_(OPEN_ROUND_STATUSES),
                )
            )
        ).scalars().all()
        for previous in open_rounds:
            previous.status = RoundStatus.COMPLETED.value

        last_number = await db.scalar(
            select(func.max(SpecRound.round_number)).where(SpecRound.spec_id == spec.id)
        )
        spec_round = SpecRound(
            spec_id=spec.id,
            round_number=(last_number or 0) + 1,
            question_text=request.question,
            status=RoundStatus.ACTIVE.value,
            elimination_count=elimination_target(len(participants)),
            deadline_at=(
                utcnow() + timedelta(minutes=request.duration_minutes)
                if request.duration_minutes
                else None
            ),
        )
        spec_round.spec = spec
        db.add(spec_round)
        await db.flush()

        await notification_service.broadcast(
            spec_channel(spec.id),
            "RoundStarted",
            {
                "round": {
                    "id": spec_round.id,
                    "spec_id": spec.id,
                    "round_number": spec_round.round_number,
                    "question_text": spec_round.question_text,
                    "status": spec_round.status,
                    "deadline_at": spec_round.deadline_at,
                }
            },
        )
        for application in participants:
            await notification_service.notify(
                db,
                application.user,
                "round_started",
                {"spec_id": spec.id, "round_id": spec_round.id, "question": request.question},
                "New Round Started!",
                f"Round {spec_round.round_number}: {request.question}",
            )

        logger.info(
            "Round %d (#%d) started on spec %d for %d participant(s)",
            spec_round.id,
            spec_round.round_number,
            spec.id,
            len(participants),
        )
        return round_response(spec_round)

    async def submit_answer(
        self, db: AsyncSession, user: User, round_id: int, request: AnswerRequest
    ) -> AnswerResponse:
        """
        Records the caller's answer; the round moves to REVIEWING once every
        accepted participant has answered.
        """
        spec_round = await self._get_round(db, round_id)
        if spec_round.status != RoundStatus.ACTIVE.value:
            raise BadRequestError("Round is not active.")
        if spec_round.deadline_at is not None and ensure_utc(spec_round.deadline_at) <= utcnow():
            raise BadRequestError("The deadline for this round has passed.")

        spec = spec_round.spec
        participants = await accepted_participants(db, spec.id)
        participant_ids = {a.user_id for a in participants}
        if user.id not in participant_ids:
            raise PermissionDeniedError("You are not an active participant in this spec.")

        existing = await db.scalar(
            select(SpecRoundAnswer.id).where(
                SpecRoundAnswer.round_id == spec_round.id,
                SpecRoundAnswer.user_id == user.id,
            )
        )
        if existing is not None:
            raise BadRequestError("You have already answered this question.")

        media_urls = {}
        if request.media_id is not None:
            media = await media_service.get_owned(db, user.id, request.media_id, ANSWER_MEDIA_TYPES)
            media_urls[media.id] = media.url

        answer = SpecRoundAnswer(
            round_id=spec_round.id,
            user_id=user.id,
            answer_text=request.answer,
            media_id=request.media_id,
            is_eliminated=False,
        )
        answer.user = user
        db.add(answer)
        await db.flush()

        message = f"{user.username} has answered your question."
        await notification_service.notify(
            db,
            spec.owner,
            "round_answer",
            {
                "spec_id": spec.id,
                "round_id": spec_round.id,
                "answer_id": answer.id,
                "title": "New Answer Submitted",
                "message": message,
            },
            "New Answer Submitted",
            message,
        )
        await notification_service.broadcast(
            spec_channel(spec.id),
            "RoundAnswered",
            {"answer": {"id": answer.id, "round_id": spec_round.id, "user_id": user.id}},
        )

        answered = {a.user_id for a in await self._answers(db, spec_round.id)}
        if participant_ids <= answered:
            spec_round.status = RoundStatus.REVIEWING.value
            await db.flush()
            logger.info("Round %d auto-closed: every participant answered", spec_round.id)

        avatars = await media_service.avatar_urls(db, [user.id])
        return answer_response(answer, avatars, media_urls)

    async def close_round(self, db: AsyncSession, user: User, round_id: int) -> RoundResponse:
        spec_round = await self._owned_round(db, user, round_id)
        if spec_round.status != RoundStatus.ACTIVE.value:
            raise BadRequestError("Round is not active.")
        spec_round.status = RoundStatus.REVIEWING.value
        await db.flush()
        return round_response(spec_round)

    async def _eliminate(self, db: AsyncSession, spec_round: SpecRound, user_id: int) -> None:
        spec = spec_round.spec
        application = next(
            (a for a in await accepted_participants(db, spec.id) if a.user_id == user_id),
            None,
        )
        if application is None:
            raise NotFoundError(
                resource="participant",
                resource_id=user_id,
                message="Participant not found.",
            )

        answer = await db.scalar(
            select(SpecRoundAnswer).where(
                SpecRoundAnswer.round_id == spec_round.id,
                SpecRoundAnswer.user_id == user_id,
            )
        )
        if answer is not None:
            answer.is_eliminated = True
        application.status = ApplicationStatus.ELIMINATED.value

        await spark_service.debit(
            db,
            user_id,
            RED,
            purpose=f"Eliminated from Spec: {spec.title}",
            details={"spec_id": spec.id, "round_id": spec_round.id},
        )
        await notification_service.notify(
            db,
            application.user,
            "eliminated",
            {"spec_id": spec.id, "round_id": spec_round.id},
            "Spark Extinguished",
            f"You have been eliminated from '{spec.title}'.",
        )
        logger.info("User %d eliminated in round %d", user_id, spec_round.id)

    async def eliminate_user(self, db: AsyncSession, user: User, round_id: int, user_id: int) -> None:
        spec_round = await self._owned_round(db, user, round_id)
        if spec_round.status not in OPEN_ROUND_STATUSES:
            raise BadRequestError("Round must be Active or In Review to eliminate participants.")
        await self._eliminate(db, spec_round, user_id)

    async def eliminate_users(
        self, db: AsyncSession, user: User, round_id: int, user_ids: Iterable[int]
    ) -> RoundResponse:
        """Eliminates each user, then completes the round."""
        spec_round = await self._owned_round(db, user, round_id)
        if spec_round.status not in OPEN_ROUND_STATUSES:
            raise BadRequestError("Round must be Active or In Review to eliminate participants.")
        for user_id in dict.fromkeys(user_ids):
            await self._eliminate(db, spec_round, user_id)
        spec_round.status = RoundStatus.COMPLETED.value
        await db.flush()
        return round_response(spec_round)

    async def nudge(self, db: AsyncSession, user: User, round_id: int) -> int:
        """Reminds participants who have not answered; returns how many were nudged."""
        spec_round = await self._owned_round(db, user, round_id)
        if spec_round.status != RoundStatus.ACTIVE.value:
            raise BadRequestError("Round is not active.")

        spec = spec_round.spec
        answered = {a.user_id for a in await self._answers(db, spec_round.id)}
        pending = [a for a in await accepted_participants(db, spec.id) if a.user_id not in answered]
        for application in pending:
            await notification_service.notify(
                db,
                application.user,
                "round_nudge",
                {"spec_id": spec.id, "round_id": spec_round.id},
                "Your answer is waiting",
                f"Round {spec_round.round_number} of '{spec.title}' still needs your answer.",
            )
        return len(pending)


round_service = RoundService()
