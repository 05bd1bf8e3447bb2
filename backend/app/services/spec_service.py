"""
SpecDate Backend — Spec Service
=================================

What:  Business logic for specs and their applications: feed, my specs,
       detail, create/update/delete, likes, joining, the owner's decisions
       on applications and picking the winner.
How:   Every write happens in the request's session; the route dependency
       commits once at the end, so each operation is one transaction
       (notification rows included).
Who:   Specs and applications routes.

Counting:
    The owner holds an ACCEPTED application with user_role "owner".
    applications_count and the participant limit only count
    user_role == "participant".

Feed filters:
    LIVE     newest first
    POPULAR  most applications first
    HOTTEST  created in the last 3 days, most applications first
    ONGOING  expiring within 2 days, soonest first
"""

import logging
import secrets
import string
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models import (
    ApplicationRole,
    ApplicationStatus,
    RoundStatus,
    Spec,
    SpecApplication,
    SpecDate,
    SpecLike,
    SpecRequirement,
    SpecRound,
    SpecRoundAnswer,
    SpecStatus,
    User,
)
from app.models.mixins import ensure_utc, utcnow
from app.schemas.common import Page
from app.schemas.spec import (
    ApplicationResponse,
    LikeResponse,
    RequirementIn,
    SpecCreateRequest,
    SpecDateResponse,
    SpecDetailResponse,
    SpecResponse,
    SpecUpdateRequest,
)
from app.services.media_service import media_service
from app.services.notification_service import notification_service
from app.services.pagination import paginate
from app.services.presenters import (
    answer_response,
    application_response,
    round_response,
    spec_response,
)
from app.services.profile_service import is_profile_complete
from app.services.requirements import check_requirements, encode_value
from app.services.spark_service import BLUE, spark_service

logger = logging.getLogger(__name__)

FEED_FILTERS = ("LIVE", "POPULAR", "HOTTEST", "ONGOING")
FEED_PER_PAGE = 10
MINE_PER_PAGE = 20
HOTTEST_WINDOW = timedelta(days=3)
ONGOING_WINDOW = timedelta(days=2)
DATE_CODE_ALPHABET = string.ascii_uppercase + string.digits
NOT_NULL_FIELDS = {"title", "max_participants", "status"}


# ── Shared query helpers (also used by RoundService) ──────────────────────

async def get_spec_or_404(db: AsyncSession, spec_id: int) -> Spec:
    spec = await db.get(Spec, spec_id)
    if spec is None:
        raise NotFoundError(resource="spec", resource_id=spec_id, message="Spec not found.")
    return spec


def require_owner(spec: Spec, user: User) -> None:
    if spec.user_id != user.id:
        raise PermissionDeniedError("Unauthorized.")


def is_expired(spec: Spec) -> bool:
    return ensure_utc(spec.expires_at) <= utcnow()


async def accepted_participants(db: AsyncSession, spec_id: int) -> List[SpecApplication]:
    result = await db.execute(
        select(SpecApplication)
        .where(
            SpecApplication.spec_id == spec_id,
            SpecApplication.user_role == ApplicationRole.PARTICIPANT.value,
            SpecApplication.status == ApplicationStatus.ACCEPTED.value,
        )
        .order_by(SpecApplication.id)
    )
    return list(result.scalars().all())


def _count_subqueries():
    applications = (
        select(
            SpecApplication.spec_id.label("spec_id"),
            func.count(SpecApplication.id).label("n"),
        )
        .where(SpecApplication.user_role == ApplicationRole.PARTICIPANT.value)
        .group_by(SpecApplication.spec_id)
        .subquery()
    )
    likes = (
        select(SpecLike.spec_id.label("spec_id"), func.count(SpecLike.id).label("n"))
        .group_by(SpecLike.spec_id)
        .subquery()
    )
    return applications, likes


def _counted_specs():
    """select(Spec, applications_count, likes_count) with the count joins in place."""
    applications, likes = _count_subqueries()
    applications_count = func.coalesce(applications.c.n, 0).label("applications_count")
    likes_count = func.coalesce(likes.c.n, 0).label("likes_count")
    stmt = (
        select(Spec, applications_count, likes_count)
        .outerjoin(applications, applications.c.spec_id == Spec.id)
        .outerjoin(likes, likes.c.spec_id == Spec.id)
    )
    return stmt, applications_count, likes_count


class SpecService:

    async def _to_page(
        self,
        db: AsyncSession,
        rows: List[Tuple[Spec, int, int]],
        meta: dict,
        tag: Optional[str] = None,
    ) -> Page[SpecResponse]:
        avatars = await media_service.avatar_urls(db, [spec.user_id for spec, _, _ in rows])
        data = [
            spec_response(spec, avatars, applications_count=a, likes_count=l, tag=tag)
            for spec, a, l in rows
        ]
        return Page[SpecResponse](data=data, **meta)

    # ── Listing ───────────────────────────────────────────────────────────

    async def list_feed(
        self,
        db: AsyncSession,
        user: User,
        filter: str = "LIVE",
        exclude_own: bool = False,
        page: int = 1,
    ) -> Page[SpecResponse]:
        """OPEN, unexpired specs of unpaused owners, ordered per filter."""
        filter = filter.upper() if filter else "LIVE"
        if filter not in FEED_FILTERS:
            filter = "LIVE"
        now = utcnow()

        stmt, applications_count, _ = _counted_specs()
        stmt = stmt.join(User, User.id == Spec.user_id).where(
            Spec.status == SpecStatus.OPEN.value,
            Spec.expires_at > now,
            User.is_paused.is_(False),
        )
        if exclude_own:
            stmt = stmt.where(Spec.user_id != user.id)

        if filter == "POPULAR":
            stmt = stmt.order_by(applications_count.desc(), Spec.id.desc())
        elif filter == "HOTTEST":
            stmt = stmt.where(Spec.created_at >= now - HOTTEST_WINDOW).order_by(
                applications_count.desc(), Spec.id.desc()
            )
        elif filter == "ONGOING":
            stmt = stmt.where(Spec.expires_at <= now + ONGOING_WINDOW).order_by(
                Spec.expires_at.asc(), Spec.id.asc()
            )
        else:
            stmt = stmt.order_by(Spec.created_at.desc(), Spec.id.desc())

        rows, meta = await paginate(db, stmt, page, FEED_PER_PAGE, scalars=False)
        return await self._to_page(db, [tuple(r) for r in rows], meta, tag=filter)

    async def list_mine(
        self,
        db: AsyncSession,
        user: User,
        type: str = "all",
        page: int = 1,
    ) -> Page[SpecResponse]:
        applied = exists().where(
            SpecApplication.spec_id == Spec.id,
            SpecApplication.user_id == user.id,
        )
        stmt, _, _ = _counted_specs()
        if type == "owned":
            stmt = stmt.where(Spec.user_id == user.id)
        elif type == "joined":
            stmt = stmt.where(and_(applied, Spec.user_id != user.id))
        else:
            stmt = stmt.where(or_(Spec.user_id == user.id, applied))
        stmt = stmt.order_by(Spec.created_at.desc(), Spec.id.desc())

        rows, meta = await paginate(db, stmt, page, MINE_PER_PAGE, scalars=False)
        return await self._to_page(db, [tuple(r) for r in rows], meta)

    async def pending_requests(self, db: AsyncSession, user: User) -> List[ApplicationResponse]:
        result = await db.execute(
            select(SpecApplication, Spec.title)
            .join(Spec, Spec.id == SpecApplication.spec_id)
            .where(
                Spec.user_id == user.id,
                SpecApplication.status == ApplicationStatus.PENDING.value,
            )
            .order_by(SpecApplication.created_at.desc(), SpecApplication.id.desc())
        )
        rows = result.all()
        avatars = await media_service.avatar_urls(db, [a.user_id for a, _ in rows])
        return [application_response(a, avatars, spec_title=title) for a, title in rows]

    # ── Detail ────────────────────────────────────────────────────────────

    async def _counts(self, db: AsyncSession, spec_id: int) -> Tuple[int, int, int]:
        applications = await db.scalar(
            select(func.count(SpecApplication.id)).where(
                SpecApplication.spec_id == spec_id,
                SpecApplication.user_role == ApplicationRole.PARTICIPANT.value,
            )
        )
        participants = await db.scalar(
            select(func.count(SpecApplication.id)).where(
                SpecApplication.spec_id == spec_id,
                SpecApplication.user_role == ApplicationRole.PARTICIPANT.value,
                SpecApplication.status == ApplicationStatus.ACCEPTED.value,
            )
        )
        likes = await db.scalar(select(func.count(SpecLike.id)).where(SpecLike.spec_id == spec_id))
        return applications or 0, participants or 0, likes or 0

    async def get_spec(self, db: AsyncSession, user: User, spec_id: int) -> SpecDetailResponse:
        """
        Full spec view.

        Answers are private: the owner sees every answer, anyone else only
        their own.
        """
        spec = await get_spec_or_404(db, spec_id)
        applications_count, participants_count, likes_count = await self._counts(db, spec.id)
        is_liked = await db.scalar(
            select(SpecLike.id).where(SpecLike.spec_id == spec.id, SpecLike.user_id == user.id)
        )

        applications = (
            await db.execute(
                select(SpecApplication)
                .where(SpecApplication.spec_id == spec.id)
                .order_by(SpecApplication.id)
            )
        ).scalars().all()
        rounds = (
            await db.execute(
                select(SpecRound)
                .where(SpecRound.spec_id == spec.id)
                .order_by(SpecRound.round_number)
            )
        ).scalars().all()

        answers_stmt = (
            select(SpecRoundAnswer)
            .join(SpecRound, SpecRound.id == SpecRoundAnswer.round_id)
            .where(SpecRound.spec_id == spec.id)
            .order_by(SpecRoundAnswer.id)
        )
        if spec.user_id != user.id:
            answers_stmt = answers_stmt.where(SpecRoundAnswer.user_id == user.id)
        answers = (await db.execute(answers_stmt)).scalars().all()

        avatars = await media_service.avatar_urls(
            db,
            [spec.user_id] + [a.user_id for a in applications] + [a.user_id for a in answers],
        )
        media_urls = await media_service.urls_by_id(db, [a.media_id for a in answers])

        by_round: Dict[int, list] = {}
        for answer in answers:
            by_round.setdefault(answer.round_id, []).append(answer_response(answer, avatars, media_urls))

        base = spec_response(spec, avatars, applications_count, likes_count)
        return SpecDetailResponse(
            **base.model_dump(),
            is_liked=is_liked is not None,
            participants_count=participants_count,
            applications=[application_response(a, avatars) for a in applications],
            rounds=[round_response(r, by_round.get(r.id, [])) for r in rounds],
        )

    # ── Create / Update / Delete ──────────────────────────────────────────

    @staticmethod
    def _build_requirements(items: Iterable[RequirementIn]) -> List[SpecRequirement]:
        return [
            SpecRequirement(
                field=item.field,
                operator=item.operator,
                value=encode_value(item.value),
                is_compulsory=item.is_compulsory,
            )
            for item in items
        ]

    async def create_spec(self, db: AsyncSession, user: User, request: SpecCreateRequest) -> SpecResponse:
        """
        Creates the spec, the owner's own ACCEPTED application and the
        requirements together.

        Raises:
            PermissionDeniedError: the owner's account is paused
        """
        if user.is_paused:
            raise PermissionDeniedError(
                "You cannot create a spec while your account is paused. "
                "Unpause your account in Profile settings."
            )

        spec = Spec(
            user_id=user.id,
            title=request.title,
            description=request.description,
            location_city=request.location_city,
            location_lat=request.location_lat,
            location_lng=request.location_lng,
            expires_at=utcnow() + timedelta(days=request.duration),
            max_participants=request.max_participants,
            status=SpecStatus.OPEN.value,
        )
        spec.owner = user
        spec.requirements = self._build_requirements(request.requirements)
        db.add(spec)
        await db.flush()

        db.add(
            SpecApplication(
                spec_id=spec.id,
                user_id=user.id,
                user=user,
                user_role=ApplicationRole.OWNER.value,
                status=ApplicationStatus.ACCEPTED.value,
            )
        )
        await db.flush()

        logger.info("Spec %d created by user %d", spec.id, user.id)
        avatars = await media_service.avatar_urls(db, [user.id])
        return spec_response(spec, avatars)

    async def update_spec(
        self,
        db: AsyncSession,
        user: User,
        spec_id: int,
        request: SpecUpdateRequest,
    ) -> SpecResponse:
        spec = await get_spec_or_404(db, spec_id)
        require_owner(spec, user)

        data = request.model_dump(exclude_unset=True, exclude={"duration", "requirements"})
        for key, value in data.items():
            # title, max_participants and status are NOT NULL; null means "leave as is"
            if value is None and key in NOT_NULL_FIELDS:
                continue
            setattr(spec, key, value)

        if request.duration is not None:
            spec.expires_at = utcnow() + timedelta(days=request.duration)
        if request.requirements is not None:
            spec.requirements = self._build_requirements(request.requirements)

        await db.flush()
        applications_count, _, likes_count = await self._counts(db, spec.id)
        avatars = await media_service.avatar_urls(db, [spec.user_id])
        return spec_response(spec, avatars, applications_count, likes_count)

    async def delete_spec(self, db: AsyncSession, user: User, spec_id: int) -> None:
        spec = await get_spec_or_404(db, spec_id)
        require_owner(spec, user)
        await db.delete(spec)
        await db.flush()
        logger.info("Spec %d deleted by user %d", spec_id, user.id)

    # ── Likes ─────────────────────────────────────────────────────────────

    async def toggle_like(self, db: AsyncSession, user: User, spec_id: int) -> LikeResponse:
        spec = await get_spec_or_404(db, spec_id)
        existing = await db.scalar(
            select(SpecLike).where(SpecLike.spec_id == spec.id, SpecLike.user_id == user.id)
        )
        if existing is not None:
            await db.delete(existing)
            liked = False
        else:
            db.add(SpecLike(spec_id=spec.id, user_id=user.id))
            liked = True
        await db.flush()
        count = await db.scalar(select(func.count(SpecLike.id)).where(SpecLike.spec_id == spec.id))
        return LikeResponse(liked=liked, count=count or 0)

    # ── Applications ──────────────────────────────────────────────────────

    async def join(self, db: AsyncSession, user: User, spec_id: int) -> ApplicationResponse:
        """
        Applies to a spec, paying one blue spark.

        Checks, in order:
            spec exists (404), not own spec (400), profile complete (403),
            not already applied (400), spec open and unexpired (400),
            a blue spark available (403 INSUFFICIENT_FUNDS),
            compulsory requirements met (422)
        """
        spec = await get_spec_or_404(db, spec_id)

        if spec.user_id == user.id:
            raise BadRequestError("You cannot join your own spec.")

        if not is_profile_complete(user.profile):
            raise PermissionDeniedError(
                "Your profile must be complete to join a spec.",
                code="PROFILE_INCOMPLETE",
            )

        existing = await db.scalar(
            select(SpecApplication.id).where(
                SpecApplication.spec_id == spec.id,
                SpecApplication.user_id == user.id,
            )
        )
        if existing is not None:
            raise BadRequestError("You have already applied to this spec.")

        if spec.status != SpecStatus.OPEN.value or is_expired(spec):
            raise BadRequestError("This spec is no longer accepting applications.")

        balance = user.balance
        if balance is None or balance.blue_sparks < 1:
            raise PermissionDeniedError(
                "Insufficient Blue Sparks. Please purchase more.",
                code="INSUFFICIENT_FUNDS",
            )

        check_requirements(user.profile, spec.requirements)

        await spark_service.debit(
            db,
            user.id,
            BLUE,
            purpose=f"Joined Spec: {spec.title}",
            details={"spec_id": spec.id},
        )
        application = SpecApplication(
            spec_id=spec.id,
            user_id=user.id,
            user=user,
            user_role=ApplicationRole.PARTICIPANT.value,
            status=ApplicationStatus.PENDING.value,
        )
        db.add(application)
        await db.flush()

        await notification_service.notify(
            db,
            spec.owner,
            "join_request",
            {
                "spec_id": spec.id,
                "spec_title": spec.title,
                "applicant_id": user.id,
                "applicant_name": user.name or "User",
            },
            "New Join Request",
            f"Someone wants to join '{spec.title}'",
        )
        logger.info("User %d applied to spec %d", user.id, spec.id)
        avatars = await media_service.avatar_urls(db, [user.id])
        return application_response(application, avatars, spec_title=spec.title)

    async def _owned_application(
        self,
        db: AsyncSession,
        user: User,
        spec_id: int,
        application_id: int,
    ) -> Tuple[Spec, SpecApplication]:
        spec = await get_spec_or_404(db, spec_id)
        require_owner(spec, user)
        application = await db.scalar(
            select(SpecApplication).where(
                SpecApplication.id == application_id,
                SpecApplication.spec_id == spec.id,
            )
        )
        if application is None:
            raise NotFoundError(
                resource="application",
                resource_id=application_id,
                message="Application not found.",
            )
        if application.user_role == ApplicationRole.OWNER.value:
            raise BadRequestError("The owner's own application cannot be changed.")
        return spec, application

    async def approve_application(
        self, db: AsyncSession, user: User, spec_id: int, application_id: int
    ) -> ApplicationResponse:
        spec, application = await self._owned_application(db, user, spec_id, application_id)
        if application.status != ApplicationStatus.PENDING.value:
            raise BadRequestError("Only pending applications can be approved.")
        if len(await accepted_participants(db, spec.id)) >= spec.max_participants:
            raise BadRequestError("This spec is full.")

        application.status = ApplicationStatus.ACCEPTED.value
        await db.flush()
        await notification_service.notify(
            db,
            application.user,
            "application_accepted",
            {"spec_id": spec.id, "spec_title": spec.title},
            "Application Accepted",
            f"You're in! Your request to join '{spec.title}' was accepted.",
        )
        return application_response(application, spec_title=spec.title)

    async def reject_application(
        self, db: AsyncSession, user: User, spec_id: int, application_id: int
    ) -> ApplicationResponse:
        spec, application = await self._owned_application(db, user, spec_id, application_id)
        if application.status != ApplicationStatus.PENDING.value:
            raise BadRequestError("Only pending applications can be rejected.")

        application.status = ApplicationStatus.REJECTED.value
        await db.flush()
        await notification_service.notify(
            db,
            application.user,
            "application_rejected",
            {"spec_id": spec.id, "spec_title": spec.title},
            "Application Declined",
            f"Your request to join '{spec.title}' was declined.",
        )
        return application_response(application, spec_title=spec.title)

    async def eliminate_application(
        self, db: AsyncSession, user: User, spec_id: int, application_id: int
    ) -> ApplicationResponse:
        spec, application = await self._owned_application(db, user, spec_id, application_id)
        if application.status != ApplicationStatus.ACCEPTED.value:
            raise BadRequestError("Only accepted participants can be eliminated.")

        application.status = ApplicationStatus.ELIMINATED.value
        await db.flush()
        await notification_service.notify(
            db,
            application.user,
            "eliminated",
            {"spec_id": spec.id, "spec_title": spec.title},
            "Spark Extinguished",
            f"You have been eliminated from '{spec.title}'.",
        )
        return application_response(application, spec_title=spec.title)

    async def _unique_date_code(self, db: AsyncSession) -> str:
        while True:
            code = "".join(secrets.choice(DATE_CODE_ALPHABET) for _ in range(6))
            taken = await db.scalar(select(SpecDate.id).where(SpecDate.date_code == code))
            if taken is None:
                return code

    async def select_winner(
        self, db: AsyncSession, user: User, spec_id: int, application_id: int
    ) -> SpecDateResponse:
        """
        Ends the spec: the application becomes WINNER, open rounds complete,
        the spec is COMPLETED and a SpecDate with a fresh date code is stored.
        """
        spec, application = await self._owned_application(db, user, spec_id, application_id)
        if application.status != ApplicationStatus.ACCEPTED.value:
            raise BadRequestError("Only an accepted participant can be chosen as the winner.")

        application.status = ApplicationStatus.WINNER.value
        open_rounds = (
            await db.execute(
                select(SpecRound).where(
                    SpecRound.spec_id == spec.id,
                    SpecRound.status.in_([RoundStatus.ACTIVE.value, RoundStatus.REVIEWING.value]),
                )
            )
        ).scalars().all()
        for spec_round in open_rounds:
            spec_round.status = RoundStatus.COMPLETED.value
        spec.status = SpecStatus.COMPLETED.value

        spec_date = SpecDate(
            spec_id=spec.id,
            owner_id=spec.user_id,
            winner_id=application.user_id,
            date_code=await self._unique_date_code(db),
        )
        db.add(spec_date)
        await db.flush()

        await notification_service.notify(
            db,
            application.user,
            "spec_won",
            {"spec_id": spec.id, "spec_title": spec.title, "date_code": spec_date.date_code},
            "You Won!",
            f"You were chosen in '{spec.title}'. Your date code is {spec_date.date_code}.",
        )
        logger.info("Spec %d completed; winner user %d", spec.id, application.user_id)
        return SpecDateResponse(
            id=spec_date.id,
            spec_id=spec_date.spec_id,
            owner_id=spec_date.owner_id,
            winner_id=spec_date.winner_id,
            date_code=spec_date.date_code,
            created_at=ensure_utc(spec_date.created_at),
        )


spec_service = SpecService()
