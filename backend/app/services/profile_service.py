"""
SpecDate Backend — Profile Service
====================================

What:  The signed-in user's payload, profile updates and completeness, public
       profiles and user search.
Who:   Profile/users routes, the require_complete_profile dependency and
       SpecService (join and create need a complete profile).

Completeness:
    full_name, dob, sex, city, state, country, occupation, qualification,
    sexual_orientation and hobbies must be non-empty; is_smoker and
    is_drug_user must be set (False counts as set).
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models import (
    ApplicationRole,
    Spec,
    SpecApplication,
    SpecDate,
    User,
    UserProfile,
)
from app.models.mixins import ensure_utc, utcnow
from app.schemas.common import Page
from app.schemas.profile import (
    BalanceResponse,
    MediaBrief,
    MeResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfile,
    PublicUserResponse,
    SparkSkinResponse,
    UserSummary,
)
from app.services.media_service import media_service
from app.services.pagination import paginate
from app.services.presenters import user_summary
from app.services.requirements import age_from_dob

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "full_name",
    "dob",
    "sex",
    "city",
    "state",
    "country",
    "occupation",
    "qualification",
    "sexual_orientation",
    "hobbies",
)
REQUIRED_FLAGS = ("is_smoker", "is_drug_user")

SEARCH_PER_PAGE = 20
LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """LIKE pattern matching `text` anywhere, with its own % and _ taken literally."""
    escaped = text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def is_profile_complete(profile: Optional[UserProfile]) -> bool:
    if profile is None:
        return False
    for field in REQUIRED_FIELDS:
        value = getattr(profile, field, None)
        if value is None:
            return False
        if isinstance(value, str) and not value.strip():
            return False
        if isinstance(value, list) and not value:
            return False
    return all(getattr(profile, flag, None) is not None for flag in REQUIRED_FLAGS)


class ProfileService:

    async def me(self, db: AsyncSession, user: User) -> MeResponse:
        avatar = await media_service.latest_avatar(db, user.id)
        gallery = await media_service.gallery(db, user.id)

        profile = None
        if user.profile is not None:
            profile = ProfileResponse.model_validate(user.profile)
            profile.profile_completed_at = ensure_utc(user.profile.profile_completed_at)
            profile.avatar = avatar.url if avatar else None
            profile.avatar_media_id = avatar.id if avatar else None

        return MeResponse(
            id=user.id,
            name=user.name,
            username=user.username,
            email=user.email,
            mobile=user.mobile,
            is_paused=user.is_paused,
            terms_accepted=user.terms_accepted,
            created_at=ensure_utc(user.created_at),
            profile=profile,
            balance=BalanceResponse.model_validate(user.balance) if user.balance else None,
            spark_skin=SparkSkinResponse.model_validate(user.spark_skin) if user.spark_skin else None,
            profile_gallery_media=[MediaBrief(id=m.id, url=m.url) for m in gallery],
            images=[m.url for m in gallery],
            avatar=avatar.url if avatar else None,
            profile_complete=is_profile_complete(user.profile),
        )

    async def update_profile(self, db: AsyncSession, user: User, request: ProfileUpdateRequest) -> MeResponse:
        """Writes only the fields present in the body, then re-evaluates completeness."""
        data: Dict[str, Any] = request.model_dump(exclude_unset=True)
        logger.info("Updating profile for user %d: %s", user.id, sorted(data))

        profile = user.profile
        if profile is None:
            profile = UserProfile(**data)
            user.profile = profile
        else:
            for key, value in data.items():
                setattr(profile, key, value)

        if is_profile_complete(profile):
            if profile.profile_completed_at is None:
                profile.profile_completed_at = utcnow()
        else:
            profile.profile_completed_at = None

        await db.flush()
        return await self.me(db, user)

    async def public_profile(self, db: AsyncSession, user_id: int) -> PublicUserResponse:
        user = await db.get(User, user_id)
        if user is None or user.is_paused:
            raise NotFoundError(resource="user", resource_id=user_id, message="User not found.")

        avatar = await media_service.latest_avatar(db, user.id)
        gallery = await media_service.gallery(db, user.id)

        specs_created = await db.scalar(select(func.count(Spec.id)).where(Spec.user_id == user.id))
        specs_participated = await db.scalar(
            select(func.count(SpecApplication.id)).where(
                SpecApplication.user_id == user.id,
                SpecApplication.user_role == ApplicationRole.PARTICIPANT.value,
            )
        )
        dates = await db.scalar(
            select(func.count(SpecDate.id)).where(
                or_(SpecDate.owner_id == user.id, SpecDate.winner_id == user.id)
            )
        )

        p = user.profile
        public = PublicProfile(
            full_name=p.full_name if p else None,
            age=age_from_dob(p.dob) if p else None,
            sex=p.sex if p else None,
            height=p.height if p else None,
            ethnicity=p.ethnicity if p else None,
            religion=p.religion if p else None,
            occupation=p.occupation if p else None,
            qualification=p.qualification if p else None,
            sexual_orientation=p.sexual_orientation if p else None,
            hobbies=p.hobbies if p else None,
            is_smoker=p.is_smoker if p else None,
            is_drug_user=p.is_drug_user if p else None,
            city=p.city if p else None,
            state=p.state if p else None,
            country=p.country if p else None,
            avatar=avatar.url if avatar else None,
        )
        return PublicUserResponse(
            id=user.id,
            name=user.name,
            username=user.username,
            profile=public,
            images=[m.url for m in gallery],
            avatar=avatar.url if avatar else None,
            specs_created_count=specs_created or 0,
            specs_participated_count=specs_participated or 0,
            dates_count=dates or 0,
        )

    async def search_users(
        self,
        db: AsyncSession,
        user: User,
        sex: Optional[str] = None,
        city: Optional[str] = None,
        query: Optional[str] = None,
        page: int = 1,
    ) -> Page[UserSummary]:
        stmt = (
            select(User)
            .outerjoin(UserProfile, UserProfile.user_id == User.id)
            .where(User.id != user.id, User.is_paused.is_(False))
        )
        if sex and sex != "All":
            stmt = stmt.where(UserProfile.sex == sex)
        if city:
            stmt = stmt.where(UserProfile.city.ilike(contains_pattern(city), escape=LIKE_ESCAPE))
        if query:
            pattern = contains_pattern(query)
            stmt = stmt.where(
                or_(
                    User.name.ilike(pattern, escape=LIKE_ESCAPE),
                    UserProfile.full_name.ilike(pattern, escape=LIKE_ESCAPE),
                    UserProfile.city.ilike(pattern, escape=LIKE_ESCAPE),
                    UserProfile.occupation.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        stmt = stmt.order_by(User.id.desc())

        users, meta = await paginate(db, stmt, page, SEARCH_PER_PAGE)
        avatars = await media_service.avatar_urls(db, [u.id for u in users])
        return Page[UserSummary](data=[user_summary(u, avatars) for u in users], **meta)


profile_service = ProfileService()
