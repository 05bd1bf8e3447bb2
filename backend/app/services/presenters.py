"""
Converters from ORM rows to response schemas.

Avatar and media URLs are looked up in bulk by the calling service and
passed in as dicts so that serialization never touches the database.
"""

from typing import Dict, Iterable, Optional

from app.models import (
    Notification,
    Spec,
    SpecApplication,
    SpecRequirement,
    SpecRound,
    SpecRoundAnswer,
    User,
)
from app.models.mixins import ensure_utc
from app.schemas.notification import NotificationResponse
from app.schemas.profile import UserSummary
from app.schemas.spec import (
    AnswerResponse,
    ApplicationResponse,
    RequirementResponse,
    RoundResponse,
    SpecResponse,
)
from app.services.requirements import age_from_dob, decode_value


def user_summary(user: User, avatars: Optional[Dict[int, str]] = None) -> UserSummary:
    profile = user.profile
    return UserSummary(
        id=user.id,
        name=user.name,
        username=user.username,
        full_name=profile.full_name if profile else None,
        avatar=(avatars or {}).get(user.id),
        age=age_from_dob(profile.dob) if profile else None,
        sex=profile.sex if profile else None,
        city=profile.city if profile else None,
        country=profile.country if profile else None,
    )


def requirement_response(req: SpecRequirement) -> RequirementResponse:
    return RequirementResponse(
        id=req.id,
        field=req.field,
        operator=req.operator,
        value=decode_value(req.value),
        is_compulsory=req.is_compulsory,
    )


def spec_response(
    spec: Spec,
    avatars: Optional[Dict[int, str]] = None,
    applications_count: int = 0,
    likes_count: int = 0,
    tag: Optional[str] = None,
) -> SpecResponse:
    return SpecResponse(
        id=spec.id,
        user_id=spec.user_id,
        title=spec.title,
        description=spec.description,
        location_city=spec.location_city,
        location_lat=spec.location_lat,
        location_lng=spec.location_lng,
        expires_at=ensure_utc(spec.expires_at),
        max_participants=spec.max_participants,
        status=spec.status,
        created_at=ensure_utc(spec.created_at),
        updated_at=ensure_utc(spec.updated_at),
        owner=user_summary(spec.owner, avatars) if spec.owner else None,
        requirements=[requirement_response(r) for r in spec.requirements],
        applications_count=applications_count,
        likes_count=likes_count,
        tag=tag,
    )


def application_response(
    application: SpecApplication,
    avatars: Optional[Dict[int, str]] = None,
    spec_title: Optional[str] = None,
) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        spec_id=application.spec_id,
        user_id=application.user_id,
        user_role=application.user_role,
        status=application.status,
        created_at=ensure_utc(application.created_at),
        user=user_summary(application.user, avatars) if application.user else None,
        spec_title=spec_title,
    )


def answer_response(
    answer: SpecRoundAnswer,
    avatars: Optional[Dict[int, str]] = None,
    media_urls: Optional[Dict[int, str]] = None,
) -> AnswerResponse:
    return AnswerResponse(
        id=answer.id,
        round_id=answer.round_id,
        user_id=answer.user_id,
        answer_text=answer.answer_text,
        media_id=answer.media_id,
        media_url=(media_urls or {}).get(answer.media_id) if answer.media_id else None,
        is_eliminated=answer.is_eliminated,
        created_at=ensure_utc(answer.created_at),
        user=user_summary(answer.user, avatars) if answer.user else None,
    )


def round_response(
    spec_round: SpecRound,
    answers: Iterable[AnswerResponse] = (),
) -> RoundResponse:
    return RoundResponse(
        id=spec_round.id,
        spec_id=spec_round.spec_id,
        round_number=spec_round.round_number,
        question_text=spec_round.question_text,
        status=spec_round.status,
        elimination_count=spec_round.elimination_count,
        deadline_at=ensure_utc(spec_round.deadline_at),
        created_at=ensure_utc(spec_round.created_at),
        answers=list(answers),
    )


def notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        type=notification.type,
        data=notification.data or {},
        read_at=ensure_utc(notification.read_at),
        created_at=ensure_utc(notification.created_at),
    )

