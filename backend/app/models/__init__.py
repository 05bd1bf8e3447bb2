# Importing every model registers it on Base.metadata (Alembic, test create_all)
from app.models.media import Media, MediaType
from app.models.notification import Notification
from app.models.spec import (
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
)
from app.models.user import SparkSkin, User, UserBalance, UserProfile, UserTransaction

__all__ = [
    "ApplicationRole",
    "ApplicationStatus",
    "Media",
    "MediaType",
    "Notification",
    "RoundStatus",
    "SparkSkin",
    "Spec",
    "SpecApplication",
    "SpecDate",
    "SpecLike",
    "SpecRequirement",
    "SpecRound",
    "SpecRoundAnswer",
    "SpecStatus",
    "User",
    "UserBalance",
    "UserProfile",
    "UserTransaction",
]
