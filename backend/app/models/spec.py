"""
SpecDate Backend — Spec, Application and Round Models
=======================================================

What:  ORM models for the dating-challenge workflow.
Who:   SpecService and RoundService.

Lifecycle:
    Spec         OPEN → CLOSED (owner) | COMPLETED (winner picked)
    Application  PENDING → ACCEPTED | REJECTED;  ACCEPTED → ELIMINATED | WINNER
    Round        ACTIVE → REVIEWING → COMPLETED

    The owner holds an ACCEPTED application with user_role "owner" so that
    "specs I am part of" is a single join; participant counts exclude it.

Requirement values are stored as text; list values (for `in` / `not_in`)
are JSON-encoded.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.mixins import TimestampMixin
from app.models.user import User


class SpecStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    COMPLETED = "COMPLETED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    ELIMINATED = "ELIMINATED"
    WINNER = "WINNER"


class ApplicationRole(str, Enum):
    OWNER = "owner"
    PARTICIPANT = "participant"


class RoundStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVIEWING = "REVIEWING"
    COMPLETED = "COMPLETED"


class Spec(TimestampMixin, Base):
    __tablename__ = "specs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    location_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SpecStatus.OPEN.value
    )

    owner: Mapped[User] = relationship(lazy="selectin")
    requirements: Mapped[List["SpecRequirement"]] = relationship(
        back_populates="spec",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SpecRequirement.id",
    )

    __table_args__ = (
        Index("idx_specs_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Spec(id={self.id}, title='{self.title}', status='{self.status}')>"


class SpecRequirement(TimestampMixin, Base):
    __tablename__ = "spec_requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(
        ForeignKey("specs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field: Mapped[str] = mapped_column(String(64), nullable=False)
    operator: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    is_compulsory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    spec: Mapped[Spec] = relationship(back_populates="requirements")


class SpecApplication(TimestampMixin, Base):
    __tablename__ = "spec_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(
        ForeignKey("specs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_role: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ApplicationRole.PARTICIPANT.value
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ApplicationStatus.PENDING.value
    )

    user: Mapped[User] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("spec_id", "user_id", name="uq_spec_applications_spec_user"),
    )


class SpecLike(TimestampMixin, Base):
    __tablename__ = "spec_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(
        ForeignKey("specs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (
        UniqueConstraint("spec_id", "user_id", name="uq_spec_likes_spec_user"),
    )


class SpecRound(TimestampMixin, Base):
    __tablename__ = "spec_rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(
        ForeignKey("specs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RoundStatus.ACTIVE.value
    )
    elimination_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Answers are refused once this passes; NULL means no deadline
    deadline_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    spec: Mapped[Spec] = relationship(lazy="selectin")


class SpecRoundAnswer(TimestampMixin, Base):
    __tablename__ = "spec_round_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("spec_rounds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    media_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("media.id", ondelete="SET NULL"), nullable=True
    )
    is_eliminated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user: Mapped[User] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("round_id", "user_id", name="uq_round_answers_round_user"),
    )


class SpecDate(TimestampMixin, Base):
    """A completed spec's match: the owner and the winning participant."""

    __tablename__ = "spec_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(
        ForeignKey("specs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    winner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date_code: Mapped[str] = mapped_column(String(6), nullable=False, unique=True)
