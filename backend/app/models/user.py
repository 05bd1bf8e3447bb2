"""
SpecDate Backend — User, Profile and Spark Models
===================================================

What:  ORM models for accounts and everything hanging directly off a user:
       profile, spark balance, spark skin and spark transactions.
Who:   Auth, profile, account and spec services.

Table notes:
    - users.username / email / mobile are unique; passwords are bcrypt hashes
    - users.token_version is embedded in issued JWTs; logout bumps it, which
      revokes every outstanding token at once
    - user_profiles.hobbies is a JSON list; profile_completed_at is set by the
      profile service whenever every required field is present
    - Child rows use ON DELETE CASCADE so deleting a user removes its data
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.mixins import TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    mobile: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    terms_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expo_push_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Small one-to-one rows used by almost every payload
    profile: Mapped[Optional["UserProfile"]] = relationship(
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    balance: Mapped[Optional["UserBalance"]] = relationship(
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    spark_skin: Mapped[Optional["SparkSkin"]] = relationship(
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class UserProfile(TimestampMixin, Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dob: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sex: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # cm
    ethnicity: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    religion: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    occupation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    qualification: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sexual_orientation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    hobbies: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    is_smoker: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_drug_user: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    continent: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    profile_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship(back_populates="profile")


class UserBalance(TimestampMixin, Base):
    __tablename__ = "user_balances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # Red sparks are lives lost on elimination; blue sparks pay to join a spec
    red_sparks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blue_sparks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped["User"] = relationship(back_populates="balance")


class SparkSkin(TimestampMixin, Base):
    __tablename__ = "spark_skins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    color_hex: Mapped[str] = mapped_column(String(7), nullable=False, default="#0000FF")
    label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user: Mapped["User"] = relationship(back_populates="spark_skin")


class UserTransaction(TimestampMixin, Base):
    """Ledger row for every spark movement."""

    __tablename__ = "user_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # CREDIT | DEBIT
    item_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # `metadata` is reserved on declarative classes
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
