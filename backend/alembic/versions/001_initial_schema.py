"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates every SpecDate table: users and their one-to-one rows, the
       spark ledger, media, specs with requirements, applications, likes,
       rounds, answers, spec dates and notifications.
How:   Child tables reference users/specs with ON DELETE CASCADE so an
       account or spec delete removes everything under it.

Rollback: downgrade() drops all tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def _user_fk(nullable: bool = False) -> sa.Column:
    return sa.Column(
        "user_id",
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=nullable,
    )


def _spec_fk() -> sa.Column:
    return sa.Column(
        "spec_id",
        sa.Integer(),
        sa.ForeignKey("specs.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("mobile", sa.String(32), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_paused", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expo_push_token", sa.String(255), nullable=True),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
    )

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("sex", sa.String(32), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True, comment="Centimetres"),
        sa.Column("ethnicity", sa.String(100), nullable=True),
        sa.Column("religion", sa.String(100), nullable=True),
        sa.Column("occupation", sa.String(255), nullable=True),
        sa.Column("qualification", sa.String(255), nullable=True),
        sa.Column("sexual_orientation", sa.String(100), nullable=True),
        sa.Column("hobbies", sa.JSON(), nullable=True),
        sa.Column("is_smoker", sa.Boolean(), nullable=True),
        sa.Column("is_drug_user", sa.Boolean(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("state", sa.String(255), nullable=True),
        sa.Column("country", sa.String(255), nullable=True),
        sa.Column("continent", sa.String(100), nullable=True),
        sa.Column("profile_completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "user_balances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("red_sparks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("blue_sparks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "spark_skins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("color_hex", sa.String(7), nullable=False, server_default="#0000FF"),
        sa.Column("label", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "user_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("type", sa.String(16), nullable=False, comment="CREDIT or DEBIT"),
        sa.Column("item_type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default="GBP"),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_user_transactions_user_id", "user_transactions", ["user_id"])

    # ── Media ─────────────────────────────────────────────────────────────
    op.create_table(
        "media",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("file_path", sa.String(512), nullable=False,
                  comment="Relative to STORAGE_ROOT"),
        sa.Column("url", sa.String(1024), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("mime_type", sa.String(128), nullable=True),
        sa.Column("size", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("idx_media_user_type", "media", ["user_id", "type"])

    # ── Specs ─────────────────────────────────────────────────────────────
    op.create_table(
        "specs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_city", sa.String(255), nullable=True),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="OPEN",
                  comment="OPEN, CLOSED, COMPLETED"),
        *_timestamps(),
    )
    op.create_index("ix_specs_user_id", "specs", ["user_id"])
    op.create_index("idx_specs_status_expires", "specs", ["status", "expires_at"])

    op.create_table(
        "spec_requirements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _spec_fk(),
        sa.Column("field", sa.String(64), nullable=False),
        sa.Column("operator", sa.String(16), nullable=False),
        sa.Column("value", sa.Text(), nullable=False, comment="JSON-encoded for list operators"),
        sa.Column("is_compulsory", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_spec_requirements_spec_id", "spec_requirements", ["spec_id"])

    op.create_table(
        "spec_applications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _spec_fk(),
        _user_fk(),
        sa.Column("user_role", sa.String(16), nullable=False, server_default="participant"),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        *_timestamps(),
        sa.UniqueConstraint("spec_id", "user_id", name="uq_spec_applications_spec_user"),
    )
    op.create_index("ix_spec_applications_spec_id", "spec_applications", ["spec_id"])
    op.create_index("ix_spec_applications_user_id", "spec_applications", ["user_id"])

    op.create_table(
        "spec_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _spec_fk(),
        _user_fk(),
        *_timestamps(),
        sa.UniqueConstraint("spec_id", "user_id", name="uq_spec_likes_spec_user"),
    )
    op.create_index("ix_spec_likes_spec_id", "spec_likes", ["spec_id"])
    op.create_index("ix_spec_likes_user_id", "spec_likes", ["user_id"])

    # ── Rounds ────────────────────────────────────────────────────────────
    op.create_table(
        "spec_rounds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _spec_fk(),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE",
                  comment="ACTIVE, REVIEWING, COMPLETED"),
        sa.Column("elimination_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("deadline_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_spec_rounds_spec_id", "spec_rounds", ["spec_id"])

    op.create_table(
        "spec_round_answers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("round_id", sa.Integer(),
                  sa.ForeignKey("spec_rounds.id", ondelete="CASCADE"), nullable=False),
        _user_fk(),
        sa.Column("answer_text", sa.Text(), nullable=False),
        sa.Column("media_id", sa.Integer(),
                  sa.ForeignKey("media.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_eliminated", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("round_id", "user_id", name="uq_round_answers_round_user"),
    )
    op.create_index("ix_spec_round_answers_round_id", "spec_round_answers", ["round_id"])
    op.create_index("ix_spec_round_answers_user_id", "spec_round_answers", ["user_id"])

    op.create_table(
        "spec_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _spec_fk(),
        sa.Column("owner_id", sa.Integer(),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("winner_id", sa.Integer(),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date_code", sa.String(6), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_spec_dates_spec_id", "spec_dates", ["spec_id"])
    op.create_index("ix_spec_dates_owner_id", "spec_dates", ["owner_id"])
    op.create_index("ix_spec_dates_winner_id", "spec_dates", ["winner_id"])

    # ── Notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        _user_fk(),
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("read_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    for table in (
        "notifications",
        "spec_dates",
        "spec_round_answers",
        "spec_rounds",
        "spec_likes",
        "spec_applications",
        "spec_requirements",
        "specs",
        "media",
        "user_transactions",
        "spark_skins",
        "user_balances",
        "user_profiles",
        "users",
    ):
        op.drop_table(table)
