"""
SpecDate Backend — Media Model
================================

What:  One row per stored upload (avatar, gallery image, round answer, ...).
Why:   The file lives on the storage volume; the row records who owns it,
       what it is for and the public URL clients render.

file_path is relative to STORAGE_ROOT: uploads/{user_id}/{type}/{uuid}.{ext}
"""

from enum import Enum
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.mixins import TimestampMixin


class MediaType(str, Enum):
    AVATAR = "avatar"
    PROFILE_GALLERY = "profile_gallery"
    CHAT = "chat"
    PROOF = "proof"
    ROUND_ANSWER_IMAGE = "round_answer_image"
    ROUND_ANSWER_VIDEO = "round_answer_video"


class Media(TimestampMixin, Base):
    __tablename__ = "media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_media_user_type", "user_id", "type"),
    )

    def __repr__(self) -> str:
        return f"<Media(id={self.id}, type='{self.type}', path='{self.file_path}')>"
