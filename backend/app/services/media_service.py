"""
SpecDate Backend — Media Service
==================================

What:  Upload, replace and delete user media; avatar/gallery lookups used by
       every payload that shows a face.
How:   FileService validates and writes the bytes; this service owns the
       `media` rows and the public URL built from MEDIA_BASE_URL.

Rules:
    - media_id (replace in place) only for avatar and profile_gallery, and
      only for the caller's own rows
    - at most MAX_GALLERY_IMAGES profile_gallery rows per user
    - the newest avatar row is the user's avatar
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.models import Media, MediaType, User
from app.services.file_service import file_service

logger = logging.getLogger(__name__)

REPLACEABLE_TYPES = {MediaType.AVATAR.value, MediaType.PROFILE_GALLERY.value}


class MediaService:

    def build_url(self, file_path: str, transformations: Optional[Dict[str, int]] = None) -> str:
        """
        Public URL for a stored file under MEDIA_BASE_URL.

        `transformations` become an image CDN query in insertion order:
        {"w": 300, "h": 300} → "...?tr=w-300,h-300".
        """
        url = f"{settings.media_base_url.rstrip('/')}/{file_path.lstrip('/')}"
        if transformations:
            url += "?tr=" + ",".join(f"{key}-{value}" for key, value in transformations.items())
        return url

    async def upload(
        self,
        db: AsyncSession,
        user: User,
        media_type: str,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        media_id: Optional[int] = None,
    ) -> Media:
        """
        Stores an upload as a new media row, or replaces the file of `media_id`.

        Raises:
            ValidationError: unknown type, media_id not allowed, gallery full, bad file
            NotFoundError: media_id does not belong to the caller
        """
        valid_types = {t.value for t in MediaType}
        if media_type not in valid_types:
            raise ValidationError(
                message=f"The selected type is invalid. Allowed: {', '.join(sorted(valid_types))}.",
                field="type",
            )

        existing: Optional[Media] = None
        if media_id is not None:
            if media_type not in REPLACEABLE_TYPES:
                raise ValidationError(
                    message="media_id is only allowed for avatar and profile_gallery uploads.",
                    field="media_id",
                )
            existing = await db.scalar(
                select(Media).where(Media.id == media_id, Media.user_id == user.id)
            )
            if existing is None:
                raise NotFoundError(resource="media", resource_id=media_id)
        elif media_type == MediaType.PROFILE_GALLERY.value:
            count = await db.scalar(
                select(func.count(Media.id)).where(
                    Media.user_id == user.id,
                    Media.type == MediaType.PROFILE_GALLERY.value,
                )
            )
            if (count or 0) >= settings.max_gallery_images:
                raise ValidationError(
                    message=(
                        f"You can have at most {settings.max_gallery_images} gallery images. "
                        "Replace or delete one first."
                    ),
                    field="file",
                )

        stored = await file_service.validate_and_store(
            user_id=user.id,
            media_type=media_type,
            filename=filename,
            content_type=content_type,
            content=content,
        )

        if existing is not None:
            old_path = existing.file_path
            existing.file_path = stored.relative_path
            existing.url = self.build_url(stored.relative_path)
            existing.type = media_type
            existing.mime_type = stored.mime_type
            existing.size = stored.size
            await db.flush()
            await file_service.cleanup_file(old_path)
            logger.info("Media %d replaced for user %d", existing.id, user.id)
            return existing

        media = Media(
            user_id=user.id,
            file_path=stored.relative_path,
            url=self.build_url(stored.relative_path),
            type=media_type,
            mime_type=stored.mime_type,
            size=stored.size,
        )
        db.add(media)
        await db.flush()
        logger.info("Media %d (%s) uploaded for user %d", media.id, media_type, user.id)
        return media

    async def delete(self, db: AsyncSession, user: User, media_id: int) -> None:
        media = await db.scalar(
            select(Media).where(Media.id == media_id, Media.user_id == user.id)
        )
        if media is None:
            raise NotFoundError(resource="media", resource_id=media_id)
        path = media.file_path
        await db.delete(media)
        await db.flush()
        await file_service.cleanup_file(path)

    async def get_owned(self, db: AsyncSession, user_id: int, media_id: int, types: Iterable[str]) -> Media:
        media = await db.scalar(
            select(Media).where(
                Media.id == media_id,
                Media.user_id == user_id,
                Media.type.in_(list(types)),
            )
        )
        if media is None:
            raise NotFoundError(resource="media", resource_id=media_id)
        return media

    async def latest_avatar(self, db: AsyncSession, user_id: int) -> Optional[Media]:
        return await db.scalar(
            select(Media)
            .where(Media.user_id == user_id, Media.type == MediaType.AVATAR.value)
            .order_by(Media.id.desc())
            .limit(1)
        )

    async def avatar_urls(self, db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, str]:
        """Newest avatar URL per user, in one query."""
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(Media.user_id, Media.url)
            .where(Media.user_id.in_(ids), Media.type == MediaType.AVATAR.value)
            .order_by(Media.id.desc())
        )
        avatars: Dict[int, str] = {}
        for user_id, url in result.all():
            avatars.setdefault(user_id, url)
        return avatars

    async def gallery(self, db: AsyncSession, user_id: int) -> List[Media]:
        result = await db.execute(
            select(Media)
            .where(Media.user_id == user_id, Media.type == MediaType.PROFILE_GALLERY.value)
            .order_by(Media.id.desc())
            .limit(settings.max_gallery_images)
        )
        return list(result.scalars().all())

    async def urls_by_id(self, db: AsyncSession, media_ids: Iterable[int]) -> Dict[int, str]:
        ids = [m for m in set(media_ids) if m is not None]
        if not ids:
            return {}
        result = await db.execute(select(Media.id, Media.url).where(Media.id.in_(ids)))
        return {media_id: url for media_id, url in result.all()}

    async def paths_for_user(self, db: AsyncSession, user_id: int) -> List[str]:
        result = await db.execute(select(Media.file_path).where(Media.user_id == user_id))
        return list(result.scalars().all())


media_service = MediaService()
