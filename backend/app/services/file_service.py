"""
SpecDate Backend — File Storage Service
=========================================

What:  Validates uploads per media type and stores them on the media volume.
How:   Extension + declared content type checks, size limit per type, UUID
       filenames under uploads/{user_id}/{type}/, async writes via aiofiles.
Who:   MediaService (upload/replace/delete), AccountService (purge on
       delete) and the /api/files route (safe path resolution).

Per-type rules:
    round_answer_video   ≤ 50 MB   mp4, mov, m4v, 3gp
    round_answer_image   ≤ 10 MB   jpeg, png, gif, webp (extension and content type)
    everything else      ≤ 10 MB   size only; the stored suffix comes from the
                                   filename, or the content type when the
                                   name has none

Attack vectors covered:
    - Path traversal: stored names contain no user input; served paths are
      resolved and must stay under STORAGE_ROOT
    - Oversized uploads: rejected before anything touches disk
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

import aiofiles

from app.config import settings
from app.exceptions import FileStorageError, NotFoundError, ValidationError
from app.models.media import MediaType

logger = logging.getLogger(__name__)

ANSWER_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".m4v", ".3gp"})

ANSWER_IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})

SAFE_SUFFIX = re.compile(r"^\.[a-z0-9]{1,10}$")

# Mobile pickers sometimes send names without a suffix
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/heic": ".heic",
    "image/heif": ".heif",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/x-m4v": ".m4v",
    "video/3gpp": ".3gp",
    "video/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/aac": ".aac",
    "application/pdf": ".pdf",
}


@dataclass(frozen=True)
class UploadRule:
    max_size: int
    extensions: Optional[FrozenSet[str]] = None
    content_types: Optional[FrozenSet[str]] = None


@dataclass(frozen=True)
class StoredFile:
    absolute_path: str
    relative_path: str
    mime_type: Optional[str]
    size: int


class FileService:
    """
    Manages upload validation and the storage lifecycle.

    Directory Structure:
        storage/
        └── uploads/
            └── 42/
                ├── avatar/3f1c...e9.jpg
                └── round_answer_video/a81b...04.mp4
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def rule_for(self, media_type: str) -> UploadRule:
        if media_type == MediaType.ROUND_ANSWER_VIDEO.value:
            return UploadRule(settings.max_video_size, VIDEO_EXTENSIONS)
        if media_type == MediaType.ROUND_ANSWER_IMAGE.value:
            return UploadRule(
                settings.max_image_size,
                ANSWER_IMAGE_EXTENSIONS,
                ANSWER_IMAGE_CONTENT_TYPES,
            )
        return UploadRule(settings.max_image_size)

    @staticmethod
    def _limit_mb(rule: UploadRule) -> str:
        return f"{rule.max_size / (1024 * 1024):.0f}MB"

    def validate_extension(self, filename: str, content_type: Optional[str], rule: UploadRule) -> str:
        """
        Returns the normalized extension (lowercase, with dot), or "" when a
        size-only rule gets a file with no usable suffix.

        Falls back to the declared content type when the name has no suffix.
        """
        ext = Path(filename or "").suffix.lower()
        if not SAFE_SUFFIX.match(ext):
            ext = ""
        if not ext and content_type:
            ext = CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), "")
        if rule.extensions is None:
            return ext
        if ext not in rule.extensions:
            allowed = ", ".join(sorted(e.lstrip(".") for e in rule.extensions))
            raise ValidationError(
                message=f"The file must be a file of type: {allowed}.",
                field="file",
                context={"extension": ext or None},
            )
        return ext

    def validate_size(self, size: int, rule: UploadRule) -> None:
        if size <= 0:
            raise ValidationError(
                message=f"The file field is required and must be a file under {self._limit_mb(rule)}.",
                field="file",
            )
        if size > rule.max_size:
            raise ValidationError(
                message=(
                    f"File size ({size / (1024 * 1024):.1f}MB) exceeds maximum of "
                    f"{self._limit_mb(rule)}."
                ),
                field="file",
                context={"max_size": rule.max_size, "actual_size": size},
            )

    def validate_content_type(self, content_type: Optional[str], rule: UploadRule) -> None:
        if rule.content_types is None:
            return
        if (content_type or "").lower() not in rule.content_types:
            raise ValidationError(
                message="The file must be an image (jpeg, png, gif, webp).",
                field="file",
                context={"content_type": content_type},
            )

    def _generate_storage_path(self, user_id: int, media_type: str, extension: str) -> Tuple[Path, str]:
        relative_path = f"uploads/{user_id}/{media_type}/{uuid.uuid4().hex}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, user_id: int, media_type: str, extension: str) -> Tuple[str, str]:
        """
        Writes content to a fresh path and returns (absolute_path, relative_path).

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        absolute_path, relative_path = self._generate_storage_path(user_id, media_type, extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )
        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    def resolve_path(self, relative_path: str) -> Path:
        """
        Maps a stored relative path to an existing file under the storage root.

        Raises:
            ValidationError for paths escaping the root, NotFoundError if missing.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if full_path != self.storage_root and self.storage_root not in full_path.parents:
            raise ValidationError(message="Invalid file path", field="path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path

    async def cleanup_file(self, relative_path: str) -> None:
        """
        Best-effort delete of a stored file.

        Missing files are ignored; other errors are logged, never raised.
        """
        try:
            path = (self.storage_root / relative_path).resolve()
            if self.storage_root not in path.parents:
                logger.warning("Refusing to delete outside storage root: %s", relative_path)
                return
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", relative_path)
            else:
                logger.debug("Cleanup: file already gone: %s", relative_path)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", relative_path, str(e))

    async def validate_and_store(
        self,
        user_id: int,
        media_type: str,
        filename: str,
        content_type: Optional[str],
        content: bytes,
    ) -> StoredFile:
        """Cheapest checks first: size, extension, content type, then the write."""
        rule = self.rule_for(media_type)
        self.validate_size(len(content), rule)
        ext = self.validate_extension(filename, content_type, rule)
        self.validate_content_type(content_type, rule)
        absolute_path, relative_path = await self.store_file(content, user_id, media_type, ext)
        return StoredFile(
            absolute_path=absolute_path,
            relative_path=relative_path,
            mime_type=content_type,
            size=len(content),
        )


file_service = FileService()
