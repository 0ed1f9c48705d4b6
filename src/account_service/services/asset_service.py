from __future__ import annotations

import base64
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

from ..db.base import AccountFilter, BaseAccountStore
from ..errors import NotFound, ValidationError
from ..models.user import normalize_email
from ..storage.base import BaseImageHost, ImageHostError
from ..tasks.spawner import TaskSpawner


logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes


class ImageKind(Enum):
    # (account field, folder, file prefix, host transformation)
    PROFILE = ("profile_picture_url", "profiles", "profile", "f_auto,q_auto,w_400,h_400,c_fill,g_face")
    COVER = ("cover_image_url", "covers", "cover", "f_auto,q_auto,w_1200,h_400,c_fill")

    def __init__(self, field: str, folder: str, prefix: str, transformation: str) -> None:
        self.field = field
        self.folder = folder
        self.prefix = prefix
        self.transformation = transformation


def to_data_uri(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


class AssetService:
    """
    Profile and cover image uploads.

    Uploads go to the remote image host and fall back to an inline data URI
    when the host fails, so only validation and account lookup can fail the
    request. Replaced images are removed by a detached cleanup task.
    """

    def __init__(
        self,
        store: BaseAccountStore,
        image_host: BaseImageHost,
        spawner: TaskSpawner,
        folder: str = "trademinutes",
        max_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self._store = store
        self._image_host = image_host
        self._spawner = spawner
        self._folder = folder
        self._max_bytes = max_bytes

    async def upload_profile_image(self, email: str, upload: ImageUpload) -> str:
        return await self._upload(email, upload, ImageKind.PROFILE)

    async def upload_cover_image(self, email: str, upload: ImageUpload) -> str:
        return await self._upload(email, upload, ImageKind.COVER)

    def validate(self, upload: ImageUpload) -> str:
        """Check the upload and return the content type to store it under."""
        if not upload.filename or not upload.data:
            raise ValidationError("no image file provided")
        ext = PurePath(upload.filename).suffix.lower()
        if ext not in CONTENT_TYPES:
            raise ValidationError("invalid file type; only JPG, PNG, GIF, and WebP are allowed")
        if len(upload.data) > self._max_bytes:
            raise ValidationError(
                f"file too large; maximum size is {self._max_bytes // (1024 * 1024)}MB"
            )
        if upload.content_type and upload.content_type.startswith("image/"):
            return upload.content_type
        return CONTENT_TYPES[ext]

    async def _upload(self, email: str, upload: ImageUpload, kind: ImageKind) -> str:
        content_type = self.validate(upload)
        email = normalize_email(email)

        account = await self._store.find_by_email(email)
        if account is None:
            raise NotFound("user not found")
        old_url = getattr(account, kind.field)

        url = await self._store_image(email, upload.data, content_type, kind)

        if not await self._store.update_fields(AccountFilter.by_email(email), {kind.field: url}):
            self._schedule_cleanup(url)
            raise NotFound("user not found")

        if old_url and old_url != url:
            self._schedule_cleanup(old_url)
        return url

    async def _store_image(
        self, email: str, data: bytes, content_type: str, kind: ImageKind
    ) -> str:
        slug = re.sub(r"[^A-Za-z0-9_-]", "_", email)
        public_id = f"{self._folder}/{kind.folder}/{kind.prefix}_{slug}_{int(time.time())}"
        try:
            url = await self._image_host.upload(
                data, content_type, public_id, transformation=kind.transformation
            )
        except ImageHostError as exc:
            logger.warning(
                "Image host upload failed for %s: %s, falling back to inline storage",
                email,
                exc,
            )
            return to_data_uri(data, content_type)
        logger.info("%s image uploaded to image host for %s", kind.prefix.capitalize(), email)
        return url

    def _schedule_cleanup(self, url: str) -> None:
        self._spawner.spawn(self.cleanup(url), name="image-cleanup")

    async def cleanup(self, url: str) -> None:
        """Best-effort removal of an image that is no longer referenced."""
        public_id = self._image_host.public_id_for(url)
        if public_id is None:
            logger.info("Dropped inline image reference (%d chars)", len(url))
            return
        try:
            await self._image_host.destroy(public_id)
        except ImageHostError as exc:
            logger.warning("Failed to delete old image %s: %s", public_id, exc)
