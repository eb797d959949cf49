import logging
import cloudinary
import cloudinary.uploader
from fastapi import UploadFile
from ecofinds.config import settings
from ecofinds.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


def file_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size


def check_image(file: UploadFile, max_size_mb: int, field: str = "images") -> None:
    """Reject non-image uploads and files above the size limit."""
    if (file.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed(
            [{"field": field, "message": "Only image files (JPEG, PNG, GIF, WebP) are allowed"}]
        )
    if file_size(file) > max_size_mb * 1024 * 1024:
        raise ValidationFailed(
            [{"field": field, "message": f"File too large. Maximum size is {max_size_mb}MB"}]
        )


class ImageService:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
        )

    async def upload_image(self, file: UploadFile, folder: str) -> dict:
        result = cloudinary.uploader.upload(
            file.file,
            folder=f"{settings.CLOUDINARY_FOLDER}/{folder}",
            transformation=[
                {"width": 1200, "height": 1200, "crop": "limit", "quality": "auto"},
                {"fetch_format": "auto"},
            ],
        )

        return {
            "public_id": result["public_id"],
            "secure_url": result["secure_url"],
        }

    async def delete_image(self, public_id: str):
        cloudinary.uploader.destroy(public_id)

    async def upload_many(self, files: list[UploadFile], folder: str) -> list[dict]:
        """Upload every file; on failure remove the ones already stored and re-raise."""
        uploaded: list[dict] = []
        try:
            for file in files:
                uploaded.append(await self.upload_image(file, folder))
        except Exception:
            await self.discard([u["public_id"] for u in uploaded])
            raise
        return uploaded

    async def discard(self, public_ids: list[str]) -> None:
        """Best-effort removal of stored files; failures are logged, not raised."""
        for public_id in public_ids:
            if not public_id:
                continue
            try:
                await self.delete_image(public_id)
            except Exception as exc:
                logger.warning("Failed to delete stored image %s: %s", public_id, exc)
