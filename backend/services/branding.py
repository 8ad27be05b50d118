import base64
import binascii
import os
from typing import Optional, Tuple

import structlog

from core.converters import clean_text, to_uuid
from core.errors import NotFoundError, StockError, ValidationError
from core.results import OperationResult, operation
from db.database import utcnow
from db.gateway import PersistenceGateway
from db.image import Image
from db.setting import CompanySetting

logger = structlog.get_logger(__name__)

LOGO_SETTING_KEY = "company_logo"

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


def decode_data_url(value: str) -> Tuple[bytes, str]:
    """Split ``data:image/png;base64,....`` (or bare base64) into bytes and content type."""
    content_type = "image/jpeg"
    payload = clean_text(value)
    if "," in payload:
        prefix, payload = payload.split(",", 1)
        if prefix.startswith("data:") and ";" in prefix:
            content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
    try:
        return base64.b64decode("".join(payload.split()), validate=True), content_type
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64")


class BrandingService:
    def __init__(self, gateway: PersistenceGateway, max_bytes: int = 2 * 1024 * 1024):
        self._gateway = gateway
        self.max_bytes = max_bytes

    async def get_setting(self, key: str) -> Optional[str]:
        row = await self._gateway.find_one(CompanySetting, setting_key=key)
        return row.setting_value if row else None

    async def set_setting(self, key: str, value: Optional[str]) -> None:
        row = await self._gateway.find_one(CompanySetting, setting_key=key)
        if row is None:
            await self._gateway.insert(CompanySetting, setting_key=key, setting_value=value)
        else:
            await self._gateway.update(CompanySetting, row.id, setting_value=value, updated_at=utcnow())
        logger.info("setting_saved", key=key)

    async def delete_setting(self, key: str) -> bool:
        row = await self._gateway.find_one(CompanySetting, setting_key=key)
        if row is None:
            return False
        return await self._gateway.delete(CompanySetting, row.id)

    async def logo_url(self) -> Optional[str]:
        return await self.get_setting(LOGO_SETTING_KEY)

    def _image_content_type(self, content_type: Optional[str], filename: Optional[str]) -> str:
        content_type = clean_text(content_type).lower()
        ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
        if content_type and content_type != "application/octet-stream":
            if not content_type.startswith("image/"):
                raise ValidationError("Please select an image file")
            return content_type
        if ext not in EXT_TO_CONTENT_TYPE:
            raise ValidationError("Please select an image file")
        return EXT_TO_CONTENT_TYPE[ext]

    @operation("Failed to upload logo")
    async def upload_logo(
        self,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> OperationResult:
        """Store a new company logo and point the ``company_logo`` setting at it."""
        content_type = self._image_content_type(content_type, filename)
        if not data:
            raise ValidationError("Please select an image file")
        if len(data) > self.max_bytes:
            raise ValidationError(f"Image size must be less than {self.max_bytes / (1024 * 1024):g}MB")

        previous = await self.logo_url()
        image = await self._gateway.insert(Image, data=data, content_type=content_type)
        url = f"/images/serve/{image.id}"
        try:
            await self.set_setting(LOGO_SETTING_KEY, url)
        except StockError:
            await self._gateway.delete(Image, image.id)
            raise
        if previous:
            await self._delete_image(previous)

        logger.info("logo_uploaded", image_id=str(image.id), size=len(data), content_type=content_type)
        return OperationResult.ok("Logo uploaded successfully!", data={"logo_url": url})

    @operation("Failed to remove logo")
    async def remove_logo(self) -> OperationResult:
        previous = await self.logo_url()
        if not previous:
            raise NotFoundError("No logo to remove")
        await self.delete_setting(LOGO_SETTING_KEY)
        await self._delete_image(previous)
        logger.info("logo_removed")
        return OperationResult.ok("Logo removed successfully")

    async def _delete_image(self, url: str) -> None:
        try:
            image_id = to_uuid(url.rstrip("/").rsplit("/", 1)[-1], "Image")
        except NotFoundError:
            # Not one of ours (e.g. an external URL); nothing to clean up.
            return
        await self._gateway.delete(Image, image_id)
