import asyncio
import io
import os
import uuid
from dataclasses import dataclass
from typing import Tuple

from minio import Minio
from PIL import Image, UnidentifiedImageError

from config import settings
from db.schemas.messages_schema import AttachmentInDB, AttachmentKind
from logger.logger import logger
from services.exceptions import UpstreamFailure


@dataclass
class PendingUpload:
    """File received with a message, not yet stored"""
    data: bytes
    filename: str
    content_type: str


def process_image(image_data: bytes, max_side: int, quality: int = 85) -> Tuple[bytes, str]:
    """
    Shrink an image so neither side exceeds max_side and re-encode it as WebP

    Returns:
        Tuple of (processed_image_bytes, content_type)
    """
    image = Image.open(io.BytesIO(image_data))

    # Flatten transparency onto white, WebP output is RGB
    if image.mode in ('RGBA', 'LA'):
        background = Image.new('RGB', image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        image = background
    elif image.mode != 'RGB':
        image = image.convert('RGB')

    if image.size[0] > max_side or image.size[1] > max_side:
        image.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)

    output = io.BytesIO()
    image.save(output, format='WEBP', quality=quality, optimize=True)
    return output.getvalue(), 'image/webp'


class StorageService:
    """
    Uploads chat attachments to object storage.
    Any failure surfaces as UpstreamFailure; callers decide whether to degrade.
    """

    def __init__(self, minio_client: Minio, folder: str = "chat"):
        self.minio_client = minio_client
        self.folder = folder

    async def upload_attachment(self, data: bytes, filename: str, content_type: str) -> AttachmentInDB:
        if not data:
            raise UpstreamFailure("Attachment is empty")

        kind = AttachmentKind.IMAGE if (content_type or "").startswith("image/") else AttachmentKind.FILE
        display_name = filename or "attachment"

        try:
            if kind == AttachmentKind.IMAGE:
                data, content_type = await asyncio.to_thread(process_image, data, settings.CHAT_IMAGE_MAX_SIDE)
                extension = "webp"
            else:
                extension = os.path.splitext(display_name)[1].lstrip(".").lower() or "bin"
        except (UnidentifiedImageError, OSError) as e:
            raise UpstreamFailure(f"Could not process image {display_name}: {e}") from e

        object_name = f"{self.folder}/{uuid.uuid4()}.{extension}"
        try:
            await asyncio.to_thread(
                self.minio_client.put_object,
                bucket_name=settings.MINIO_BUCKET,
                object_name=object_name,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
            )
        except Exception as e:
            raise UpstreamFailure(f"Failed to upload {display_name}: {e}") from e

        logger.info(f"Uploaded attachment {object_name} ({len(data)} bytes)")
        return AttachmentInDB(
            url=f"{settings.minio_public_url}/{object_name}",
            kind=kind,
            name=display_name,
        )
