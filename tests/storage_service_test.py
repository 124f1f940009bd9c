import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from db.schemas.messages_schema import AttachmentKind
from services.exceptions import UpstreamFailure
from services.storage_service import StorageService, process_image


def png_bytes(size=(1200, 600), mode="RGBA"):
    output = io.BytesIO()
    Image.new(mode, size, (255, 0, 0, 128) if mode == "RGBA" else (255, 0, 0)).save(output, format="PNG")
    return output.getvalue()


def test_process_image_shrinks_and_converts_to_webp():
    data, content_type = process_image(png_bytes(), max_side=800)

    assert content_type == "image/webp"
    image = Image.open(io.BytesIO(data))
    assert image.format == "WEBP"
    assert image.size == (800, 400)


def test_small_images_keep_their_size():
    data, _ = process_image(png_bytes((100, 50), mode="RGB"), max_side=800)
    assert Image.open(io.BytesIO(data)).size == (100, 50)


async def test_image_upload():
    minio_client = MagicMock()
    storage = StorageService(minio_client)

    attachment = await storage.upload_attachment(png_bytes(), "photo.png", "image/png")

    assert attachment.kind == AttachmentKind.IMAGE
    assert attachment.name == "photo.png"
    assert attachment.url.startswith("http://localhost:9000/chat-test/chat/")
    assert attachment.url.endswith(".webp")
    kwargs = minio_client.put_object.call_args.kwargs
    assert kwargs["bucket_name"] == "chat-test"
    assert kwargs["content_type"] == "image/webp"


async def test_other_files_are_stored_as_is():
    minio_client = MagicMock()
    attachment = await StorageService(minio_client).upload_attachment(b"%PDF-1.4", "notes.pdf", "application/pdf")

    assert attachment.kind == AttachmentKind.FILE
    assert attachment.url.endswith(".pdf")
    assert minio_client.put_object.call_args.kwargs["length"] == 8


async def test_failures_surface_as_upstream_failure():
    minio_client = MagicMock()
    minio_client.put_object.side_effect = RuntimeError("connection refused")
    storage = StorageService(minio_client)

    with pytest.raises(UpstreamFailure):
        await storage.upload_attachment(b"%PDF-1.4", "notes.pdf", "application/pdf")
    with pytest.raises(UpstreamFailure):
        await storage.upload_attachment(b"not an image", "photo.png", "image/png")
    with pytest.raises(UpstreamFailure):
        await storage.upload_attachment(b"", "empty.txt", "text/plain")
