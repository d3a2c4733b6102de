"""Decoding and storage of uploaded identity documents."""

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import UUID, uuid4

from PIL import Image, UnidentifiedImageError

from courier.config import get_settings
from courier.errors import DependencyError, ValidationError
from courier.models.driver import DocumentSlot
from courier.utils.logging import get_logger

logger = get_logger(__name__)

PDF_SIGNATURE = b"%PDF-"

# Pillow format name -> (content type, file extension)
IMAGE_FORMATS = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
}


@dataclass(frozen=True)
class DecodedDocument:
    content: bytes
    content_type: str
    extension: str


def _b64_body(payload: str) -> str:
    """Return the base64 body of a raw string or ``data:`` URL."""
    payload = payload.strip()
    if payload.startswith("data:"):
        header, sep, body = payload.partition(",")
        if not sep or not header.endswith(";base64"):
            raise ValidationError("Only base64 data URLs are supported")
        return body
    return payload


def decode_document(payload: str, max_bytes: int | None = None) -> DecodedDocument:
    """Decode a base64 payload into a JPEG, PNG or PDF document.

    Raises:
        ValidationError: the payload is not base64, too large or not a supported type
    """
    max_bytes = max_bytes or get_settings().max_document_bytes
    body = "".join(_b64_body(payload).split())
    try:
        raw = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Document is not valid base64") from exc

    if not raw:
        raise ValidationError("Document is empty")
    if len(raw) > max_bytes:
        raise ValidationError("Document is too large", size=len(raw), limit=max_bytes)

    if raw.startswith(PDF_SIGNATURE):
        return DecodedDocument(content=raw, content_type="application/pdf", extension="pdf")

    try:
        with Image.open(io.BytesIO(raw)) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise ValidationError("Document is not a readable image or PDF") from exc

    if image_format not in IMAGE_FORMATS:
        raise ValidationError("Unsupported image format", format=image_format)

    content_type, extension = IMAGE_FORMATS[image_format]
    return DecodedDocument(content=raw, content_type=content_type, extension=extension)


class DocumentStorage(Protocol):
    """Where decoded documents end up. Returns a URL reference per file."""

    async def store(
        self, driver_id: UUID, slot: DocumentSlot, document: DecodedDocument
    ) -> str: ...


class LocalDocumentStorage:
    """Stores documents on the local filesystem, served under a URL prefix."""

    def __init__(self, root: str | Path | None = None, url_prefix: str | None = None):
        settings = get_settings()
        self.root = Path(root or settings.upload_dir)
        self.url_prefix = (url_prefix or settings.upload_url_prefix).rstrip("/")

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def store(
        self, driver_id: UUID, slot: DocumentSlot, document: DecodedDocument
    ) -> str:
        filename = f"{slot.value}-{uuid4().hex[:12]}.{document.extension}"
        relative = Path("drivers") / str(driver_id) / filename
        try:
            await asyncio.to_thread(self._write, self.root / relative, document.content)
        except OSError as exc:
            raise DependencyError("Document storage failed", slot=slot.value) from exc

        logger.debug("document_stored", driver_id=str(driver_id), slot=slot.value, path=str(relative))
        return f"{self.url_prefix}/{relative.as_posix()}"
