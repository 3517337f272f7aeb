"""Per-file attachment processing: classify, extract, upload, sign.

Files are processed concurrently, one task per file, and results are
re-sequenced into submission order before they are returned.
"""

import asyncio
import re
import secrets
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from aether.ai.vision import VisionSummarizer
from aether.config import settings
from aether.core.errors import DocumentExtractionError
from aether.core.logging import get_logger
from aether.models.schemas import Attachment
from aether.services.document_extractor import extract_pdf_text, is_pdf
from aether.services.file_storage import DEFAULT_CONTENT_TYPE, FileStorageService
from aether.services.text_normalizer import normalize, truncate

logger = get_logger(__name__)

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "webp", "tiff", "svg"})
_EXTENSION_RE = re.compile(r"[a-z0-9]+")


class AttachmentKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    OTHER = "other"


@dataclass
class IncomingFile:
    """One uploaded file as received from the request."""

    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class AttachmentResult:
    """Outcome of processing one file.

    display_text is what the model sees; full_text is persisted untruncated.
    """

    attachment: Attachment
    display_text: str | None = None
    full_text: str | None = None


def file_extension(filename: str) -> str:
    """Lowercased alphanumeric extension, or "bin" when there is none."""
    name = (filename or "").lower()
    if "." not in name:
        return "bin"
    extension = name.rsplit(".", 1)[-1]
    return extension if _EXTENSION_RE.fullmatch(extension) else "bin"


def is_image(content_type: str | None, extension: str) -> bool:
    return bool(content_type and content_type.startswith("image/")) or extension in IMAGE_EXTENSIONS


def classify(content_type: str | None, extension: str) -> AttachmentKind:
    """PDF wins over image when both tests match."""
    if is_pdf(content_type, extension):
        return AttachmentKind.PDF
    if is_image(content_type, extension):
        return AttachmentKind.IMAGE
    return AttachmentKind.OTHER


def build_storage_path(owner_id: str, chat_id: str, extension: str) -> str:
    """owner/chat/<epoch ms>-<random>.<ext>"""
    suffix = secrets.token_hex(6)
    return f"{owner_id}/{chat_id}/{int(time.time() * 1000)}-{suffix}.{extension}"


async def _extract(
    file: IncomingFile,
    kind: AttachmentKind,
    extension: str,
    summarizer: VisionSummarizer,
) -> tuple[str | None, str | None]:
    """Return (display_text, full_text); failures degrade to (None, None)."""
    if kind == AttachmentKind.PDF:
        try:
            raw = await extract_pdf_text(file.data)
        except DocumentExtractionError as e:
            logger.warning("pdf_extraction_failed", filename=file.filename, error=str(e))
            return None, None
        return truncate(raw, settings.max_attachment_context_chars), normalize(raw)

    if kind == AttachmentKind.IMAGE:
        mime_type = file.content_type or f"image/{extension}"
        summary = await summarizer.describe_image(file.data, mime_type)
        return summary, summary

    return None, None


async def _resolve_url(storage: FileStorageService, storage_path: str) -> str:
    """Signed URL, falling back to the public URL when signing fails."""
    try:
        return await storage.create_signed_url(storage_path, settings.signed_url_ttl_seconds)
    except Exception as e:
        logger.warning("signed_url_failed", storage_path=storage_path, error=str(e))
        return storage.get_public_url(storage_path)


async def process_file(
    file: IncomingFile,
    owner_id: str,
    chat_id: str,
    storage: FileStorageService,
    summarizer: VisionSummarizer,
) -> AttachmentResult:
    """Run one file through classify -> extract -> upload -> sign.

    Raises:
        StorageError: If the upload fails
    """
    extension = file_extension(file.filename)
    storage_path = build_storage_path(owner_id, chat_id, extension)
    kind = classify(file.content_type, extension)

    display_text, full_text = await _extract(file, kind, extension, summarizer)
    if display_text:
        logger.info(
            "attachment_text_extracted",
            filename=file.filename,
            kind=kind.value,
            chars=len(full_text or ""),
        )

    await storage.upload(storage_path, file.data, file.content_type or DEFAULT_CONTENT_TYPE)
    url = await _resolve_url(storage, storage_path)

    attachment = Attachment(
        id=str(uuid.uuid4()),
        name=file.filename,
        mime_type=file.content_type or "",
        size=file.size,
        storage_path=storage_path,
        url=url,
        summary=display_text,
    )
    return AttachmentResult(
        attachment=attachment,
        display_text=display_text or None,
        full_text=full_text or None,
    )


async def process_attachments(
    files: list[IncomingFile],
    owner_id: str,
    chat_id: str,
    storage: FileStorageService,
    summarizer: VisionSummarizer,
) -> list[AttachmentResult]:
    """Process all files concurrently and return results in submission order.

    Raises:
        StorageError: If any file fails to upload; sibling tasks still finish
    """
    if not files:
        return []

    async def run(index: int, file: IncomingFile) -> tuple[int, AttachmentResult]:
        return index, await process_file(file, owner_id, chat_id, storage, summarizer)

    tasks = [asyncio.create_task(run(index, file)) for index, file in enumerate(files)]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    return [result for _, result in sorted(outcomes, key=lambda item: item[0])]
