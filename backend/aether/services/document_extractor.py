"""PDF text extraction for uploaded documents."""

import asyncio
from io import BytesIO

from pypdf import PdfReader

from aether.core.errors import DocumentExtractionError

PDF_MIME_TYPE = "application/pdf"


def is_pdf(content_type: str | None, extension: str) -> bool:
    """A file is a PDF when either its declared type or its extension says so."""
    return content_type == PDF_MIME_TYPE or extension == "pdf"


def _read_pdf(data: bytes) -> str:
    reader = PdfReader(BytesIO(data))
    return "\n\n".join(page.extract_text() or "" for page in reader.pages)


async def extract_pdf_text(data: bytes) -> str:
    """Extract the raw text layer of a PDF.

    Parsing runs in a worker thread so sibling attachments keep progressing.

    Args:
        data: Raw PDF bytes

    Returns:
        The extracted text, never empty

    Raises:
        DocumentExtractionError: If the parser fails or finds no text
    """
    try:
        text = await asyncio.to_thread(_read_pdf, data)
    except Exception as e:
        raise DocumentExtractionError(f"PDF parsing failed: {e}") from e

    if not text.strip():
        raise DocumentExtractionError("PDF contains no extractable text")
    return text
