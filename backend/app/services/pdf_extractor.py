"""Extract plain text from an uploaded resume PDF.

The document is validated (type, size) before any decoding, then parsed
in a worker thread with pypdf. pypdf reads only the supplied bytes: it never
fetches remote fonts/resources and never runs embedded JavaScript.

Extraction is all-or-nothing: any decode or page error raises
ExtractionFailed and no partial text is returned.
"""

import asyncio
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from pypdf.generic import NameObject, NumberObject

from app.core.constants import MAX_UPLOAD_SIZE, PDF_CONTENT_TYPE, PDF_SUFFIX
from app.core.errors import DocumentTooLarge, ExtractionFailed, InvalidDocument
from app.core.logger import logger
from app.models import ExtractedDocument

# Tj, TJ, ' and " (PDF 32000-1, table 107)
_TEXT_SHOWING_OPERATORS = {b"Tj", b"TJ", b"'", b'"'}
_IDENTITY_MATRIX = (1, 0, 0, 1, 0, 0)


def is_pdf(content_type: str | None, filename: str | None) -> bool:
    """A document counts as PDF if either its content type or its filename says so."""
    if content_type and content_type.split(";")[0].strip().lower() == PDF_CONTENT_TYPE:
        return True
    return bool(filename) and filename.lower().endswith(PDF_SUFFIX)


def validate_document(content_type: str | None, filename: str | None, size: int) -> None:
    if not is_pdf(content_type, filename):
        raise InvalidDocument("Invalid file type — please upload a PDF file")
    if size > MAX_UPLOAD_SIZE:
        raise DocumentTooLarge(
            f"File too large (max {MAX_UPLOAD_SIZE // (1024 * 1024)}MB)"
        )


def _split_text_runs(page) -> None:
    """Make every text-showing operator reach ``visitor_text`` on its own.

    pypdf buffers consecutive Tj/TJ output and only hands it to the visitor
    when the buffer is flushed, which a ``cm`` operator always does. An
    identity ``cm`` after each text-showing operator leaves positions
    untouched. Only the in-memory page of this reader is changed.
    """
    content = page.get_contents()
    if content is None:
        return

    operations = []
    for operands, operator in content.operations:
        operations.append((operands, operator))
        if operator in _TEXT_SHOWING_OPERATORS:
            operations.append(([NumberObject(n) for n in _IDENTITY_MATRIX], b"cm"))
    content.operations = operations
    page[NameObject("/Contents")] = content


def _page_text(page) -> str:
    """Join a page's text runs (one per text-showing operator) with single spaces."""
    runs: list[str] = []

    def collect(text, cm, tm, font_dict, font_size):
        run = text.strip()
        if run:
            runs.append(run)

    _split_text_runs(page)
    page.extract_text(visitor_text=collect)
    return " ".join(runs)


def _decode(data: bytes) -> ExtractedDocument:
    reader = PdfReader(BytesIO(data))
    if reader.is_encrypted and not reader.decrypt(""):
        raise ExtractionFailed("document is password protected")

    pages = [_page_text(page) for page in reader.pages]
    return ExtractedDocument(text="\n".join(pages).strip(), page_count=len(pages))


async def extract_text(
    data: bytes,
    content_type: str | None,
    filename: str | None = None,
    size: int | None = None,
) -> ExtractedDocument:
    """Validate an uploaded document and return its normalized text.

    Args:
        data: Raw bytes of the upload.
        content_type: Declared media type (may be None).
        filename: Original filename, used for the ``.pdf`` suffix check.
        size: Declared byte size; defaults to ``len(data)``.

    Raises:
        InvalidDocument, DocumentTooLarge: before any decoding.
        ExtractionFailed: on any decode or per-page error.
    """
    validate_document(content_type, filename, len(data) if size is None else size)

    try:
        document = await asyncio.to_thread(_decode, data)
    except ExtractionFailed:
        raise
    except (PyPdfError, ValueError, KeyError, IndexError, TypeError, AttributeError, OSError) as e:
        logger.warning(f"PDF extraction failed for {filename or 'upload'}: {e}")
        raise ExtractionFailed(e) from e

    logger.info(
        f"PDF extracted: {filename or 'upload'} "
        f"({document.page_count} pages, {len(document.text)} chars)"
    )
    return document
