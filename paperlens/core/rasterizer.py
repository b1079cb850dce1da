"""PDF rasterization into page images for multimodal analysis.

Pages are rendered one at a time with poppler (through ``pdf2image``) and
encoded as base64 JPEG text with Pillow. A page that fails to render is
skipped; a file that cannot be opened at all raises :class:`DecodeError`.
Several files are rasterized concurrently and joined in selection order.
"""

from __future__ import annotations

import asyncio
import base64
import io
import mimetypes
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Sequence

from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image

from paperlens.core.config import DEFAULT_JPEG_QUALITY, DEFAULT_MAX_PAGES, DEFAULT_RENDER_DPI
from paperlens.core.errors import DecodeError, RenderError
from paperlens.core.logging_utils import log_event

PDF_MEDIA_TYPE = "application/pdf"
POPPLER_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class SourceDocument:
    """One uploaded document.

    Attributes:
        name: Display name (usually the file name).
        data: Raw file bytes.
        media_type: MIME type reported for the upload.
    """

    name: str
    data: bytes
    media_type: str = PDF_MEDIA_TYPE

    @property
    def is_pdf(self) -> bool:
        return self.media_type == PDF_MEDIA_TYPE


@dataclass(frozen=True)
class RasterizationResult:
    """Page images produced from one document.

    Attributes:
        page_images: Base64 JPEG payloads in ascending page order.
        total_pages: Page count reported by the document.
        processed_pages: Pages attempted, ``min(total_pages, max_pages)``.
        truncated: Whether pages past ``max_pages`` were left out.
        skipped_pages: 1-based numbers of pages that failed to render.
    """

    page_images: List[str]
    total_pages: int
    processed_pages: int
    truncated: bool
    skipped_pages: List[int] = field(default_factory=list)


def load_document(path: Path) -> SourceDocument:
    """Read a file from disk and label it with its guessed MIME type.

    Args:
        path (Path): Filesystem path value.

    Returns:
        SourceDocument: Document bytes with name and media type.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(path)
    media_type, _ = mimetypes.guess_type(path.name)
    return SourceDocument(
        name=path.name,
        data=path.read_bytes(),
        media_type=media_type or "application/octet-stream",
    )


def count_pages(path: Path) -> int:
    """Return the page count of a PDF file.

    Raises:
        DecodeError: If the file cannot be read as a PDF.
    """
    try:
        info = pdfinfo_from_path(str(path), timeout=POPPLER_TIMEOUT_SECONDS)
    except PDFInfoNotInstalledError as exc:
        raise DecodeError("pdfinfo is not available. Install Poppler to read PDF files.") from exc
    except (PDFPageCountError, PDFSyntaxError, PDFPopplerTimeoutError) as exc:
        raise DecodeError(f"Unable to read PDF: {str(exc).strip() or exc.__class__.__name__}") from exc
    try:
        pages = int(info.get("Pages") or 0)
    except (TypeError, ValueError):
        pages = 0
    if pages <= 0:
        raise DecodeError("PDF reports no pages.")
    return pages


def render_page(path: Path, page_number: int, *, dpi: int = DEFAULT_RENDER_DPI) -> Any:
    """Render one 1-based page of a PDF into a Pillow image.

    Raises:
        RenderError: If poppler fails or produces no image for the page.
    """
    try:
        images = convert_from_path(
            str(path),
            dpi=dpi,
            first_page=page_number,
            last_page=page_number,
            timeout=POPPLER_TIMEOUT_SECONDS,
        )
    except (PDFSyntaxError, PDFPopplerTimeoutError, OSError, ValueError) as exc:
        raise RenderError(f"Page {page_number} failed to render: {exc}", page_number=page_number) from exc
    if not images:
        raise RenderError(f"Page {page_number} produced no image", page_number=page_number)
    return images[0]


def encode_jpeg(image: Any, *, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """Encode a Pillow image as base64 JPEG text (no data-URL prefix)."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="JPEG", quality=quality)
    except OSError as exc:
        raise RenderError(f"JPEG encoding failed: {exc}") from exc
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _release(image: Any) -> None:
    if isinstance(image, Image.Image):
        image.close()


def rasterize_pdf(
    document: SourceDocument,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    dpi: int = DEFAULT_RENDER_DPI,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> RasterizationResult:
    """Convert one PDF into ordered page images, capped at ``max_pages``.

    Pages are rendered strictly in ascending order and each page image is
    released before the next one is rendered. A page that fails to render is
    skipped and recorded in ``skipped_pages``.

    Args:
        document (SourceDocument): PDF document to rasterize.
        max_pages (int): Maximum number of pages to render.
        dpi (int): Render resolution.
        quality (int): JPEG quality.

    Returns:
        RasterizationResult: Images plus page accounting.

    Raises:
        DecodeError: If the document cannot be parsed.
        RenderError: If no page of a non-empty document could be rendered.
    """
    with tempfile.TemporaryDirectory(prefix="paperlens-") as tmp:
        path = Path(tmp) / "document.pdf"
        path.write_bytes(document.data)
        total_pages = count_pages(path)
        pages_to_process = min(total_pages, max(0, int(max_pages)))
        page_images: List[str] = []
        skipped: List[int] = []
        for page_number in range(1, pages_to_process + 1):
            try:
                image = render_page(path, page_number, dpi=dpi)
                try:
                    page_images.append(encode_jpeg(image, quality=quality))
                finally:
                    _release(image)
            except RenderError as exc:
                skipped.append(page_number)
                log_event(
                    "page_render_failed",
                    {"document": document.name, "page": page_number, "error": str(exc)},
                )
    if pages_to_process and not page_images:
        raise RenderError(f"No page of {document.name} could be rendered.")
    result = RasterizationResult(
        page_images=page_images,
        total_pages=total_pages,
        processed_pages=pages_to_process,
        truncated=total_pages > max_pages,
        skipped_pages=skipped,
    )
    log_event(
        "document_rasterized",
        {
            "document": document.name,
            "total_pages": result.total_pages,
            "processed_pages": result.processed_pages,
            "truncated": result.truncated,
            "skipped_pages": result.skipped_pages,
        },
    )
    return result


async def rasterize_documents(
    documents: Sequence[SourceDocument],
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    dpi: int = DEFAULT_RENDER_DPI,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> List[RasterizationResult]:
    """Rasterize several PDFs concurrently, returning results in input order.

    Each file renders in its own worker thread. The first failing file fails
    the whole batch.
    """
    results = await asyncio.gather(
        *(
            asyncio.to_thread(rasterize_pdf, document, max_pages=max_pages, dpi=dpi, quality=quality)
            for document in documents
        )
    )
    return list(results)


def merge_results(results: Sequence[RasterizationResult]) -> List[str]:
    """Flatten per-file page images, file after file, pages in order."""
    merged: List[str] = []
    for result in results:
        merged.extend(result.page_images)
    return merged
