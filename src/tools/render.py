"""Render PDF pages to images for reviewer previews (PyMuPDF)."""

import base64
from contextlib import closing

import fitz


class RenderError(Exception):
    """The page could not be rendered."""


def render_page(pdf_bytes: bytes, page_index: int, max_width: int = 1200, image_format: str = "png") -> tuple[str, int]:
    """
    Rasterise one page.

    Args:
        pdf_bytes: Source PDF
        page_index: Zero-based page number
        max_width: Pages wider than this are scaled down to fit
        image_format: Pixmap output format

    Returns:
        (base64 image, total page count)

    Raises:
        IndexError: page_index is outside the document
        RenderError: the PDF could not be opened or drawn
    """
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise RenderError(f"Cannot open PDF: {e}") from e

    with closing(doc):
        total_pages = doc.page_count
        if page_index < 0 or page_index >= total_pages:
            raise IndexError(f"Page {page_index} out of range (0-{total_pages - 1})")

        try:
            page = doc.load_page(page_index)
            width = page.rect.width or 1
            scale = min(2.0, max_width / width)
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
            image_bytes = pixmap.tobytes(image_format)
        except Exception as e:
            raise RenderError(f"Cannot render page {page_index}: {e}") from e

    return base64.b64encode(image_bytes).decode("ascii"), total_pages
