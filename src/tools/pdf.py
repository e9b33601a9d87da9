"""PDF page counting and splitting with pypdf."""

import io
import logging
import math
from dataclasses import dataclass

from pypdf import PdfReader, PdfWriter

logger = logging.getLogger(__name__)


class PdfError(Exception):
    """The PDF could not be read or split."""


@dataclass
class SplitPart:
    """One range of pages written out as its own PDF."""

    page_range: tuple[int, int]
    data: bytes

    @property
    def file_size(self) -> int:
        return len(self.data)

    @property
    def page_count(self) -> int:
        return self.page_range[1] - self.page_range[0] + 1


def _reader(pdf_bytes: bytes) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(pdf_bytes))
    except Exception as e:
        raise PdfError(f"Unreadable PDF: {e}") from e


def count_pages(pdf_bytes: bytes) -> int:
    return len(_reader(pdf_bytes).pages)


def extract_text(pdf_bytes: bytes, max_pages: int = 3, max_chars: int = 4000) -> str:
    """Text layer of the first few pages, empty for scanned scores."""
    reader = _reader(pdf_bytes)
    chunks = []
    for page in reader.pages[:max_pages]:
        try:
            chunks.append(page.extract_text() or "")
        except Exception as e:
            logger.warning(f"Text extraction failed on a page: {e}")
    return "\n".join(chunks)[:max_chars]


def split_by_page_ranges(pdf_bytes: bytes, ranges: list[tuple[int, int]]) -> list[SplitPart]:
    """
    Write one PDF per page range.

    Args:
        pdf_bytes: Source PDF
        ranges: 1-indexed inclusive (start, end) pairs, already clamped

    Returns:
        SplitPart per range, in the same order
    """
    reader = _reader(pdf_bytes)
    total_pages = len(reader.pages)
    parts = []

    for start, end in ranges:
        if start < 1 or end > total_pages or end < start:
            raise PdfError(f"Page range {start}-{end} outside 1-{total_pages}")

        writer = PdfWriter()
        for index in range(start - 1, end):
            writer.add_page(reader.pages[index])

        buf = io.BytesIO()
        writer.write(buf)
        parts.append(SplitPart(page_range=(start, end), data=buf.getvalue()))

    logger.info(f"Split {total_pages}-page PDF into {len(parts)} parts")
    return parts


def estimate_page_ranges(total_pages: int, part_count: int) -> list[tuple[int, int]]:
    """
    Spread pages evenly across part_count parts.

    The last part runs to the end of the document. Parts that would start
    past the last page are dropped.
    """
    if total_pages < 1 or part_count < 1:
        return []

    pages_per_part = math.ceil(total_pages / part_count)
    ranges = []
    for i in range(part_count):
        start = i * pages_per_part + 1
        if start > total_pages:
            break
        end = total_pages if i == part_count - 1 else min(start + pages_per_part - 1, total_pages)
        ranges.append((start, end))
    return ranges
