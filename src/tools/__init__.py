"""Low-level storage and PDF utilities."""

from .pdf import count_pages, split_by_page_ranges
from .storage import delete_file, download_file, upload_file

__all__ = ["count_pages", "split_by_page_ranges", "delete_file", "download_file", "upload_file"]
