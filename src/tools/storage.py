"""
Object storage helpers over Django's default_storage.

Local filesystem in development, S3 (django-storages) when
AWS_STORAGE_BUCKET_NAME is configured. Keys are storage-relative paths such
as "smart-upload/<session-id>/original.pdf".
"""

import logging

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage read or write failed."""


def upload_file(key: str, data: bytes, content_type: str = "application/pdf", metadata: dict | None = None) -> str:
    """
    Write bytes under key.

    Args:
        key: Desired storage key
        data: File contents
        content_type: MIME type recorded by backends that support it (S3)
        metadata: Descriptive metadata, logged alongside the write

    Returns:
        The key actually written. Filesystem storage may suffix the name if
        the key is taken, so callers must keep the returned value.
    """
    content = ContentFile(data)
    content.content_type = content_type
    try:
        saved_key = default_storage.save(key, content)
    except Exception as e:
        raise StorageError(f"Failed to upload {key}: {e}") from e

    logger.info(f"Uploaded {saved_key} ({len(data)} bytes) {metadata or {}}")
    return saved_key


def download_file(key: str) -> bytes:
    """Read the full contents stored under key."""
    try:
        with default_storage.open(key, "rb") as fh:
            return fh.read()
    except Exception as e:
        raise StorageError(f"Failed to download {key}: {e}") from e


def file_url(key: str) -> str:
    """Public or signed URL for key, depending on the backend."""
    return default_storage.url(key)


def delete_file(key: str) -> bool:
    """
    Delete key from storage.

    A missing key is not an error: it is logged and reported as False.
    Other failures raise StorageError.
    """
    try:
        if not default_storage.exists(key):
            logger.warning(f"Storage key {key} already missing, nothing to delete")
            return False
        default_storage.delete(key)
    except Exception as e:
        raise StorageError(f"Failed to delete {key}: {e}") from e

    logger.info(f"Deleted {key}")
    return True
