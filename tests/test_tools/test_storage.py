"""Tests for storage helpers over default_storage."""

import uuid
from unittest.mock import patch

import pytest
from django.test import TestCase

from src.tools.storage import StorageError, delete_file, download_file, upload_file


class TestStorage(TestCase):

    def setUp(self):
        self.key = f"smart-upload/{uuid.uuid4()}/original.pdf"

    def test_upload_then_download(self):
        saved = upload_file(self.key, b"%PDF-1.7 test")

        assert saved == self.key
        assert download_file(saved) == b"%PDF-1.7 test"

    def test_upload_to_taken_key_returns_new_key(self):
        upload_file(self.key, b"first")

        saved = upload_file(self.key, b"second")

        assert saved != self.key
        assert download_file(self.key) == b"first"

    def test_download_missing(self):
        with pytest.raises(StorageError):
            download_file(self.key)

    def test_delete(self):
        upload_file(self.key, b"data")

        assert delete_file(self.key) is True
        with pytest.raises(StorageError):
            download_file(self.key)

    def test_delete_missing_is_not_an_error(self):
        assert delete_file(self.key) is False

    @patch("src.tools.storage.default_storage")
    def test_delete_failure(self, mock_storage):
        mock_storage.exists.return_value = True
        mock_storage.delete.side_effect = PermissionError("read-only bucket")

        with pytest.raises(StorageError):
            delete_file(self.key)

    @patch("src.tools.storage.default_storage")
    def test_upload_failure(self, mock_storage):
        mock_storage.save.side_effect = OSError("disk full")

        with pytest.raises(StorageError):
            upload_file(self.key, b"data")
