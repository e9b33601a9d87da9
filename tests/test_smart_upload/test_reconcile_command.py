"""Tests for the reconcile_upload_storage management command."""

from io import StringIO

import pytest
from django.core.files.storage import default_storage
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from conftest import make_session
from src.smart_upload.models import UploadSession
from src.tools.storage import upload_file


class TestReconcileUploadStorageCommand(TestCase):

    def setUp(self):
        self.session = make_session()
        self.stray = upload_file(f"smart-upload/{self.session.id}/parts/01-flute.pdf", b"%PDF")
        self.session.add_temp_files([self.stray])
        self.session.status = UploadSession.Status.REJECTED
        self.session.save()

    def test_deletes_orphans(self):
        out = StringIO()
        call_command("reconcile_upload_storage", stdout=out)

        assert not default_storage.exists(self.stray)
        assert default_storage.exists(self.session.storage_key)
        assert "1 orphaned files deleted, 0 failed" in out.getvalue()

    def test_dry_run(self):
        out = StringIO()
        call_command("reconcile_upload_storage", "--dry-run", stdout=out)

        assert default_storage.exists(self.stray)
        assert f"Would delete {self.stray}" in out.getvalue()

    def test_single_session(self):
        other = make_session()
        other_stray = upload_file(f"smart-upload/{other.id}/parts/01-horn.pdf", b"%PDF")
        other.add_temp_files([other_stray])
        other.status = UploadSession.Status.REJECTED
        other.save()

        call_command("reconcile_upload_storage", "--session", str(self.session.id), stdout=StringIO())

        assert not default_storage.exists(self.stray)
        assert default_storage.exists(other_stray)

    def test_pending_sessions_are_skipped(self):
        pending = make_session()
        pending_stray = upload_file(f"smart-upload/{pending.id}/parts/01-horn.pdf", b"%PDF")
        pending.add_temp_files([pending_stray])
        pending.save()

        call_command("reconcile_upload_storage", stdout=StringIO())

        assert default_storage.exists(pending_stray)

    def test_invalid_session_id(self):
        with pytest.raises(CommandError, match="Invalid session id"):
            call_command("reconcile_upload_storage", "--session", "not-a-uuid", stdout=StringIO())

        assert default_storage.exists(self.stray)
