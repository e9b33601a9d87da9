"""Tests for temp storage reconciliation."""

from unittest.mock import patch

from django.core.files.storage import default_storage
from django.test import TestCase

from conftest import analyse, make_session
from src.smart_upload.cleanup import delete_orphaned_files, reconcile_session_storage
from src.smart_upload.commit import commit_session
from src.smart_upload.models import UploadSession
from src.tools.storage import StorageError, upload_file


class TestDeleteOrphanedFiles(TestCase):

    @patch("src.smart_upload.cleanup.delete_file")
    def test_only_non_final_keys_are_deleted(self, mock_delete):
        report = delete_orphaned_files(
            "s1",
            ["orig.pdf", "parts/a.pdf", "parts/b.pdf", "old/a.pdf"],
            final_keys=["parts/a.pdf", "parts/b.pdf"],
            protected_keys=["orig.pdf"],
        )

        mock_delete.assert_called_once_with("old/a.pdf")
        assert report.deleted == ["old/a.pdf"]
        assert report.kept == ["orig.pdf", "parts/a.pdf", "parts/b.pdf"]
        assert report.failed == []

    @patch("src.smart_upload.cleanup.delete_file")
    def test_one_failure_does_not_stop_the_rest(self, mock_delete):
        mock_delete.side_effect = [StorageError("denied"), True, RuntimeError("boom")]

        report = delete_orphaned_files("s1", ["x.pdf", "y.pdf", "z.pdf"], final_keys=[])

        assert mock_delete.call_count == 3
        assert report.deleted == ["y.pdf"]
        assert report.failed == ["x.pdf", "z.pdf"]

    @patch("src.smart_upload.cleanup.delete_file")
    def test_duplicates_and_blanks_are_ignored(self, mock_delete):
        report = delete_orphaned_files("s1", ["x.pdf", "x.pdf", "", None], final_keys=[])

        mock_delete.assert_called_once_with("x.pdf")
        assert report.deleted == ["x.pdf"]

    def test_missing_key_counts_as_deleted(self):
        report = delete_orphaned_files("s1", ["smart-upload/never-written.pdf"], final_keys=[])

        assert report.deleted == ["smart-upload/never-written.pdf"]
        assert report.failed == []


class TestReconcileSessionStorage(TestCase):

    def test_pending_sessions_are_left_alone(self):
        session = make_session()
        stray = upload_file(f"smart-upload/{session.id}/stray.pdf", b"%PDF")
        session.add_temp_files([stray])
        session.save()

        report = reconcile_session_storage(session)

        assert report.deleted == []
        assert default_storage.exists(stray)

    def test_rejected_session_keeps_only_the_original(self):
        session = make_session(pages=4)
        outcome = analyse(session, {
            "title": "Sea Songs",
            "is_multi_part": True,
            "cutting_instructions": [
                {"part_name": "Flute", "instrument": "Flute", "page_range": [1, 2]},
                {"part_name": "Horn", "instrument": "Horn", "page_range": [3, 4]},
            ],
        })
        UploadSession.objects.filter(id=session.id).update(status=UploadSession.Status.REJECTED)
        session.refresh_from_db()

        report = reconcile_session_storage(session)

        assert sorted(report.deleted) == sorted(outcome.uploaded_keys)
        assert default_storage.exists(session.storage_key)
        session.refresh_from_db()
        assert session.temp_files == []

    def test_dry_run_deletes_nothing(self):
        session = make_session()
        stray = upload_file(f"smart-upload/{session.id}/stray.pdf", b"%PDF")
        session.add_temp_files([stray])
        session.status = UploadSession.Status.REJECTED
        session.save()

        report = reconcile_session_storage(session, dry_run=True)

        assert report.deleted == [stray]
        assert default_storage.exists(stray)

    def test_committed_keys_survive_a_rerun(self):
        session = make_session(pages=4)
        analyse(session, {
            "title": "Sea Songs",
            "is_multi_part": True,
            "cutting_instructions": [
                {"part_name": "Flute", "instrument": "Flute", "page_range": [1, 2]},
                {"part_name": "Horn", "instrument": "Horn", "page_range": [3, 4]},
            ],
        })
        result = commit_session(session.id, {"title": "Sea Songs"})
        session.refresh_from_db()

        report = reconcile_session_storage(session)

        assert report.deleted == []
        for key in result.final_keys:
            assert default_storage.exists(key)

    @patch("src.smart_upload.cleanup.delete_file")
    def test_failed_keys_stay_recorded(self, mock_delete):
        mock_delete.side_effect = StorageError("denied")
        session = make_session()
        session.add_temp_files(["smart-upload/left/behind.pdf"])
        session.status = UploadSession.Status.REJECTED
        session.save()

        report = reconcile_session_storage(session)

        assert report.failed == ["smart-upload/left/behind.pdf"]
        session.refresh_from_db()
        assert session.temp_files == ["smart-upload/left/behind.pdf"]
