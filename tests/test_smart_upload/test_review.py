"""Tests for reviewer operations: listing, decisions, second pass and previews."""

import base64
import uuid
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.test import TestCase

from conftest import analyse, make_session
from src.api.models import AuditLog
from src.extraction import ExtractionError
from src.library.models import CatalogPiece
from src.smart_upload import review
from src.smart_upload.exceptions import (
    DependencyError,
    PartNotFound,
    PreviewError,
    SessionNotFound,
    SessionStateError,
)
from src.smart_upload.models import UploadSession
from src.smart_upload.schemas import ExtractedMetadata

Status = UploadSession.Status
SecondPassStatus = UploadSession.SecondPassStatus

TWO_PARTS = {
    "title": "Second Look",
    "confidence_score": 85,
    "is_multi_part": True,
    "cutting_instructions": [
        {"part_name": "Flute", "instrument": "Flute", "page_range": [1, 2]},
        {"part_name": "Tuba", "instrument": "Tuba", "page_range": [3, 4]},
    ],
}


def extractor_returning(metadata: dict):
    extractor = MagicMock()
    extractor.extract.return_value = ExtractedMetadata.model_validate(metadata)
    return extractor


class TestListing(TestCase):

    def setUp(self):
        self.pending = make_session(metadata={"title": "A"})
        self.approved = make_session(metadata={"title": "B"}, status=Status.APPROVED)
        self.rejected = make_session(metadata={"title": "C"}, status=Status.REJECTED)

    def test_list_pending_by_default(self):
        assert list(review.list_sessions()) == [self.pending]

    def test_list_by_status(self):
        assert list(review.list_sessions(Status.REJECTED)) == [self.rejected]

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            review.list_sessions("archived")

    def test_stats(self):
        assert review.session_stats() == {"pending": 1, "approved": 1, "rejected": 1}


class TestReject(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="reviewer", password="test")
        self.session = make_session(metadata={"title": "Wrong Upload"})

    @patch("src.smart_upload.review.notify_session_status")
    def test_reject_records_reason_and_audit(self, mock_notify):
        session = review.reject_session(self.session.id, "Duplicate of existing piece", self.user)

        assert session.status == Status.REJECTED
        assert session.rejection_reason == "Duplicate of existing piece"
        assert session.reviewed_by == self.user
        assert CatalogPiece.objects.count() == 0

        event = AuditLog.objects.get(action="smart_upload.reject")
        assert event.entity_id == str(self.session.id)
        assert event.actor == self.user
        assert event.payload["status"] == {"from": "pending_review", "to": "rejected"}
        mock_notify.assert_called_once()

    def test_reject_twice(self):
        review.reject_session(self.session.id, "", self.user)

        with pytest.raises(SessionStateError) as exc_info:
            review.reject_session(self.session.id, "", self.user)
        assert exc_info.value.current_status == Status.REJECTED

    def test_reject_missing(self):
        with pytest.raises(SessionNotFound):
            review.reject_session(uuid.uuid4(), "", self.user)

    def test_reject_leaves_storage_for_reconciliation(self):
        review.reject_session(self.session.id, "", self.user)

        assert default_storage.exists(self.session.storage_key)


class TestApprove(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="reviewer", password="test")

    def test_approve_records_audit(self):
        session = make_session(metadata={"title": "Fairest of the Fair"})

        result = review.approve_session(session.id, {"title": "Fairest of the Fair"}, self.user)

        event = AuditLog.objects.get(action="smart_upload.approve")
        assert event.payload["piece_id"] == result.piece_id
        assert event.payload["status"]["to"] == "approved"

    @patch("src.api.audit.AuditLog.objects.create")
    def test_audit_failure_does_not_undo_commit(self, mock_create):
        mock_create.side_effect = RuntimeError("audit table locked")
        session = make_session(metadata={"title": "Fairest of the Fair"})

        review.approve_session(session.id, {"title": "Fairest of the Fair"}, self.user)

        session.refresh_from_db()
        assert session.status == Status.APPROVED


class TestBulkApprove(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="reviewer", password="test")

    def test_each_session_handled_independently(self):
        ready = make_session(metadata={"title": "Ready"})
        done = make_session(metadata={"title": "Done"})
        untitled = make_session(metadata={"composer": "Someone"})
        review.approve_session(done.id, {"title": "Done"}, self.user)
        missing = uuid.uuid4()

        summary = review.bulk_approve([ready.id, done.id, untitled.id, missing], self.user)

        assert summary["approved"] == 1
        assert summary["failed"] == 3
        by_id = {r["session_id"]: r for r in summary["results"]}
        assert by_id[str(ready.id)]["status"] == "approved"
        assert by_id[str(ready.id)]["piece_id"] == CatalogPiece.objects.get(title="Ready").id
        assert by_id[str(done.id)]["status"] == "skipped"
        assert by_id[str(done.id)]["code"] == "already_committed"
        assert by_id[str(untitled.id)]["code"] == "validation_error"
        assert by_id[str(missing)]["status"] == "failed"
        assert by_id[str(missing)]["code"] == "not_found"

        untitled.refresh_from_db()
        assert untitled.is_pending
        assert CatalogPiece.objects.filter(title="Done").count() == 1

    def test_duplicate_ids_are_processed_once(self):
        ready = make_session(metadata={"title": "Ready"})

        summary = review.bulk_approve([ready.id, ready.id], self.user)

        assert len(summary["results"]) == 1
        assert CatalogPiece.objects.count() == 1

    @patch("src.smart_upload.commit._create_parts")
    def test_unexpected_error_is_reported_and_rolled_back(self, mock_parts):
        mock_parts.side_effect = RuntimeError("boom")
        broken = make_session(metadata={"title": "Broken"})

        summary = review.bulk_approve([broken.id], self.user)

        assert summary["results"][0]["status"] == "failed"
        assert summary["results"][0]["code"] == "commit_failed"
        broken.refresh_from_db()
        assert broken.is_pending
        assert CatalogPiece.objects.count() == 0

    def test_bulk_audit_event(self):
        ready = make_session(metadata={"title": "Ready"})

        review.bulk_approve([ready.id], self.user)

        event = AuditLog.objects.get(action="smart_upload.bulk_approve")
        assert event.entity_id == "bulk"
        assert event.payload["approved_ids"] == [str(ready.id)]


class TestSecondPass(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="reviewer", password="test")
        self.session = make_session(pages=4, second_pass_status=SecondPassStatus.QUEUED)
        analyse(self.session, {"title": "First Look", "confidence_score": 30})
        self.session.refresh_from_db()

    def test_second_pass_replaces_analysis(self):
        session = review.trigger_second_pass(self.session.id, self.user, extractor=extractor_returning(TWO_PARTS))

        assert session.status == Status.PENDING_REVIEW
        assert session.second_pass_status == SecondPassStatus.COMPLETE
        assert session.parse_status == UploadSession.ParseStatus.PARSED
        assert session.metadata.title == "Second Look"
        assert session.confidence_score == 85
        assert len(session.parts) == 2
        for part in session.parts:
            assert f"smart-upload/{session.id}/parts/pass-" in part.storage_key
            assert part.storage_key in session.temp_files
            assert default_storage.exists(part.storage_key)
        assert AuditLog.objects.filter(action="smart_upload.second_pass").count() == 1

    def test_second_pass_failure_keeps_previous_analysis(self):
        extractor = MagicMock()
        extractor.extract.side_effect = ExtractionError("model unavailable")

        with pytest.raises(DependencyError):
            review.trigger_second_pass(self.session.id, self.user, extractor=extractor)

        self.session.refresh_from_db()
        assert self.session.second_pass_status == SecondPassStatus.FAILED
        assert self.session.parse_status == UploadSession.ParseStatus.PARSE_FAILED
        assert "model unavailable" in self.session.parse_error
        assert self.session.metadata.title == "First Look"
        assert self.session.status == Status.PENDING_REVIEW

    def test_failed_second_pass_can_be_retried(self):
        extractor = MagicMock()
        extractor.extract.side_effect = ExtractionError("model unavailable")
        with pytest.raises(DependencyError):
            review.trigger_second_pass(self.session.id, self.user, extractor=extractor)

        session = review.trigger_second_pass(self.session.id, self.user, extractor=extractor_returning(TWO_PARTS))

        assert session.second_pass_status == SecondPassStatus.COMPLETE

    def test_second_pass_refused_once_complete(self):
        review.trigger_second_pass(self.session.id, self.user, extractor=extractor_returning(TWO_PARTS))

        with pytest.raises(SessionStateError):
            review.trigger_second_pass(self.session.id, self.user, extractor=extractor_returning(TWO_PARTS))

    def test_second_pass_refused_on_approved_session(self):
        review.approve_session(self.session.id, {"title": "First Look"}, self.user)

        with pytest.raises(SessionStateError):
            review.trigger_second_pass(self.session.id, self.user, extractor=extractor_returning(TWO_PARTS))

    def test_decision_during_second_pass_wins(self):
        session_id = self.session.id
        extractor = MagicMock()

        def approve_meanwhile(pdf_bytes, file_name):
            UploadSession.objects.filter(id=session_id).update(status=Status.APPROVED)
            return ExtractedMetadata.model_validate(TWO_PARTS)

        extractor.extract.side_effect = approve_meanwhile

        with pytest.raises(SessionStateError):
            review.trigger_second_pass(session_id, self.user, extractor=extractor)

        self.session.refresh_from_db()
        assert self.session.metadata.title == "First Look"
        parts_dir = f"smart-upload/{session_id}/parts"
        run_dirs, _ = default_storage.listdir(parts_dir)
        assert len(run_dirs) == 1
        assert default_storage.listdir(f"{parts_dir}/{run_dirs[0]}")[1] == []
        assert all("/parts/" not in key for key in self.session.temp_files)


class TestPreviews(TestCase):

    def setUp(self):
        self.session = make_session(pages=4)
        analyse(self.session, TWO_PARTS)
        self.session.refresh_from_db()

    def test_render_session_page(self):
        preview = review.render_session_page(self.session.id, 1)

        assert preview["total_pages"] == 4
        assert preview["page"] == 1
        assert base64.b64decode(preview["image_base64"]).startswith(b"\x89PNG")

    def test_page_out_of_range(self):
        with pytest.raises(PreviewError):
            review.render_session_page(self.session.id, 4)

    def test_negative_page(self):
        with pytest.raises(PreviewError):
            review.render_session_page(self.session.id, -1)

    def test_render_part_page(self):
        part = self.session.parts[1]

        preview = review.render_part_page(self.session.id, part.storage_key, 0)

        assert preview["total_pages"] == 2

    def test_part_must_belong_to_session(self):
        other = make_session(pages=4)
        analyse(other, TWO_PARTS)
        other.refresh_from_db()

        with pytest.raises(PartNotFound):
            review.render_part_page(self.session.id, other.parts[0].storage_key, 0)

    @patch("src.smart_upload.review.download_file")
    def test_storage_failure(self, mock_download):
        from src.tools.storage import StorageError

        mock_download.side_effect = StorageError("unreachable")

        with pytest.raises(DependencyError):
            review.render_session_page(self.session.id, 0)

    def test_missing_session(self):
        with pytest.raises(SessionNotFound):
            review.render_session_page(uuid.uuid4(), 0)
