"""Tests for duplicate upload detection."""

from django.test import TestCase

from conftest import analyse, make_session
from src.library.fingerprints import content_hash
from src.library.models import CatalogFile, CatalogPiece, Person
from src.smart_upload.commit import commit_session
from src.smart_upload.duplicates import check_source_duplicate, check_work_duplicate, find_duplicate
from src.smart_upload.models import UploadSession

SHA = content_hash(b"liberty bell score")


class TestSourceDuplicate(TestCase):

    def test_unique_upload(self):
        session = make_session(source_sha256=SHA)

        assert check_source_duplicate(session) is None

    def test_earlier_pending_session_matches(self):
        earlier = make_session(source_sha256=SHA)
        later = make_session(source_sha256=SHA)

        duplicate = check_source_duplicate(later)

        assert duplicate.match == "source"
        assert duplicate.matching_session_id == str(earlier.id)
        assert duplicate.matching_piece_id is None

    def test_rejected_sessions_do_not_count(self):
        make_session(source_sha256=SHA, status=UploadSession.Status.REJECTED)
        later = make_session(source_sha256=SHA)

        assert check_source_duplicate(later) is None

    def test_catalogued_file_matches(self):
        piece = CatalogPiece.objects.create(title="The Liberty Bell")
        CatalogFile.objects.create(piece=piece, file_name="bell.pdf", storage_key="library/bell.pdf", content_hash=SHA)
        session = make_session(source_sha256=SHA)

        duplicate = check_source_duplicate(session)

        assert duplicate.matching_piece_id == piece.id
        assert "The Liberty Bell" in duplicate.reason

    def test_missing_hash_never_matches(self):
        make_session()
        session = make_session()

        assert check_source_duplicate(session) is None


class TestWorkDuplicate(TestCase):

    def setUp(self):
        sousa = Person.objects.create(first_name="John Philip", last_name="Sousa", full_name="John Philip Sousa")
        self.piece = CatalogPiece.objects.create(title="The Liberty Bell", composer=sousa)

    def test_same_title_and_composer(self):
        session = make_session(metadata={"title": "the liberty bell", "composer": "John Philip Sousa"})

        duplicate = check_work_duplicate(session)

        assert duplicate.match == "work"
        assert duplicate.matching_piece_id == self.piece.id

    def test_different_composer(self):
        session = make_session(metadata={"title": "The Liberty Bell", "composer": "Karl King"})

        assert check_work_duplicate(session) is None

    def test_no_metadata(self):
        assert check_work_duplicate(make_session()) is None

    def test_source_match_wins(self):
        make_session(source_sha256=SHA)
        session = make_session(
            source_sha256=SHA, metadata={"title": "The Liberty Bell", "composer": "John Philip Sousa"}
        )

        assert find_duplicate(session).match == "source"


class TestDuplicateLifecycle(TestCase):

    def test_analysis_flags_work_already_committed(self):
        first = make_session(metadata={"title": "Semper Fidelis", "composer": "John Philip Sousa"})
        commit_session(first.id, {"title": "Semper Fidelis"})
        second = make_session()

        analyse(second, {"title": "Semper Fidelis", "composer": "John Philip Sousa"})

        second.refresh_from_db()
        assert second.duplicate.match == "work"

    def test_commit_records_content_hash_and_reports_flag(self):
        earlier = make_session(source_sha256=SHA, metadata={"title": "March"})
        commit_session(earlier.id, {"title": "March"})
        session = make_session(source_sha256=SHA)
        session.duplicate_check = find_duplicate(session).model_dump(mode="json")
        session.save()

        result = commit_session(session.id, {"title": "March Again"})

        assert CatalogFile.objects.get(id=result.file_id).content_hash == SHA
        assert result.duplicate.match == "source"
        assert result.duplicate.matching_session_id == str(earlier.id)
