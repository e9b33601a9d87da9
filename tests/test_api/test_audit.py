"""Tests for audit event recording."""

import uuid
from datetime import datetime, timezone
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import TestCase

from src.api.audit import record_audit_event
from src.api.models import AuditLog


class TestRecordAuditEvent(TestCase):

    def test_records_event(self):
        user = User.objects.create_user(username="reviewer", password="test")
        session_id = uuid.uuid4()

        event = record_audit_event(
            "smart_upload.approve",
            "UploadSession",
            session_id,
            actor=user,
            payload={"piece_id": 7, "at": datetime(2026, 1, 2, tzinfo=timezone.utc), "session": session_id},
        )

        event.refresh_from_db()
        assert event.entity_id == str(session_id)
        assert event.actor == user
        assert event.payload["piece_id"] == 7
        assert event.payload["session"] == str(session_id)
        assert event.payload["at"].startswith("2026-01-02")

    def test_automatic_actions_have_no_actor(self):
        event = record_audit_event("smart_upload.auto_commit", "UploadSession", "abc")

        assert event.actor is None
        assert event.payload == {}

    @patch("src.api.audit.AuditLog.objects.create")
    def test_failures_are_swallowed(self, mock_create):
        mock_create.side_effect = RuntimeError("database locked")

        assert record_audit_event("smart_upload.reject", "UploadSession", "abc") is None
        assert AuditLog.objects.count() == 0
