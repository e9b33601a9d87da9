"""Celery tasks for Smart Upload intake."""

import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from src.api.audit import record_audit_event
from src.tasks.notifications import notify_session_status
from .analysis import analyse_upload, apply_outcome, discard_keys
from .commit import commit_session
from .exceptions import SmartUploadError
from .models import UploadSession
from .schemas import CommitOverrides

logger = logging.getLogger(__name__)


def second_pass_threshold() -> int:
    return getattr(settings, "SMART_UPLOAD_SECOND_PASS_THRESHOLD", 60)


def auto_approve_threshold() -> int:
    return getattr(settings, "SMART_UPLOAD_AUTO_APPROVE_THRESHOLD", 90)


def autonomous_mode() -> bool:
    return getattr(settings, "SMART_UPLOAD_AUTONOMOUS_MODE", False)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def process_upload(self, session_id: str):
    """
    Analyse a freshly uploaded session and route it.

    Low confidence (or failed analysis) queues a second pass for a reviewer
    to trigger. High confidence with no unlabelled pages goes to auto-commit
    when autonomous mode is on. Everything else waits for review.

    Args:
        session_id: UploadSession id as a string
    """
    try:
        session = UploadSession.objects.get(id=session_id)
    except UploadSession.DoesNotExist:
        logger.error(f"Upload session {session_id} not found")
        return

    if not session.is_pending:
        logger.info(f"Session {session_id} already {session.status}, skipping analysis")
        return

    if not _save_if_pending(session, parse_status=UploadSession.ParseStatus.PARSING):
        logger.info(f"Session {session_id} decided before analysis started, skipping")
        return
    notify_session_status(session_id, UploadSession.ParseStatus.PARSING, "Analysing upload")

    try:
        outcome = analyse_upload(session)
    except Exception as e:
        logger.exception(f"Error analysing upload {session_id}: {e}")
        failed = _save_if_pending(
            session,
            parse_status=UploadSession.ParseStatus.PARSE_FAILED,
            second_pass_status=UploadSession.SecondPassStatus.QUEUED,
            parse_error=str(e),
        )
        if failed:
            notify_session_status(session_id, UploadSession.ParseStatus.PARSE_FAILED, str(e))
        return

    fields = apply_outcome(session, outcome)
    values = {name: getattr(session, name) for name in fields if name != "updated_at"}
    if outcome.confidence < second_pass_threshold():
        values["second_pass_status"] = UploadSession.SecondPassStatus.QUEUED

    if not _save_if_pending(session, **values):
        # Decided while analysis was running; leave it untouched
        discard_keys(outcome.uploaded_keys)
        logger.info(f"Session {session_id} decided during analysis, discarded {len(outcome.uploaded_keys)} part files")
        return

    session.refresh_from_db()
    logger.info(f"Upload {session_id} analysed with confidence {outcome.confidence}")
    notify_session_status(
        session_id,
        session.parse_status,
        "Analysis complete",
        confidence_score=session.confidence_score,
        second_pass_status=session.second_pass_status,
    )

    if should_auto_commit(session):
        auto_commit_session.delay(str(session.id))


def _save_if_pending(session: UploadSession, **values) -> bool:
    """Write values only while the session still awaits review."""
    written = UploadSession.objects.filter(
        id=session.id, status=UploadSession.Status.PENDING_REVIEW
    ).update(updated_at=timezone.now(), **values)
    return written == 1


def should_auto_commit(session: UploadSession) -> bool:
    """Autonomous mode, confidence over threshold, no gaps, no duplicate flag, no pending second pass."""
    if not autonomous_mode():
        return False
    if session.confidence_score is None or session.confidence_score < auto_approve_threshold():
        return False
    if session.has_gaps:
        return False
    if session.duplicate_check:
        return False
    if session.second_pass_status in (
        UploadSession.SecondPassStatus.QUEUED,
        UploadSession.SecondPassStatus.IN_PROGRESS,
    ):
        return False
    metadata = session.metadata
    return bool(metadata and metadata.title)


@shared_task
def auto_commit_session(session_id: str):
    """Commit a high-confidence session with its extracted metadata, no reviewer."""
    try:
        session = UploadSession.objects.get(id=session_id)
    except UploadSession.DoesNotExist:
        logger.error(f"Upload session {session_id} not found")
        return

    if not should_auto_commit(session):
        logger.info(f"Session {session_id} no longer eligible for auto-commit")
        return

    try:
        result = commit_session(
            session.id,
            CommitOverrides(title=session.metadata.title),
            actor=None,
            auto_approved=True,
        )
    except SmartUploadError as e:
        logger.warning(f"Auto-commit skipped for session {session_id}: {e}")
        return

    record_audit_event(
        "smart_upload.auto_commit",
        "UploadSession",
        session.id,
        payload={
            "piece_id": result.piece_id,
            "title": result.piece_title,
            "confidence_score": session.confidence_score,
            "parts_committed": result.parts_committed,
        },
    )
    notify_session_status(session.id, UploadSession.Status.APPROVED, f"Auto-approved as '{result.piece_title}'")
    logger.info(f"Session {session_id} auto-committed as piece {result.piece_id}")
