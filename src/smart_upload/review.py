"""
Reviewer-facing Smart Upload operations.

Views and tasks call these; each one validates state, does its work, then
emits an audit event and a status notification. Audit and notification
failures never affect the result.
"""

import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.db.models import Count, Q
from django.utils import timezone
from pydantic import ValidationError

from src.api.audit import record_audit_event
from src.extraction import MetadataExtractor
from src.tasks.notifications import notify_session_status
from src.tools.render import RenderError, render_page
from src.tools.storage import StorageError, download_file
from . import state
from .analysis import analyse_upload, apply_outcome, discard_keys, new_run_id
from .commit import commit_session
from .exceptions import (
    DependencyError,
    PartNotFound,
    PreviewError,
    SessionNotFound,
    SessionStateError,
    SmartUploadError,
)
from .models import UploadSession
from .schemas import CommitOverrides, CommitResult

logger = logging.getLogger(__name__)

ENTITY = "UploadSession"


def get_session(session_id) -> UploadSession:
    session = UploadSession.get_or_none(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


# ----- Listing -----


def list_sessions(status: str = UploadSession.Status.PENDING_REVIEW):
    """Sessions with the given review status, newest first."""
    if status not in UploadSession.Status.values:
        raise ValueError(f"Unknown status {status}")
    return UploadSession.objects.filter(status=status).select_related("uploaded_by").order_by("-created_at")


def session_stats() -> dict[str, int]:
    counts = UploadSession.objects.aggregate(
        pending=Count("id", filter=Q(status=UploadSession.Status.PENDING_REVIEW)),
        approved=Count("id", filter=Q(status=UploadSession.Status.APPROVED)),
        rejected=Count("id", filter=Q(status=UploadSession.Status.REJECTED)),
    )
    return {key: value or 0 for key, value in counts.items()}


# ----- Decisions -----


def approve_session(session_id, overrides: CommitOverrides | dict, actor: User | None) -> CommitResult:
    """Commit the session; on any failure it stays pending and the error propagates."""
    result = commit_session(session_id, overrides, actor)

    record_audit_event(
        "smart_upload.approve",
        ENTITY,
        session_id,
        actor=actor,
        payload={
            "status": {"from": UploadSession.Status.PENDING_REVIEW, "to": UploadSession.Status.APPROVED},
            "piece_id": result.piece_id,
            "title": result.piece_title,
            "parts_committed": result.parts_committed,
            "cleanup": result.cleanup.model_dump(),
            "duplicate": result.duplicate.model_dump() if result.duplicate else None,
        },
    )
    notify_session_status(session_id, UploadSession.Status.APPROVED, f"Approved as '{result.piece_title}'")
    return result


def reject_session(session_id, reason: str | None, actor: User | None) -> UploadSession:
    """Close a pending session without touching the catalog."""
    session = get_session(session_id)
    state.assert_review_transition(session, UploadSession.Status.REJECTED)

    now = timezone.now()
    updated = UploadSession.objects.filter(
        id=session.id, status=UploadSession.Status.PENDING_REVIEW
    ).update(
        status=UploadSession.Status.REJECTED,
        reviewed_by=actor,
        reviewed_at=now,
        rejection_reason=reason or "",
        updated_at=now,
    )
    if updated != 1:
        # Lost a race with another decision
        session.refresh_from_db()
        state.assert_pending(session)
        raise SessionStateError(current_status=session.status)

    session.refresh_from_db()
    logger.info(f"Session {session.id} rejected by {actor}")

    record_audit_event(
        "smart_upload.reject",
        ENTITY,
        session.id,
        actor=actor,
        payload={
            "status": {"from": UploadSession.Status.PENDING_REVIEW, "to": UploadSession.Status.REJECTED},
            "reason": session.rejection_reason,
        },
    )
    notify_session_status(session.id, UploadSession.Status.REJECTED, session.rejection_reason)
    return session


def bulk_approve(session_ids, actor: User | None) -> dict:
    """
    Approve each session using its extracted title.

    Every id is handled on its own; one failure never affects the others.

    Returns:
        {"approved": n, "failed": n, "results": [{"session_id", "status", ...}]}
    """
    results = []
    for session_id in dict.fromkeys(str(s) for s in session_ids):
        results.append(_bulk_approve_one(session_id, actor))

    approved = [r for r in results if r["status"] == "approved"]
    summary = {
        "approved": len(approved),
        "failed": len(results) - len(approved),
        "results": results,
    }

    record_audit_event(
        "smart_upload.bulk_approve",
        ENTITY,
        "bulk",
        actor=actor,
        payload={
            "requested": len(results),
            "approved_ids": [r["session_id"] for r in approved],
            "failed": [
                {"session_id": r["session_id"], "code": r["code"]} for r in results if r["status"] != "approved"
            ],
        },
    )
    return summary


def _bulk_approve_one(session_id: str, actor: User | None) -> dict:
    session = UploadSession.get_or_none(session_id)
    if session is None:
        return _bulk_failure(session_id, SessionNotFound(session_id))

    try:
        metadata = session.metadata
    except ValidationError:
        logger.warning(f"Session {session_id} has unreadable extracted metadata")
        metadata = None
    title = metadata.title if metadata else None
    if not title:
        return {
            "session_id": session_id,
            "status": "skipped",
            "code": "validation_error",
            "error": "No extracted title",
        }

    try:
        result = approve_session(session_id, CommitOverrides(title=title), actor)
    except SmartUploadError as e:
        return _bulk_failure(session_id, e)
    except ValidationError as e:
        return {"session_id": session_id, "status": "skipped", "code": "validation_error", "error": str(e)}
    except Exception as e:
        logger.exception(f"Bulk approve failed for session {session_id}: {e}")
        return {"session_id": session_id, "status": "failed", "code": "commit_failed", "error": str(e)}

    return {
        "session_id": session_id,
        "status": "approved",
        "code": None,
        "error": None,
        "piece_id": result.piece_id,
    }


def _bulk_failure(session_id: str, error: SmartUploadError) -> dict:
    status = "skipped" if isinstance(error, SessionStateError) else "failed"
    return {"session_id": session_id, "status": status, "code": error.code, "error": str(error)}


# ----- Second pass -----


def trigger_second_pass(session_id, actor: User | None, extractor: MetadataExtractor | None = None) -> UploadSession:
    """
    Re-run extraction and splitting for a pending session, synchronously.

    Review status is never changed. On failure the previous metadata and
    parts are left as they were and the error propagates.

    Raises:
        SessionNotFound, SessionStateError, DependencyError
    """
    session = get_session(session_id)
    state.assert_second_pass_allowed(session)
    previous = session.second_pass_status

    now = timezone.now()
    claimed = UploadSession.objects.filter(
        id=session.id,
        status=UploadSession.Status.PENDING_REVIEW,
        second_pass_status__in=state.SECOND_PASS_TRIGGERABLE,
    ).update(
        second_pass_status=UploadSession.SecondPassStatus.IN_PROGRESS,
        parse_status=UploadSession.ParseStatus.PARSING,
        updated_at=now,
    )
    if claimed != 1:
        raise SessionStateError("Second pass already running or session decided")

    session.refresh_from_db()
    record_audit_event(
        "smart_upload.second_pass",
        ENTITY,
        session.id,
        actor=actor,
        payload={"second_pass_status": {"from": previous, "to": session.second_pass_status}},
    )
    notify_session_status(session.id, session.second_pass_status, "Second pass started")

    run = new_run_id()
    try:
        outcome = analyse_upload(session, extractor=extractor, run=run)
    except Exception as e:
        logger.exception(f"Second pass failed for session {session.id}: {e}")
        session.second_pass_status = UploadSession.SecondPassStatus.FAILED
        session.parse_status = UploadSession.ParseStatus.PARSE_FAILED
        session.parse_error = str(e)
        session.save(update_fields=["second_pass_status", "parse_status", "parse_error", "updated_at"])
        notify_session_status(session.id, session.second_pass_status, str(e))
        if isinstance(e, SmartUploadError):
            raise
        raise DependencyError(f"Second pass failed: {e}") from e

    fields = apply_outcome(session, outcome)
    session.second_pass_status = UploadSession.SecondPassStatus.COMPLETE
    values = {name: getattr(session, name) for name in fields if name != "updated_at"}
    values["second_pass_status"] = session.second_pass_status
    values["updated_at"] = timezone.now()

    written = UploadSession.objects.filter(
        id=session.id, status=UploadSession.Status.PENDING_REVIEW
    ).update(**values)
    if written != 1:
        # Approved or rejected while the pass was running; leave it untouched
        discard_keys(outcome.uploaded_keys)
        session.refresh_from_db()
        raise SessionStateError(current_status=session.status)

    session.refresh_from_db()
    logger.info(f"Second pass complete for session {session.id}: confidence {session.confidence_score}")
    notify_session_status(
        session.id,
        session.second_pass_status,
        "Second pass complete",
        confidence_score=session.confidence_score,
    )
    return session


# ----- Previews -----


def preview_max_width() -> int:
    return getattr(settings, "SMART_UPLOAD_PREVIEW_MAX_WIDTH", 1200)


def render_session_page(session_id, page: int) -> dict:
    """Zero-based page preview of the original upload."""
    session = get_session(session_id)
    return _render(session.storage_key, page)


def render_part_page(session_id, part_storage_key: str, page: int) -> dict:
    """Zero-based page preview of one pre-split part of the session."""
    session = get_session(session_id)
    if part_storage_key not in {p.storage_key for p in session.parts}:
        raise PartNotFound(part_storage_key)
    return _render(part_storage_key, page)


def _render(storage_key: str, page: int) -> dict:
    if page < 0:
        raise PreviewError("Page must be a non-negative integer")

    try:
        pdf_bytes = download_file(storage_key)
    except StorageError as e:
        raise DependencyError(f"Could not load PDF for preview: {e}") from e

    try:
        image_base64, total_pages = render_page(pdf_bytes, page, max_width=preview_max_width())
    except IndexError as e:
        raise PreviewError(str(e)) from e
    except RenderError as e:
        raise DependencyError(str(e)) from e

    return {"image_base64": image_base64, "total_pages": total_pages, "page": page}

