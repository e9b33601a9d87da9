"""
Allowed transitions for an UploadSession's three status dimensions.

Review status is one-way: pending_review moves to approved or rejected once
and never again. Parse and second-pass status cycle independently of review.
"""

from .exceptions import AlreadyCommitted, SessionStateError
from .models import UploadSession

Status = UploadSession.Status
ParseStatus = UploadSession.ParseStatus
SecondPassStatus = UploadSession.SecondPassStatus

REVIEW_TRANSITIONS: dict[str, set[str]] = {
    Status.PENDING_REVIEW: {Status.APPROVED, Status.REJECTED},
    Status.APPROVED: set(),
    Status.REJECTED: set(),
}

PARSE_TRANSITIONS: dict[str, set[str]] = {
    ParseStatus.NONE: {ParseStatus.PARSING},
    ParseStatus.PARSING: {ParseStatus.PARSED, ParseStatus.PARSE_FAILED},
    ParseStatus.PARSED: {ParseStatus.PARSING},
    ParseStatus.PARSE_FAILED: {ParseStatus.PARSING},
}

SECOND_PASS_TRANSITIONS: dict[str, set[str]] = {
    SecondPassStatus.NONE: {SecondPassStatus.QUEUED},
    SecondPassStatus.QUEUED: {SecondPassStatus.IN_PROGRESS},
    SecondPassStatus.IN_PROGRESS: {SecondPassStatus.COMPLETE, SecondPassStatus.FAILED},
    SecondPassStatus.COMPLETE: set(),
    SecondPassStatus.FAILED: {SecondPassStatus.IN_PROGRESS},
}

SECOND_PASS_TRIGGERABLE = {SecondPassStatus.QUEUED, SecondPassStatus.FAILED}


def can_transition(table: dict[str, set[str]], current: str, target: str) -> bool:
    return target in table.get(current, set())


def assert_pending(session: UploadSession) -> None:
    """Raise unless the session can still be approved or rejected."""
    if session.status == Status.APPROVED:
        raise AlreadyCommitted(session.id)
    if session.status != Status.PENDING_REVIEW:
        raise SessionStateError(current_status=session.status)


def assert_transition(table: dict[str, set[str]], current: str, target: str) -> None:
    if not can_transition(table, current, target):
        raise SessionStateError(f"Cannot move session from {current} to {target}", current_status=current)


def assert_review_transition(session: UploadSession, target: str) -> None:
    assert_pending(session)
    assert_transition(REVIEW_TRANSITIONS, session.status, target)


def assert_second_pass_allowed(session: UploadSession) -> None:
    """
    A second pass needs a pending session whose second pass is queued or failed.

    Terminal sessions are immutable, so a queued second pass on an approved
    session is refused as well.
    """
    if not session.is_pending:
        raise SessionStateError(current_status=session.status)
    if session.second_pass_status not in SECOND_PASS_TRIGGERABLE:
        raise SessionStateError(
            f"Second pass cannot run while status is {session.second_pass_status}",
            current_status=session.second_pass_status,
        )
