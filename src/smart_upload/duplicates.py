"""
Duplicate detection for uploaded scores.

Checked strongest first:

1. source: the same PDF bytes as an earlier session that was not rejected,
   or as a file already in the catalog
2. work: the same normalised title and composer as a catalogued piece

A match never blocks intake or a reviewer's approve. It is recorded on the
session so reviewers see it, and it keeps the session out of auto-commit.
"""

import logging

from src.library.fingerprints import work_fingerprint
from src.library.models import CatalogFile, CatalogPiece
from .models import UploadSession
from .schemas import DuplicateCheck

logger = logging.getLogger(__name__)


def find_duplicate(session: UploadSession) -> DuplicateCheck | None:
    """Source match if there is one, else a work match, else None."""
    duplicate = check_source_duplicate(session) or check_work_duplicate(session)
    if duplicate:
        logger.info(f"Session {session.id} flagged as {duplicate.match} duplicate: {duplicate.reason}")
    return duplicate


def check_source_duplicate(session: UploadSession) -> DuplicateCheck | None:
    if not session.source_sha256:
        return None

    earlier = (
        UploadSession.objects.filter(source_sha256=session.source_sha256)
        .exclude(id=session.id)
        .exclude(status=UploadSession.Status.REJECTED)
        .order_by("created_at")
        .first()
    )
    catalogued = (
        CatalogFile.objects.filter(content_hash=session.source_sha256)
        .select_related("piece")
        .order_by("created_at")
        .first()
    )
    if not earlier and not catalogued:
        return None

    if catalogued:
        reason = f'Identical file already catalogued under "{catalogued.piece.title}"'
    else:
        reason = f"Identical file uploaded in session {earlier.id} ({earlier.status})"

    return DuplicateCheck(
        match="source",
        matching_session_id=str(earlier.id) if earlier else None,
        matching_piece_id=catalogued.piece_id if catalogued else None,
        reason=reason,
    )


def check_work_duplicate(session: UploadSession) -> DuplicateCheck | None:
    metadata = session.metadata
    if not metadata:
        return None

    fingerprint = work_fingerprint(metadata.title, metadata.composer)
    if not fingerprint:
        return None

    piece = CatalogPiece.objects.filter(work_fingerprint=fingerprint).order_by("created_at").first()
    if not piece:
        return None

    return DuplicateCheck(
        match="work",
        matching_piece_id=piece.id,
        reason=f'Possible duplicate of "{piece.title}" (same title and composer)',
    )


def duplicate_payload(session: UploadSession) -> dict | None:
    """JSON for UploadSession.duplicate_check."""
    duplicate = find_duplicate(session)
    return duplicate.model_dump(mode="json") if duplicate else None
