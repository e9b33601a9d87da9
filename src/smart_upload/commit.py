"""
Commit an UploadSession into the music library.

Two phases:

1. One database transaction with the session row locked. Resolves composer
   and publisher, creates the piece, the original file and the parts, and
   flips the session to approved. Returns the final key set. Any failure
   rolls all of it back and leaves the session pending.
2. Best-effort deletion of temp files outside the final key set. temp_files
   is narrowed to the keys that could not be deleted.

commit_session does not know who called it; manual approve, bulk approve and
the autonomous auto-commit task all go through it.
"""

import logging

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from src.library.families import guess_instrument_family
from src.library.models import CatalogFile, CatalogPart, CatalogPiece, Instrument, Person, Publisher
from . import state
from .cleanup import delete_orphaned_files
from .exceptions import AlreadyCommitted, SessionNotFound, SessionStateError
from .models import UploadSession
from .schemas import CommitOverrides, CommitResult, ExtractedMetadata

logger = logging.getLogger(__name__)


def commit_session(
    session_id,
    overrides: CommitOverrides | dict,
    actor: User | None = None,
    auto_approved: bool = False,
) -> CommitResult:
    """
    Approve a pending session and create its catalog entries.

    Args:
        session_id: UploadSession id
        overrides: Reviewer edits; title is required
        actor: Reviewing user, None for the automatic path
        auto_approved: Mark the session as approved without a human

    Raises:
        pydantic.ValidationError: overrides invalid (nothing written)
        SessionNotFound: no such session
        AlreadyCommitted: session was approved already
        SessionStateError: session was rejected
    """
    if not isinstance(overrides, CommitOverrides):
        overrides = CommitOverrides.model_validate(overrides)

    with transaction.atomic():
        session = _lock_session(session_id)
        state.assert_review_transition(session, UploadSession.Status.APPROVED)

        metadata = session.metadata or ExtractedMetadata()
        piece = _create_piece(session, metadata, overrides)
        original_file = _create_original_file(piece, session, metadata, actor)
        parts = _create_parts(piece, original_file, session, metadata, overrides, actor)

        _mark_approved(session, actor, auto_approved)

        final_keys = [original_file.storage_key]
        for part in parts:
            if part.file_id != original_file.id and part.storage_key not in final_keys:
                final_keys.append(part.storage_key)
        temp_keys = list(session.temp_files or [])
        duplicate = session.duplicate

    logger.info(
        f"Committed session {session.id} as piece {piece.id} '{piece.title}' "
        f"with {len(parts)} parts"
    )
    if duplicate:
        logger.warning(f"Session {session.id} committed despite duplicate flag: {duplicate.reason}")

    cleanup = delete_orphaned_files(
        session.id, temp_keys, final_keys, protected_keys=[session.storage_key]
    )
    # Only undeleted keys stay on the ledger for reconcile_upload_storage
    UploadSession.objects.filter(id=session.id).update(temp_files=cleanup.failed, updated_at=timezone.now())

    return CommitResult(
        piece_id=piece.id,
        piece_title=piece.title,
        file_id=original_file.id,
        session_id=str(session.id),
        parts_committed=len(parts),
        final_keys=final_keys,
        cleanup=cleanup,
        duplicate=duplicate,
    )


def _lock_session(session_id) -> UploadSession:
    try:
        return UploadSession.objects.select_for_update().get(id=session_id)
    except (UploadSession.DoesNotExist, DjangoValidationError, ValueError):
        raise SessionNotFound(session_id)


def _mark_approved(session: UploadSession, actor: User | None, auto_approved: bool) -> None:
    """Conditional update so only one concurrent commit can win."""
    now = timezone.now()
    updated = UploadSession.objects.filter(
        id=session.id, status=UploadSession.Status.PENDING_REVIEW
    ).update(
        status=UploadSession.Status.APPROVED,
        reviewed_by=actor,
        reviewed_at=now,
        auto_approved=auto_approved,
        updated_at=now,
    )
    if updated != 1:
        current = UploadSession.objects.filter(id=session.id).values_list("status", flat=True).first()
        if current == UploadSession.Status.APPROVED:
            raise AlreadyCommitted(session.id)
        raise SessionStateError(current_status=current)

    session.status = UploadSession.Status.APPROVED
    session.reviewed_by = actor
    session.reviewed_at = now
    session.auto_approved = auto_approved


# ----- Reference resolution -----


def resolve_composer(full_name: str | None) -> Person | None:
    """Exact full-name match, else a new Person split on the last space."""
    if not full_name:
        return None
    full_name = " ".join(full_name.split())
    person = Person.objects.filter(full_name=full_name).first()
    if person:
        return person
    person = Person.from_full_name(full_name)
    person.save()
    logger.info(f"Created composer {full_name}")
    return person


def resolve_publisher(name: str | None) -> Publisher | None:
    if not name:
        return None
    publisher, created = Publisher.objects.get_or_create(name=name.strip())
    if created:
        logger.info(f"Created publisher {publisher.name}")
    return publisher


def resolve_instrument(name: str) -> Instrument:
    """
    Find an instrument by name, preferring an exact (case-insensitive) hit,
    then any instrument whose name contains it. Unknown names are created
    with a guessed family at the end of the sort order.
    """
    name = name.strip()
    instrument = (
        Instrument.objects.filter(name__iexact=name).first()
        or Instrument.objects.filter(name__icontains=name).order_by("sort_order", "name").first()
    )
    if instrument:
        return instrument

    instrument = Instrument.objects.create(
        name=name,
        family=guess_instrument_family(name),
        sort_order=999,
    )
    logger.info(f"Created instrument {instrument.name} ({instrument.family})")
    return instrument


# ----- Catalog rows -----


def _create_piece(session: UploadSession, metadata: ExtractedMetadata, overrides: CommitOverrides) -> CatalogPiece:
    now = timezone.now()
    return CatalogPiece.objects.create(
        title=overrides.title,
        composer=resolve_composer(overrides.composer or metadata.composer),
        publisher=resolve_publisher(overrides.publisher or metadata.publisher),
        difficulty=overrides.difficulty or metadata.difficulty or "",
        confidence_score=session.confidence_score,
        source=CatalogPiece.Source.SMART_UPLOAD,
        notes=f"Imported via Smart Upload on {now.isoformat()}",
        ensemble_type=overrides.ensemble_type or metadata.ensemble_type or "",
        key_signature=overrides.key_signature or metadata.key_signature or "",
        time_signature=overrides.time_signature or metadata.time_signature or "",
        tempo=overrides.tempo or metadata.tempo or "",
    )


def _create_original_file(
    piece: CatalogPiece, session: UploadSession, metadata: ExtractedMetadata, actor: User | None
) -> CatalogFile:
    return CatalogFile.objects.create(
        piece=piece,
        file_name=session.file_name,
        file_type=metadata.file_type or CatalogFile.FileType.FULL_SCORE,
        file_size=session.file_size,
        mime_type=session.mime_type,
        storage_key=session.storage_key,
        content_hash=session.source_sha256,
        uploaded_by=actor,
        source=CatalogPiece.Source.SMART_UPLOAD,
        original_upload=session,
        extracted_metadata=session.extracted_metadata,
    )


def _create_parts(
    piece: CatalogPiece,
    original_file: CatalogFile,
    session: UploadSession,
    metadata: ExtractedMetadata,
    overrides: CommitOverrides,
    actor: User | None,
) -> list[CatalogPart]:
    """
    Parts, in order of preference:

    - one PART file and one part per pre-split record (gap records included)
    - one part per declared part, all on the original file
    - one part for the single instrument (override, then extracted)
    - none
    """
    if session.parsed_parts:
        return [
            _create_split_part(piece, session, record, actor)
            for record in session.parts
        ]

    if metadata.is_multi_part and metadata.parts:
        parts = []
        for number, declared in enumerate(metadata.parts, start=1):
            instrument_name = declared.instrument or declared.part_name
            if not instrument_name:
                logger.warning(f"Session {session.id}: skipping declared part {number} with no instrument")
                continue
            instrument = resolve_instrument(instrument_name)
            parts.append(CatalogPart.objects.create(
                piece=piece,
                instrument=instrument,
                file=original_file,
                part_name=declared.part_name or instrument.name,
                part_number=number,
                storage_key=original_file.storage_key,
            ))
        return parts

    instrument_name = overrides.instrument or metadata.instrument
    if instrument_name:
        instrument = resolve_instrument(instrument_name)
        return [CatalogPart.objects.create(
            piece=piece,
            instrument=instrument,
            file=original_file,
            part_name=overrides.part_number or instrument.name,
            part_number=_as_int(overrides.part_number),
            storage_key=original_file.storage_key,
        )]

    return []


def _create_split_part(piece: CatalogPiece, session: UploadSession, record, actor: User | None) -> CatalogPart:
    part_file = CatalogFile.objects.create(
        piece=piece,
        file_name=record.file_name,
        file_type=CatalogFile.FileType.PART,
        file_size=record.file_size,
        mime_type="application/pdf",
        storage_key=record.storage_key,
        uploaded_by=actor,
        source=CatalogPiece.Source.SMART_UPLOAD,
        original_upload=session,
        part_label=record.part_name,
        instrument_name=record.instrument,
        section=record.section or "",
        part_number=record.part_number,
        page_count=record.page_count,
    )
    return CatalogPart.objects.create(
        piece=piece,
        instrument=resolve_instrument(record.instrument),
        file=part_file,
        part_name=record.part_name,
        part_label=record.part_name,
        section=record.section or "",
        part_number=record.part_number,
        transposition=record.transposition or "",
        page_count=record.page_count,
        storage_key=record.storage_key,
    )


def _as_int(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None
