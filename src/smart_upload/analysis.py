"""
Upload analysis pipeline shared by intake and the reviewer-triggered second pass.

download original -> extract metadata -> plan cuts -> split -> upload parts

Nothing here touches the session row; callers decide how to persist the
AnalysisOutcome. Storage and AI failures surface as DependencyError, and any
part files already uploaded by a failed run are deleted again.
"""

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from django.conf import settings
from django.utils.text import slugify

from src.extraction import ExtractionError, MetadataExtractor
from src.library.families import guess_instrument_family
from src.observability import trace_analysis_step
from src.tools.pdf import PdfError, count_pages, split_by_page_ranges
from src.tools.storage import StorageError, delete_file, download_file, upload_file
from .cutting import cap_confidence, estimate_cutting_instructions, plan_cuts
from .duplicates import duplicate_payload
from .exceptions import DependencyError
from .models import UploadSession
from .schemas import CuttingInstruction, ExtractedMetadata, PartRecord

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    """Everything one analysis run produced."""

    metadata: ExtractedMetadata
    confidence: int
    total_pages: int
    instructions: list[CuttingInstruction] = field(default_factory=list)
    parts: list[PartRecord] = field(default_factory=list)
    uploaded_keys: list[str] = field(default_factory=list)

    @property
    def has_gaps(self) -> bool:
        return any(c.is_gap for c in self.instructions)


def original_key(session_id, file_name: str = "original.pdf") -> str:
    suffix = PurePosixPath(file_name).suffix.lower() or ".pdf"
    return f"smart-upload/{session_id}/original{suffix}"


def parts_prefix(session_id, run: str | None = None) -> str:
    """Key prefix for split parts; each second pass writes under its own run folder."""
    if run:
        return f"smart-upload/{session_id}/parts/{run}"
    return f"smart-upload/{session_id}/parts"


def auto_approve_threshold() -> int:
    return getattr(settings, "SMART_UPLOAD_AUTO_APPROVE_THRESHOLD", 90)


def analyse_upload(
    session: UploadSession,
    extractor: MetadataExtractor | None = None,
    run: str | None = None,
) -> AnalysisOutcome:
    """
    Analyse a session's original PDF.

    Args:
        session: Session whose storage_key points at the original upload
        extractor: MetadataExtractor to use (default built from settings)
        run: Subfolder for part keys, so reruns never overwrite earlier parts

    Raises:
        DependencyError: download, extraction, split or upload failed
    """
    session_id = str(session.id)
    extractor = extractor or MetadataExtractor()

    with trace_analysis_step("download", session_id):
        try:
            pdf_bytes = download_file(session.storage_key)
            total_pages = count_pages(pdf_bytes)
        except (StorageError, PdfError) as e:
            raise DependencyError(f"Could not read original upload: {e}") from e

    with trace_analysis_step("extract", session_id, {"pages": total_pages}) as span:
        try:
            metadata = extractor.extract(pdf_bytes, session.file_name)
        except ExtractionError as e:
            raise DependencyError(f"Metadata extraction failed: {e}") from e
        span.update(output={"confidence": metadata.confidence_score})

    instructions = estimate_cutting_instructions(total_pages, metadata)
    if instructions:
        instructions = plan_cuts(instructions, total_pages)

    confidence = cap_confidence(metadata.confidence_score, instructions, auto_approve_threshold())
    outcome = AnalysisOutcome(
        metadata=metadata,
        confidence=confidence,
        total_pages=total_pages,
        instructions=instructions,
    )

    if instructions and (metadata.is_multi_part or len(instructions) > 1):
        with trace_analysis_step("split", session_id, {"instructions": len(instructions)}):
            split_and_upload(session, pdf_bytes, outcome, run=run)

    logger.info(
        f"Session {session_id}: confidence {metadata.confidence_score} -> {confidence}, "
        f"{len(instructions)} instructions, {len(outcome.parts)} parts uploaded"
    )
    return outcome


def split_and_upload(session: UploadSession, pdf_bytes: bytes, outcome: AnalysisOutcome, run: str | None = None) -> None:
    """Split per instruction and upload each part, filling outcome.parts."""
    try:
        split = split_by_page_ranges(pdf_bytes, [c.page_range for c in outcome.instructions])
    except PdfError as e:
        raise DependencyError(f"Could not split PDF: {e}") from e

    stem = PurePosixPath(session.file_name).stem or "upload"
    prefix = parts_prefix(session.id, run)

    try:
        for index, (instruction, part) in enumerate(zip(outcome.instructions, split), start=1):
            slug = slugify(instruction.part_name) or f"part-{index}"
            key = upload_file(
                f"{prefix}/{index:02d}-{slug}.pdf",
                part.data,
                content_type="application/pdf",
                metadata={"session_id": str(session.id), "part": instruction.part_name},
            )
            outcome.uploaded_keys.append(key)

            section = instruction.section
            if not section and not instruction.is_gap:
                section = guess_instrument_family(instruction.instrument)

            outcome.parts.append(PartRecord(
                instrument=instruction.instrument,
                part_name=instruction.part_name,
                section=section,
                transposition=instruction.transposition,
                part_number=instruction.part_number,
                page_range=instruction.page_range,
                page_count=part.page_count,
                file_size=part.file_size,
                storage_key=key,
                file_name=f"{stem} - {instruction.part_name}.pdf",
                is_gap=instruction.is_gap,
            ))
    except StorageError as e:
        discard_keys(outcome.uploaded_keys)
        raise DependencyError(f"Could not upload split parts: {e}") from e


def discard_keys(keys: list[str]) -> None:
    """Best-effort delete of keys written by a run that did not complete."""
    for key in keys:
        try:
            delete_file(key)
        except StorageError as e:
            logger.warning(f"Could not discard {key}: {e}")


def apply_outcome(session: UploadSession, outcome: AnalysisOutcome) -> list[str]:
    """
    Copy an outcome onto the session (unsaved) and return the changed fields.

    temp_files becomes the union of old and new keys so earlier parts are
    still reconciled at commit time. The duplicate check is rerun against
    the new title and composer.
    """
    session.extracted_metadata = outcome.metadata.model_dump(mode="json")
    session.confidence_score = outcome.confidence
    session.cutting_instructions = [c.model_dump(mode="json") for c in outcome.instructions]
    session.parsed_parts = [p.model_dump(mode="json") for p in outcome.parts]
    session.add_temp_files([session.storage_key, *outcome.uploaded_keys])
    session.parse_status = UploadSession.ParseStatus.PARSED
    session.parse_error = ""
    session.duplicate_check = duplicate_payload(session)
    return [
        "extracted_metadata",
        "confidence_score",
        "cutting_instructions",
        "parsed_parts",
        "temp_files",
        "parse_status",
        "parse_error",
        "duplicate_check",
        "updated_at",
    ]


def new_run_id() -> str:
    return f"pass-{uuid.uuid4().hex[:8]}"
