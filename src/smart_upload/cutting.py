"""
Cutting plans: which pages of an uploaded score belong to which part.

Instructions are 1-indexed and inclusive. Every page of the document ends up
covered by exactly one instruction; pages no part claims get an explicit gap
instruction instead of being dropped.
"""

import logging

from src.tools.pdf import estimate_page_ranges
from .schemas import CuttingInstruction, ExtractedMetadata

logger = logging.getLogger(__name__)

GAP_INSTRUMENT = "Unknown"

# Confidence ceiling when every page is unlabelled
ALL_GAPS_MAX_CONFIDENCE = 10


def estimate_cutting_instructions(total_pages: int, metadata: ExtractedMetadata) -> list[CuttingInstruction]:
    """
    Instructions from the extractor when it gave any, else an even split
    across the declared parts. Single-part scores get no instructions.
    """
    if metadata.cutting_instructions:
        return list(metadata.cutting_instructions)

    if not (metadata.is_multi_part and metadata.parts):
        return []

    ranges = estimate_page_ranges(total_pages, len(metadata.parts))
    instructions = []
    for number, (declared, page_range) in enumerate(zip(metadata.parts, ranges), start=1):
        instrument = declared.instrument or declared.part_name or f"Part {number}"
        instructions.append(CuttingInstruction(
            part_name=declared.part_name or instrument,
            instrument=instrument,
            part_number=number,
            page_range=page_range,
        ))
    return instructions


def plan_cuts(instructions: list[CuttingInstruction], total_pages: int) -> list[CuttingInstruction]:
    """
    Clamp, de-overlap and gap-fill instructions against the real page count.

    - ranges are clamped to 1..total_pages; ranges entirely past the end are dropped
    - when two ranges overlap, the earlier one is cut short at the later one's start
    - uncovered page runs become is_gap instructions

    Returns:
        Instructions ordered by first page
    """
    if total_pages < 1:
        return []

    clamped = []
    for instruction in instructions:
        if instruction.is_gap:
            continue
        start, end = instruction.page_range
        start = max(1, start)
        end = min(end, total_pages)
        if start > end:
            logger.warning(f"Dropping {instruction.part_name}: pages {instruction.page_range} outside 1-{total_pages}")
            continue
        clamped.append(instruction.model_copy(update={"page_range": (start, end)}))

    clamped.sort(key=lambda c: c.page_range[0])

    resolved = []
    for i, instruction in enumerate(clamped):
        start, end = instruction.page_range
        if i + 1 < len(clamped):
            next_start = clamped[i + 1].page_range[0]
            if next_start <= end:
                end = next_start - 1
        if end < start:
            logger.warning(f"Dropping {instruction.part_name}: fully overlapped by the next part")
            continue
        resolved.append(instruction.model_copy(update={"page_range": (start, end)}))

    planned = []
    cursor = 1
    for instruction in resolved:
        start, end = instruction.page_range
        if start > cursor:
            planned.append(gap_instruction(cursor, start - 1))
        planned.append(instruction)
        cursor = end + 1
    if cursor <= total_pages:
        planned.append(gap_instruction(cursor, total_pages))

    return planned


def gap_instruction(start: int, end: int) -> CuttingInstruction:
    return CuttingInstruction(
        part_name=f"Unlabelled Pages {start}-{end}",
        instrument=GAP_INSTRUMENT,
        page_range=(start, end),
        is_gap=True,
    )


def cap_confidence(confidence: int, instructions: list[CuttingInstruction], auto_approve_threshold: int) -> int:
    """
    Keep sessions with unlabelled pages out of auto-approval.

    Any gap caps confidence just under the auto-approve threshold; a plan
    that is all gaps caps it at ALL_GAPS_MAX_CONFIDENCE.
    """
    gaps = [c for c in instructions if c.is_gap]
    if not gaps:
        return confidence
    if len(gaps) == len(instructions):
        return min(confidence, ALL_GAPS_MAX_CONFIDENCE)
    return min(confidence, max(0, auto_approve_threshold - 1))
