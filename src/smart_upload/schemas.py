"""
Typed shapes for Smart Upload metadata.

Everything the extractor and splitter hand back is validated here before it
is persisted on an UploadSession, so the rest of the pipeline works with
these models instead of raw JSON.
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.library.models import CatalogFile, CatalogPiece

logger = logging.getLogger(__name__)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# Upper bound of the catalog's PositiveIntegerField
MAX_PART_NUMBER = 2147483647


def check_part_number(value: str | None) -> None:
    """Numeric part numbers must fit the catalog column; other labels pass through."""
    if value is None:
        return
    try:
        number = int(value)
    except ValueError:
        return
    if not 0 <= number <= MAX_PART_NUMBER:
        raise ValueError(f"Part number must be between 0 and {MAX_PART_NUMBER}")


class DeclaredPart(BaseModel):
    """A part the extractor saw listed in the score (no pages attached)."""

    model_config = ConfigDict(extra="ignore")

    instrument: str | None = None
    part_name: str | None = None

    @field_validator("instrument", "part_name", mode="before")
    @classmethod
    def strip_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)


class CuttingInstruction(BaseModel):
    """
    One page-range assignment, 1-indexed and inclusive.

    A start below page 1 is accepted and clamped when the cut is planned;
    reversed ranges and ranges ending before page 1 are rejected.
    Gap instructions cover pages no real part claimed; they are kept so
    reviewers see every page.
    """

    model_config = ConfigDict(extra="ignore")

    part_name: str
    instrument: str
    section: str | None = None
    transposition: str | None = None
    part_number: int | None = None
    page_range: tuple[int, int]
    is_gap: bool = False

    @model_validator(mode="before")
    @classmethod
    def fill_names(cls, data: Any) -> Any:
        # Either name stands in for the other when the model leaves one out
        if isinstance(data, dict):
            part_name = _blank_to_none(data.get("part_name"))
            instrument = _blank_to_none(data.get("instrument"))
            data = {**data, "part_name": part_name or instrument, "instrument": instrument or part_name}
        return data

    @model_validator(mode="after")
    def check_range(self) -> "CuttingInstruction":
        start, end = self.page_range
        if end < 1 or end < start:
            raise ValueError(f"Invalid page range {start}-{end}")
        return self

    @property
    def page_count(self) -> int:
        return self.page_range[1] - self.page_range[0] + 1


class ExtractedMetadata(BaseModel):
    """What the AI extractor reports about an uploaded score."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    composer: str | None = None
    publisher: str | None = None
    instrument: str | None = None
    confidence_score: int = 0
    file_type: str = CatalogFile.FileType.FULL_SCORE.value
    is_multi_part: bool = False
    parts: list[DeclaredPart] = Field(default_factory=list)
    difficulty: str | None = None
    ensemble_type: str | None = None
    key_signature: str | None = None
    time_signature: str | None = None
    tempo: str | None = None
    cutting_instructions: list[CuttingInstruction] = Field(default_factory=list)

    @field_validator(
        "title", "composer", "publisher", "instrument",
        "ensemble_type", "key_signature", "time_signature",
        mode="before",
    )
    @classmethod
    def strip_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("cutting_instructions", mode="before")
    @classmethod
    def drop_invalid_instructions(cls, value: Any) -> list[CuttingInstruction]:
        """Keep the usable instructions; one bad entry must not sink the rest."""
        if not isinstance(value, list):
            if value is not None:
                logger.warning(f"Ignoring cutting_instructions of type {type(value).__name__}")
            return []

        instructions = []
        for entry in value:
            try:
                instructions.append(CuttingInstruction.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Dropping cutting instruction {entry!r}: {e.errors()[0]['msg']}")
        return instructions

    @field_validator("parts", mode="before")
    @classmethod
    def drop_invalid_parts(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, (dict, DeclaredPart))]

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> int:
        if value is None:
            return 0
        score = round(float(value))
        return max(0, min(100, score))

    @field_validator("file_type", mode="before")
    @classmethod
    def normalise_file_type(cls, value: Any) -> Any:
        value = str(value or "").strip().upper().replace(" ", "_")
        if value not in CatalogFile.FileType.values:
            return CatalogFile.FileType.FULL_SCORE.value
        return value

    @field_validator("difficulty", mode="before")
    @classmethod
    def drop_unknown_difficulty(cls, value: Any) -> Any:
        if value not in CatalogPiece.Difficulty.values:
            return None
        return value

    @field_validator("tempo", mode="before")
    @classmethod
    def tempo_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return _blank_to_none(value)


class PartRecord(BaseModel):
    """A pre-split part file uploaded to temporary storage."""

    model_config = ConfigDict(extra="ignore")

    instrument: str
    part_name: str
    section: str | None = None
    transposition: str | None = None
    part_number: int | None = None
    page_range: tuple[int, int]
    page_count: int
    file_size: int
    storage_key: str
    file_name: str
    is_gap: bool = False


class CommitOverrides(BaseModel):
    """Reviewer edits applied on approve; anything set wins over extracted values."""

    title: str
    composer: str | None = None
    publisher: str | None = None
    instrument: str | None = None
    part_number: str | None = None
    difficulty: str | None = None
    ensemble_type: str | None = None
    key_signature: str | None = None
    time_signature: str | None = None
    tempo: str | None = None

    @field_validator(
        "composer", "publisher", "instrument", "part_number", "difficulty",
        "ensemble_type", "key_signature", "time_signature", "tempo",
        mode="before",
    )
    @classmethod
    def strip_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("title", mode="before")
    @classmethod
    def require_title(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Title is required")
        return value.strip()

    @field_validator("part_number")
    @classmethod
    def numeric_part_number_in_range(cls, value: str | None) -> str | None:
        check_part_number(value)
        return value

    @field_validator("difficulty")
    @classmethod
    def known_difficulty(cls, value: str | None) -> str | None:
        if value is not None and value not in CatalogPiece.Difficulty.values:
            raise ValueError(f"Unknown difficulty {value}")
        return value


class DuplicateCheck(BaseModel):
    """
    Why an upload looks like one the library already has.

    match is "source" for identical file bytes and "work" for the same
    normalised title and composer as a catalogued piece.
    """

    match: Literal["source", "work"]
    matching_session_id: str | None = None
    matching_piece_id: int | None = None
    reason: str


class CleanupReport(BaseModel):
    """Outcome of best-effort temp file deletion."""

    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    kept: list[str] = Field(default_factory=list)


class CommitResult(BaseModel):
    piece_id: int
    piece_title: str
    file_id: int
    session_id: str
    parts_committed: int
    final_keys: list[str]
    cleanup: CleanupReport = Field(default_factory=CleanupReport)
    duplicate: DuplicateCheck | None = None
