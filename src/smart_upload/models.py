"""
Smart Upload Models

An UploadSession is one uploaded PDF waiting for a reviewer (or the
autonomous path) to approve it into the library or reject it.
"""

import uuid

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .schemas import CuttingInstruction, DuplicateCheck, ExtractedMetadata, PartRecord


class UploadSession(models.Model):
    """Uploaded score plus everything analysis found out about it."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4)

    # Original file
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveBigIntegerField(default=0)
    mime_type = models.CharField(max_length=100, default="application/pdf")
    storage_key = models.CharField(max_length=500)
    source_sha256 = models.CharField(max_length=64, blank=True, db_index=True)

    # Analysis output
    extracted_metadata = models.JSONField(null=True, blank=True)
    confidence_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    parsed_parts = models.JSONField(default=list, blank=True)
    cutting_instructions = models.JSONField(default=list, blank=True)
    # Earlier upload or catalogued piece this one appears to repeat
    duplicate_check = models.JSONField(null=True, blank=True)

    class Status(models.TextChoices):
        PENDING_REVIEW = "pending_review"
        APPROVED = "approved"
        REJECTED = "rejected"

    class ParseStatus(models.TextChoices):
        NONE = "none"
        PARSING = "parsing"
        PARSED = "parsed"
        PARSE_FAILED = "parse_failed"

    class SecondPassStatus(models.TextChoices):
        NONE = "none"
        QUEUED = "queued"
        IN_PROGRESS = "in_progress"
        COMPLETE = "complete"
        FAILED = "failed"

    status = models.CharField(
        max_length=20, choices=Status, default=Status.PENDING_REVIEW, db_index=True
    )
    parse_status = models.CharField(max_length=20, choices=ParseStatus, default=ParseStatus.NONE)
    second_pass_status = models.CharField(
        max_length=20, choices=SecondPassStatus, default=SecondPassStatus.NONE
    )
    parse_error = models.TextField(blank=True)
    auto_approved = models.BooleanField(default=False)

    # Review
    uploaded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="upload_sessions"
    )
    reviewed_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="reviewed_uploads"
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    # Storage keys written while processing, reconciled after commit
    temp_files = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.file_name} ({self.status})"

    # ----- Class methods -----

    @classmethod
    def get_or_none(cls, session_id) -> "UploadSession | None":
        """Get session by ID, returning None if missing or not a UUID."""
        try:
            return cls.objects.get(id=session_id)
        except (cls.DoesNotExist, ValidationError, ValueError):
            return None

    # ----- Properties -----

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING_REVIEW

    @property
    def metadata(self) -> ExtractedMetadata | None:
        """Validated view of extracted_metadata."""
        if not self.extracted_metadata:
            return None
        return ExtractedMetadata.model_validate(self.extracted_metadata)

    @property
    def parts(self) -> list[PartRecord]:
        return [PartRecord.model_validate(p) for p in self.parsed_parts or []]

    @property
    def instructions(self) -> list[CuttingInstruction]:
        return [CuttingInstruction.model_validate(c) for c in self.cutting_instructions or []]

    @property
    def has_gaps(self) -> bool:
        return any(c.is_gap for c in self.instructions)

    @property
    def duplicate(self) -> DuplicateCheck | None:
        if not self.duplicate_check:
            return None
        return DuplicateCheck.model_validate(self.duplicate_check)

    def add_temp_files(self, keys) -> None:
        """Union new keys into temp_files, keeping insertion order. Does not save."""
        current = list(self.temp_files or [])
        for key in keys:
            if key and key not in current:
                current.append(key)
        self.temp_files = current
