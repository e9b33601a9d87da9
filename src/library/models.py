"""Music library catalog models."""

from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from . import fingerprints


class Person(models.Model):
    """A composer or arranger, deduplicated by exact full name."""

    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150)
    full_name = models.CharField(max_length=300, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return self.full_name

    @classmethod
    def from_full_name(cls, full_name: str) -> "Person":
        """
        Build an unsaved Person, taking the last whitespace token as the surname.

        Multi-word surnames ("Van Halen") end up split; callers accept that.
        """
        tokens = full_name.split()
        if len(tokens) > 1:
            return cls(first_name=" ".join(tokens[:-1]), last_name=tokens[-1], full_name=full_name)
        return cls(first_name="", last_name=full_name, full_name=full_name)


class Publisher(models.Model):
    name = models.CharField(max_length=255, unique=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Instrument(models.Model):
    """An instrument parts can be assigned to."""

    class Family(models.TextChoices):
        WOODWINDS = "Woodwinds"
        BRASS = "Brass"
        STRINGS = "Strings"
        PERCUSSION = "Percussion"
        KEYBOARD = "Keyboard"
        VOCALS = "Vocals"
        OTHER = "Other"

    name = models.CharField(max_length=150)
    family = models.CharField(max_length=20, choices=Family, default=Family.OTHER)
    sort_order = models.PositiveIntegerField(default=999)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self):
        return f"{self.name} ({self.family})"


class CatalogPiece(models.Model):
    """A piece of music in the library."""

    class Difficulty(models.TextChoices):
        GRADE_1 = "GRADE_1"
        GRADE_2 = "GRADE_2"
        GRADE_3 = "GRADE_3"
        GRADE_4 = "GRADE_4"
        GRADE_5 = "GRADE_5"
        GRADE_6 = "GRADE_6"

    class Source(models.TextChoices):
        MANUAL = "MANUAL"
        SMART_UPLOAD = "SMART_UPLOAD"

    title = models.CharField(max_length=500)
    composer = models.ForeignKey(
        Person, on_delete=models.SET_NULL, null=True, blank=True, related_name="pieces"
    )
    publisher = models.ForeignKey(
        Publisher, on_delete=models.SET_NULL, null=True, blank=True, related_name="pieces"
    )
    difficulty = models.CharField(max_length=10, choices=Difficulty, blank=True)
    confidence_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    source = models.CharField(max_length=20, choices=Source, default=Source.MANUAL)
    notes = models.TextField(blank=True)

    ensemble_type = models.CharField(max_length=100, blank=True)
    key_signature = models.CharField(max_length=50, blank=True)
    time_signature = models.CharField(max_length=20, blank=True)
    tempo = models.CharField(max_length=50, blank=True)

    # Normalised title + composer, see fingerprints.work_fingerprint
    work_fingerprint = models.CharField(max_length=16, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        self.work_fingerprint = fingerprints.work_fingerprint(
            self.title, self.composer.full_name if self.composer else None
        )
        super().save(*args, **kwargs)


class CatalogFile(models.Model):
    """A physical file (full score or extracted part) stored for a piece."""

    class FileType(models.TextChoices):
        FULL_SCORE = "FULL_SCORE"
        CONDUCTOR_SCORE = "CONDUCTOR_SCORE"
        PART = "PART"
        CONDENSED_SCORE = "CONDENSED_SCORE"

    piece = models.ForeignKey(CatalogPiece, on_delete=models.CASCADE, related_name="files")
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=20, choices=FileType, default=FileType.FULL_SCORE)
    file_size = models.PositiveBigIntegerField(default=0)
    mime_type = models.CharField(max_length=100, default="application/pdf")
    storage_key = models.CharField(max_length=500)
    content_hash = models.CharField(max_length=64, blank=True, db_index=True)

    uploaded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="catalog_files"
    )
    source = models.CharField(
        max_length=20, choices=CatalogPiece.Source, default=CatalogPiece.Source.MANUAL
    )
    original_upload = models.ForeignKey(
        "smart_upload.UploadSession",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="catalog_files",
    )
    extracted_metadata = models.JSONField(null=True, blank=True)

    # Per-part descriptive fields
    part_label = models.CharField(max_length=150, blank=True)
    instrument_name = models.CharField(max_length=150, blank=True)
    section = models.CharField(max_length=50, blank=True)
    part_number = models.PositiveIntegerField(null=True, blank=True)
    page_count = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["piece", "created_at"]

    def __str__(self):
        return f"{self.file_name} ({self.file_type})"


class CatalogPart(models.Model):
    """Links a piece to an instrument and the file holding its pages."""

    piece = models.ForeignKey(CatalogPiece, on_delete=models.CASCADE, related_name="parts")
    instrument = models.ForeignKey(Instrument, on_delete=models.PROTECT, related_name="parts")
    file = models.ForeignKey(CatalogFile, on_delete=models.CASCADE, related_name="parts")

    part_name = models.CharField(max_length=150)
    part_label = models.CharField(max_length=150, blank=True)
    section = models.CharField(max_length=50, blank=True)
    part_number = models.PositiveIntegerField(null=True, blank=True)
    transposition = models.CharField(max_length=20, blank=True)
    page_count = models.PositiveIntegerField(null=True, blank=True)
    storage_key = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["piece", "instrument__sort_order", "part_number"]

    def __str__(self):
        return f"{self.part_name} for {self.piece_id}"

    def save(self, *args, **kwargs):
        if self.file.piece_id != self.piece_id:
            raise ValueError(
                f"File {self.file_id} belongs to piece {self.file.piece_id}, not {self.piece_id}"
            )
        super().save(*args, **kwargs)
