import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

SOURCE_CHOICES = [("MANUAL", "Manual"), ("SMART_UPLOAD", "Smart Upload")]


def _id():
    return models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("smart_upload", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Person",
            fields=[
                ("id", _id()),
                ("first_name", models.CharField(blank=True, max_length=150)),
                ("last_name", models.CharField(max_length=150)),
                ("full_name", models.CharField(db_index=True, max_length=300)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["last_name", "first_name"]},
        ),
        migrations.CreateModel(
            name="Publisher",
            fields=[
                ("id", _id()),
                ("name", models.CharField(max_length=255, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Instrument",
            fields=[
                ("id", _id()),
                ("name", models.CharField(max_length=150)),
                (
                    "family",
                    models.CharField(
                        choices=[
                            ("Woodwinds", "Woodwinds"),
                            ("Brass", "Brass"),
                            ("Strings", "Strings"),
                            ("Percussion", "Percussion"),
                            ("Keyboard", "Keyboard"),
                            ("Vocals", "Vocals"),
                            ("Other", "Other"),
                        ],
                        default="Other",
                        max_length=20,
                    ),
                ),
                ("sort_order", models.PositiveIntegerField(default=999)),
            ],
            options={"ordering": ["sort_order", "name"]},
        ),
        migrations.CreateModel(
            name="CatalogPiece",
            fields=[
                ("id", _id()),
                ("title", models.CharField(max_length=500)),
                (
                    "difficulty",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("GRADE_1", "Grade 1"),
                            ("GRADE_2", "Grade 2"),
                            ("GRADE_3", "Grade 3"),
                            ("GRADE_4", "Grade 4"),
                            ("GRADE_5", "Grade 5"),
                            ("GRADE_6", "Grade 6"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "confidence_score",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                ("source", models.CharField(choices=SOURCE_CHOICES, default="MANUAL", max_length=20)),
                ("notes", models.TextField(blank=True)),
                ("ensemble_type", models.CharField(blank=True, max_length=100)),
                ("key_signature", models.CharField(blank=True, max_length=50)),
                ("time_signature", models.CharField(blank=True, max_length=20)),
                ("tempo", models.CharField(blank=True, max_length=50)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "composer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pieces",
                        to="library.person",
                    ),
                ),
                (
                    "publisher",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pieces",
                        to="library.publisher",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="CatalogFile",
            fields=[
                ("id", _id()),
                ("file_name", models.CharField(max_length=255)),
                (
                    "file_type",
                    models.CharField(
                        choices=[
                            ("FULL_SCORE", "Full Score"),
                            ("CONDUCTOR_SCORE", "Conductor Score"),
                            ("PART", "Part"),
                            ("CONDENSED_SCORE", "Condensed Score"),
                        ],
                        default="FULL_SCORE",
                        max_length=20,
                    ),
                ),
                ("file_size", models.PositiveBigIntegerField(default=0)),
                ("mime_type", models.CharField(default="application/pdf", max_length=100)),
                ("storage_key", models.CharField(max_length=500)),
                ("source", models.CharField(choices=SOURCE_CHOICES, default="MANUAL", max_length=20)),
                ("extracted_metadata", models.JSONField(blank=True, null=True)),
                ("part_label", models.CharField(blank=True, max_length=150)),
                ("instrument_name", models.CharField(blank=True, max_length=150)),
                ("section", models.CharField(blank=True, max_length=50)),
                ("part_number", models.PositiveIntegerField(blank=True, null=True)),
                ("page_count", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "piece",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="files",
                        to="library.catalogpiece",
                    ),
                ),
                (
                    "uploaded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="catalog_files",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "original_upload",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="catalog_files",
                        to="smart_upload.uploadsession",
                    ),
                ),
            ],
            options={"ordering": ["piece", "created_at"]},
        ),
        migrations.CreateModel(
            name="CatalogPart",
            fields=[
                ("id", _id()),
                ("part_name", models.CharField(max_length=150)),
                ("part_label", models.CharField(blank=True, max_length=150)),
                ("section", models.CharField(blank=True, max_length=50)),
                ("part_number", models.PositiveIntegerField(blank=True, null=True)),
                ("transposition", models.CharField(blank=True, max_length=20)),
                ("page_count", models.PositiveIntegerField(blank=True, null=True)),
                ("storage_key", models.CharField(blank=True, max_length=500)),
                (
                    "piece",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parts",
                        to="library.catalogpiece",
                    ),
                ),
                (
                    "instrument",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="parts",
                        to="library.instrument",
                    ),
                ),
                (
                    "file",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="parts",
                        to="library.catalogfile",
                    ),
                ),
            ],
            options={"ordering": ["piece", "instrument__sort_order", "part_number"]},
        ),
    ]
