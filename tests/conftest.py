import io
import tempfile

import django
from django.conf import settings

TEST_MEDIA_ROOT = tempfile.mkdtemp(prefix="ensemble_library_media_")


def pytest_configure():
    """Configure Django settings before tests."""
    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY="test-secret-key-for-testing-only",
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": ":memory:",
                }
            },
            INSTALLED_APPS=[
                "django.contrib.auth",
                "django.contrib.contenttypes",
                "rest_framework",
                "src.api",
                "src.library",
                "src.smart_upload",
            ],
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            USE_TZ=True,
            ROOT_URLCONF="config.urls",
            REST_FRAMEWORK={
                "DEFAULT_AUTHENTICATION_CLASSES": [
                    "rest_framework_simplejwt.authentication.JWTAuthentication",
                    "src.api.auth.APIKeyAuthentication",
                ],
                "DEFAULT_PERMISSION_CLASSES": [],
                "UNAUTHENTICATED_USER": None,
            },
            CHANNEL_LAYERS={
                "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
            },
            API_KEY="test-api-key",
            SMART_UPLOAD_LLM_MODEL="test/model",
            SMART_UPLOAD_AUTO_APPROVE_THRESHOLD=90,
            SMART_UPLOAD_SECOND_PASS_THRESHOLD=60,
            SMART_UPLOAD_AUTONOMOUS_MODE=False,
            SMART_UPLOAD_PREVIEW_MAX_WIDTH=600,
            MEDIA_ROOT=TEST_MEDIA_ROOT,
            MEDIA_URL="media/",
            STATIC_URL="static/",
            CELERY_TASK_ALWAYS_EAGER=True,
            TEMPLATES=[{
                "BACKEND": "django.template.backends.django.DjangoTemplates",
                "DIRS": [],
                "APP_DIRS": True,
                "OPTIONS": {"context_processors": []},
            }],
        )
    django.setup()


def pytest_sessionstart(session):
    """Create database tables for in-memory SQLite test DB."""
    from django.core.management import call_command

    call_command("migrate", "--run-syncdb", verbosity=0)


def make_pdf(pages: int = 3, width: float = 200, height: float = 300) -> bytes:
    """Blank PDF with the given number of pages."""
    from pypdf import PdfWriter

    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=height)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def make_session(pages: int = 3, metadata: dict | None = None, **fields):
    """Pending UploadSession whose original PDF is written to test storage."""
    from src.smart_upload.analysis import original_key
    from src.smart_upload.models import UploadSession
    from src.tools.storage import upload_file

    data = make_pdf(pages)
    session = UploadSession(file_name=fields.pop("file_name", "score.pdf"), **fields)
    session.storage_key = upload_file(original_key(session.id, session.file_name), data)
    session.file_size = len(data)
    session.extracted_metadata = metadata
    session.temp_files = [session.storage_key]
    session.save()
    return session


def analyse(session, metadata: dict, run: str | None = None):
    """Run the real analysis pipeline with a canned extractor reply and persist it."""
    from unittest.mock import MagicMock

    from src.smart_upload.analysis import analyse_upload, apply_outcome
    from src.smart_upload.schemas import ExtractedMetadata

    extractor = MagicMock()
    extractor.extract.return_value = ExtractedMetadata.model_validate(metadata)
    outcome = analyse_upload(session, extractor=extractor, run=run)
    session.save(update_fields=apply_outcome(session, outcome))
    return outcome
