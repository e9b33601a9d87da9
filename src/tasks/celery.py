"""Celery application configuration."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Setup Django before importing tasks that use models
import django
django.setup()

app = Celery("ensemble_library")
app.config_from_object("django.conf:settings", namespace="CELERY")

# Import tasks explicitly so they get registered
import src.smart_upload.tasks  # noqa: F401, E402
