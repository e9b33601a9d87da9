"""
API Key Authentication

Header-based authentication for service integrations (scanners, import
scripts) that drive Smart Upload without a reviewer login.
Set API_KEY in .env or environment; an empty API_KEY disables key auth.
"""

import hmac
import logging

from django.conf import settings
from django.contrib.auth.models import User
from rest_framework import authentication, exceptions

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_USERNAME = "smart_upload_service"


class APIKeyAuthentication(authentication.BaseAuthentication):
    """
    Authenticate requests via X-API-Key header.

    Client usage:
        curl -H "X-API-Key: your-key" http://localhost:8000/api/uploads/review/

    Requests run as the service user named by API_KEY_USERNAME. That user
    holds no permissions until an admin grants them, so a valid key alone
    cannot review or approve uploads.
    """

    def authenticate(self, request):
        api_key = request.headers.get("X-API-Key")

        if not api_key:
            return None  # No auth attempted, let other authenticators try

        if not check_api_key(api_key):
            raise exceptions.AuthenticationFailed("Invalid API key")

        return (service_user(), api_key)


def service_user() -> User:
    """The user API key requests act as, created on first use."""
    username = getattr(settings, "API_KEY_USERNAME", DEFAULT_SERVICE_USERNAME)
    user, created = User.objects.get_or_create(
        username=username,
        defaults={"email": f"{username}@local", "is_active": True},
    )
    if created:
        logger.info(f"Created API key service user {username}")
    return user


def check_api_key(api_key: str | None) -> bool:
    """Constant-time comparison against settings.API_KEY. Used by the WebSocket consumer too."""
    expected = getattr(settings, "API_KEY", "") or ""
    if not expected or not api_key:
        return False
    return hmac.compare_digest(api_key.encode(), expected.encode())
