"""
Permission classes for review endpoints.

Backed by Django model permissions, so capabilities are granted through
groups or per user in the usual way. Superusers pass every check.
"""

from rest_framework.permissions import BasePermission

REVIEW_PERMISSION = "smart_upload.view_uploadsession"
CATALOG_CREATE_PERMISSION = "library.add_catalogpiece"


class HasDjangoPermission(BasePermission):
    """Authenticated user holding `required_permission`."""

    required_permission: str = ""
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.has_perm(self.required_permission)


class CanReviewUploads(HasDjangoPermission):
    """Read access to upload sessions and previews."""

    required_permission = REVIEW_PERMISSION


class CanCreateCatalogEntries(HasDjangoPermission):
    """Approve, reject, bulk approve and second pass all need this."""

    required_permission = CATALOG_CREATE_PERMISSION
    message = "You do not have permission to create catalog entries."
