"""Errors raised by the Smart Upload pipeline."""


class SmartUploadError(Exception):
    """Base class for Smart Upload failures."""

    code = "smart_upload_error"


class SessionNotFound(SmartUploadError):
    code = "not_found"

    def __init__(self, session_id):
        self.session_id = str(session_id)
        super().__init__("Upload session not found")


class PartNotFound(SmartUploadError):
    code = "not_found"

    def __init__(self, storage_key: str):
        self.storage_key = storage_key
        super().__init__("Part not found in session")


class SessionStateError(SmartUploadError):
    """The session's current status does not allow the requested operation."""

    code = "state_error"

    def __init__(self, message: str = "Session is not pending review", current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)


class AlreadyCommitted(SessionStateError):
    """The session was already approved; re-submitting is safe to ignore."""

    code = "already_committed"

    def __init__(self, session_id):
        self.session_id = str(session_id)
        super().__init__("Session has already been committed", current_status="approved")


class DependencyError(SmartUploadError):
    """Storage or AI analysis call failed."""

    code = "dependency_error"


class PreviewError(SmartUploadError):
    """A preview request asked for something the PDF does not have."""

    code = "validation_error"
