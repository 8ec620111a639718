"""Error taxonomy shared by the client workflows.

Each user-triggered action raises a :class:`WorkflowError` subclass tagged
with the :class:`ErrorKind` of the step that failed. The message carries the
backend's own wording whenever the backend supplied one.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NO_FILE_SELECTED = "no_file_selected"
    UNSUPPORTED_FILE = "unsupported_file"
    SLOT_REQUEST_FAILED = "slot_request_failed"
    DIRECT_UPLOAD_FAILED = "direct_upload_failed"
    METADATA_COMMIT_FAILED = "metadata_commit_failed"
    EMPTY_TRANSFORMATION = "empty_transformation"
    INVALID_TRANSFORMATION = "invalid_transformation"
    TRANSFORM_REJECTED = "transform_rejected"
    LIST_FETCH_FAILED = "list_fetch_failed"
    DOWNLOAD_URL_FAILED = "download_url_failed"
    DOWNLOAD_FAILED = "download_failed"
    DELETE_FAILED = "delete_failed"
    OPERATION_IN_PROGRESS = "operation_in_progress"
    INVALID_CREDENTIALS = "invalid_credentials"
    LOGIN_FAILED = "login_failed"
    REGISTRATION_FAILED = "registration_failed"
    LOGOUT_FAILED = "logout_failed"
    NOT_AUTHENTICATED = "not_authenticated"


class WorkflowError(Exception):
    """Raised when a client workflow cannot complete."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.payload = payload

    @classmethod
    def from_service_error(cls, kind: ErrorKind, exc: Any) -> "WorkflowError":
        """Wrap an :class:`~imageclient.services.api.ImageServiceError`."""

        return cls(kind, exc.message, status=exc.status, payload=exc.payload)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.message!r})"


class UploadError(WorkflowError):
    pass


class TransformError(WorkflowError):
    pass


class LibraryError(WorkflowError):
    pass


class AuthError(WorkflowError):
    pass
