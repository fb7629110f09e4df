"""Exceptions for the file store and upload flow."""


class FilehostError(Exception):
    """Base error. Carries the HTTP status the route layer should answer with."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RecordNotFoundError(FilehostError):
    """Raised when a file id is not in the index, or its blob is gone."""

    status_code = 404


class InvalidCredentialError(FilehostError):
    """Raised when the upload key does not match the configured secret."""

    status_code = 401


class UploadValidationError(FilehostError):
    """Raised for a missing file part or an empty upload."""

    status_code = 400


class UploadTooLargeError(UploadValidationError):
    status_code = 413

    def __init__(self, limit_bytes: int):
        self.limit_bytes = limit_bytes
        super().__init__(f"File exceeds upload limit of {limit_bytes} bytes")


class StorageIOError(FilehostError):
    """Raised when writing or moving a blob on the upload path fails."""

    status_code = 500
