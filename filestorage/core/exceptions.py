"""
Custom exceptions for the file storage layer.

Capability errors (unsupported checksum, unresolved MIME type, invalid
visibility, unsignable URL) are kept apart from transport failures so
callers can branch on them. SDK and OS errors are not wrapped.
"""

from typing import Any


class FileStorageException(Exception):
    """Base exception for all file storage errors."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to response dictionary."""
        response = {
            "error": self.error,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


class ValidationException(FileStorageException):
    """400 - Malformed request (invalid parameters)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            error="validation_failed",
            message=message,
            status_code=400,
            details=details,
        )


class FileNotFoundException(FileStorageException):
    """404 - File or directory not found."""

    def __init__(self, path: str, details: dict[str, Any] | None = None):
        super().__init__(
            error="not_found",
            message=f"File not found: {path}",
            status_code=404,
            details={"path": path, **(details or {})},
        )
        self.path = path


class InvalidPathException(FileStorageException):
    """400 - Path cannot be used for the requested operation."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            error="invalid_path",
            message=f"{reason}: {path}",
            status_code=400,
            details={"path": path},
        )
        self.path = path

    @classmethod
    def path_outside_root(cls, path: str) -> "InvalidPathException":
        return cls(path, "Path escapes storage root")

    @classmethod
    def not_a_file(cls, path: str) -> "InvalidPathException":
        return cls(path, "Path is not a file")


class PayloadTooLargeException(FileStorageException):
    """413 - Upload size exceeds limit."""

    def __init__(self, max_size: int):
        max_size_mb = max_size / (1024 * 1024)
        super().__init__(
            error="payload_too_large",
            message=f"Maximum upload size exceeded ({max_size_mb:.0f}MB limit)",
            status_code=413,
        )


class StorageException(FileStorageException):
    """500 - Storage backend error."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            error="storage_error",
            message=message,
            status_code=500,
            details=details,
        )


class UnsupportedCapabilityException(FileStorageException):
    """501 - The backend cannot provide the requested capability."""

    def __init__(
        self,
        message: str,
        error: str = "unsupported_capability",
        status_code: int = 501,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            error=error,
            message=message,
            status_code=status_code,
            details=details,
        )


class ChecksumIsNotAvailable(UnsupportedCapabilityException):
    """400 - Checksum algorithm not available for this backend."""

    def __init__(self, message: str, algo: str):
        super().__init__(
            message=message,
            error="checksum_not_available",
            status_code=400,
            details={"algo": algo},
        )
        self.algo = algo

    @classmethod
    def checksum_not_supported(cls, algo: str) -> "ChecksumIsNotAvailable":
        return cls(f"Checksum algo {algo} is not supported", algo)

    @classmethod
    def checksum_not_present(cls, algo: str) -> "ChecksumIsNotAvailable":
        return cls(f"Unable to retrieve checksum with algo {algo}", algo)


class MimeTypeNotAvailable(UnsupportedCapabilityException):
    """422 - MIME type could not be determined."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"{reason}: {path}",
            error="mime_type_not_available",
            status_code=422,
            details={"path": path},
        )


class InvalidVisibilityException(UnsupportedCapabilityException):
    """400 - Visibility value not recognised."""

    def __init__(self, visibility: Any):
        super().__init__(
            message=f"Unrecognized visibility provided; {visibility}",
            error="invalid_visibility",
            status_code=400,
            details={"visibility": str(visibility)},
        )


class TemporaryUrlNotSupported(UnsupportedCapabilityException):
    """501 - Backend cannot produce a signed URL for the given request."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error="temporary_url_not_supported",
            status_code=501,
            details=details,
        )


class ForbiddenException(FileStorageException):
    """403 - Access to the file is not allowed."""

    def __init__(self, message: str = "Access denied", details: dict[str, Any] | None = None):
        super().__init__(
            error="forbidden",
            message=message,
            status_code=403,
            details=details,
        )
