"""Core exceptions for the file storage layer."""

from filestorage.core.exceptions import (
    ChecksumIsNotAvailable,
    FileNotFoundException,
    FileStorageException,
    ForbiddenException,
    InvalidPathException,
    InvalidVisibilityException,
    MimeTypeNotAvailable,
    PayloadTooLargeException,
    StorageException,
    TemporaryUrlNotSupported,
    UnsupportedCapabilityException,
    ValidationException,
)

__all__ = [
    "ChecksumIsNotAvailable",
    "FileNotFoundException",
    "FileStorageException",
    "ForbiddenException",
    "InvalidPathException",
    "InvalidVisibilityException",
    "MimeTypeNotAvailable",
    "PayloadTooLargeException",
    "StorageException",
    "TemporaryUrlNotSupported",
    "UnsupportedCapabilityException",
    "ValidationException",
]
