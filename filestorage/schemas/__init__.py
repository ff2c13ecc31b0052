"""
Pydantic schemas for request/response validation.
"""

from filestorage.schemas.file import (
    ChecksumResponse,
    DirectoryListingResponse,
    StatEntryResponse,
    UrlResponse,
    VisibilityResponse,
)
from filestorage.schemas.error import ErrorResponse

__all__ = [
    # File schemas
    "ChecksumResponse",
    "DirectoryListingResponse",
    "StatEntryResponse",
    "UrlResponse",
    "VisibilityResponse",
    # Error schemas
    "ErrorResponse",
]
