"""
Pydantic schemas for file and directory responses.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from filestorage.storage.base import FileEntry, StatEntry, Visibility


class StatEntryResponse(BaseModel):
    """A file or directory entry."""

    type: Literal["file", "directory"]
    path: str
    is_file: bool = Field(alias="isFile")
    is_directory: bool = Field(alias="isDirectory")
    size: int | None = None
    last_modified_ms: int | None = Field(default=None, alias="lastModifiedMs")
    mime_type: str | None = Field(default=None, alias="mimeType")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entry(cls, entry: StatEntry) -> "StatEntryResponse":
        if isinstance(entry, FileEntry):
            return cls(
                type="file",
                path=entry.path,
                is_file=True,
                is_directory=False,
                size=entry.size,
                last_modified_ms=entry.last_modified_ms,
                mime_type=entry.mime_type,
            )
        return cls(type="directory", path=entry.path, is_file=False, is_directory=True)


class DirectoryListingResponse(BaseModel):
    """Entries found under a directory."""

    path: str
    deep: bool
    items: list[StatEntryResponse]
    total: int


class VisibilityResponse(BaseModel):
    path: str
    visibility: Visibility


class ChecksumResponse(BaseModel):
    path: str
    algo: str | None = None
    checksum: str


class UrlResponse(BaseModel):
    path: str
    url: str
    expires_at: int | None = Field(default=None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)
