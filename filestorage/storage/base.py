"""
Abstract storage adapter interface.
Defines the contract and value types shared by all storage implementations.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, BinaryIO, Literal, Union

from filestorage.core.exceptions import InvalidVisibilityException

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB chunks


class Visibility(str, Enum):
    """Backend-neutral permission state of a file or directory."""

    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def parse(cls, value: Any) -> "Visibility":
        """Coerce a raw value, rejecting anything that is not a known visibility."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidVisibilityException(value) from None


@dataclass(frozen=True)
class FileEntry:
    """Stat result for a file."""

    path: str
    size: int
    last_modified_ms: int | None = None
    mime_type: str | None = None
    type: Literal["file"] = "file"

    @property
    def is_file(self) -> bool:
        return True

    @property
    def is_directory(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryEntry:
    """Stat result for a directory."""

    path: str
    type: Literal["directory"] = "directory"

    @property
    def is_file(self) -> bool:
        return False

    @property
    def is_directory(self) -> bool:
        return True


StatEntry = Union[FileEntry, DirectoryEntry]


@dataclass(frozen=True)
class WriteOptions:
    visibility: Visibility | None = None
    mime_type: str | None = None
    size: int | None = None
    # Backend-specific passthrough (e.g. S3 put_object arguments)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreateDirectoryOptions:
    directory_visibility: Visibility | None = None


@dataclass(frozen=True)
class MimeTypeOptions:
    disallow_fallback: bool = False
    fallback_method: Literal["path", "contents"] = "path"


@dataclass(frozen=True)
class ChecksumOptions:
    algo: str | None = None


@dataclass(frozen=True)
class PublicUrlOptions:
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TemporaryUrlOptions:
    # Absolute expiry: epoch milliseconds or a datetime
    expires_at: int | float | datetime
    extra: dict[str, Any] = field(default_factory=dict)


def normalize_expiry_to_milliseconds(expires_at: int | float | datetime) -> int:
    """Convert an absolute expiry to epoch milliseconds."""
    if isinstance(expires_at, datetime):
        return int(expires_at.timestamp() * 1000)
    return int(expires_at)


FileContents = Union[bytes, str, BinaryIO, AsyncIterable[bytes]]


async def to_async_chunks(
    contents: FileContents,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Normalise any supported content type into an async byte stream."""
    if isinstance(contents, str):
        contents = contents.encode("utf-8")

    if isinstance(contents, (bytes, bytearray, memoryview)):
        contents = io.BytesIO(bytes(contents))

    if hasattr(contents, "read"):
        while chunk := contents.read(chunk_size):
            yield chunk
        return

    async for chunk in contents:
        yield chunk


async def close_stream(stream: AsyncIterator[bytes]) -> None:
    """Release a stream that will not be consumed any further."""
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class StorageAdapter(ABC):
    """
    Abstract base class for storage adapters.

    All storage implementations (local filesystem, S3) must implement
    these methods with the same observable behaviour. Paths are logical,
    "/" separated and relative to the adapter's configured root.
    """

    @abstractmethod
    async def write(
        self,
        path: str,
        contents: AsyncIterator[bytes],
        options: WriteOptions,
    ) -> None:
        """
        Store content at a path, replacing any existing file.

        Args:
            path: Destination path
            contents: Byte stream to store
            options: Visibility, MIME type, declared size and passthrough options

        Raises:
            Backend errors when the target cannot be written
        """

    @abstractmethod
    async def read(self, path: str) -> AsyncIterator[bytes]:
        """
        Open a file for streaming.

        Returns:
            File content in chunks

        Raises:
            FileNotFoundException: If the file does not exist
        """

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file. Succeeds when the file does not exist."""

    @abstractmethod
    async def delete_directory(self, path: str) -> None:
        """Delete a directory and everything beneath it. Succeeds when absent."""

    @abstractmethod
    async def create_directory(self, path: str, options: CreateDirectoryOptions) -> None:
        """Create an addressable directory."""

    @abstractmethod
    def list(self, path: str, *, deep: bool) -> AsyncIterator[StatEntry]:
        """
        List entries under a directory.

        Args:
            path: Directory to list
            deep: Include all descendants instead of immediate children

        Returns:
            A fresh lazy iterator; the directory itself is not included
        """

    @abstractmethod
    async def stat(self, path: str) -> StatEntry:
        """
        Retrieve metadata for a path.

        Raises:
            FileNotFoundException: If the path does not exist
        """

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        """Check if a file exists."""

    @abstractmethod
    async def directory_exists(self, path: str) -> bool:
        """Check if a directory exists."""

    @abstractmethod
    async def visibility(self, path: str) -> Visibility:
        """Query the visibility of a path."""

    @abstractmethod
    async def change_visibility(self, path: str, visibility: Visibility) -> None:
        """
        Set the visibility of a path.

        Raises:
            InvalidVisibilityException: If the value is not a known visibility
        """

    @abstractmethod
    async def checksum(self, path: str, options: ChecksumOptions) -> str:
        """
        Compute or retrieve a checksum for a file.

        Raises:
            ChecksumIsNotAvailable: If the algorithm cannot be provided
        """

    @abstractmethod
    async def mime_type(self, path: str, options: MimeTypeOptions) -> str:
        """
        Determine the MIME type of a file.

        Raises:
            MimeTypeNotAvailable: If no MIME type could be determined
        """

    @abstractmethod
    async def public_url(self, path: str, options: PublicUrlOptions) -> str:
        """Get a public URL for a file."""

    @abstractmethod
    async def temporary_url(self, path: str, options: TemporaryUrlOptions) -> str:
        """
        Get a signed URL that stops working at ``options.expires_at``.

        Raises:
            TemporaryUrlNotSupported: If the backend cannot sign the URL
        """
