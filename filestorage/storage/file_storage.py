"""
FileStorage facade.

The single entry point applications use. Every call is delegated to the
configured adapter after filling in option defaults; adapter errors pass
through unchanged.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Literal

from filestorage.core.exceptions import InvalidPathException
from filestorage.storage.base import (
    ChecksumOptions,
    CreateDirectoryOptions,
    FileContents,
    FileEntry,
    MimeTypeOptions,
    PublicUrlOptions,
    StatEntry,
    StorageAdapter,
    TemporaryUrlOptions,
    Visibility,
    WriteOptions,
    to_async_chunks,
)


@dataclass(frozen=True)
class FileStorageOptions:
    """Defaults applied when a call leaves an option unset."""

    visibility: Visibility | None = None
    directory_visibility: Visibility | None = None
    checksum_algo: str | None = None
    mime_type_fallback_method: Literal["path", "contents"] = "path"
    public_url_extra: dict[str, Any] = field(default_factory=dict)
    temporary_url_extra: dict[str, Any] = field(default_factory=dict)


class DirectoryListing:
    """
    Lazy, restartable directory listing.

    Each ``async for`` starts a new listing on the adapter; nothing is
    fetched until iteration begins.
    """

    def __init__(self, factory: Callable[[], AsyncIterator[StatEntry]], path: str, deep: bool):
        self._factory = factory
        self.path = path
        self.deep = deep

    def __aiter__(self) -> AsyncIterator[StatEntry]:
        return self._factory()

    async def to_list(self, sort: bool = True) -> list[StatEntry]:
        """Collect the whole listing, sorted by path unless ``sort`` is False."""
        entries = [entry async for entry in self]
        if sort:
            entries.sort(key=lambda entry: entry.path)
        return entries


class FileStorage:
    """
    Backend-agnostic file operations.

    Usage:
        storage = FileStorage(LocalStorageAdapter(root="/data"))
        await storage.write("reports/q1.txt", "hello", visibility=Visibility.PUBLIC)
        text = await storage.read_to_string("reports/q1.txt")
    """

    def __init__(self, adapter: StorageAdapter, options: FileStorageOptions | None = None):
        self.adapter = adapter
        self.options = options or FileStorageOptions()

    async def write(
        self,
        path: str,
        contents: FileContents,
        *,
        visibility: Visibility | None = None,
        mime_type: str | None = None,
        size: int | None = None,
        **extra: Any,
    ) -> None:
        """
        Write a file, replacing any existing one.

        Args:
            path: Destination path
            contents: bytes, str (UTF-8), a binary file object or an async byte stream
            visibility: Falls back to the configured default visibility
            mime_type: Sniffed from the content when not given
            size: Declared content length, for backends that want it
            **extra: Backend-specific passthrough options
        """
        if size is None and isinstance(contents, (bytes, str)):
            size = len(contents.encode("utf-8") if isinstance(contents, str) else contents)

        await self.adapter.write(
            path,
            to_async_chunks(contents),
            WriteOptions(
                visibility=visibility or self.options.visibility,
                mime_type=mime_type,
                size=size,
                extra=extra,
            ),
        )

    async def read(self, path: str) -> AsyncIterator[bytes]:
        """Open a file as an async byte stream."""
        return await self.adapter.read(path)

    async def read_to_bytes(self, path: str) -> bytes:
        chunks = [chunk async for chunk in await self.read(path)]
        return b"".join(chunks)

    async def read_to_string(self, path: str, encoding: str = "utf-8") -> str:
        return (await self.read_to_bytes(path)).decode(encoding)

    async def delete_file(self, path: str) -> None:
        await self.adapter.delete_file(path)

    async def delete_directory(self, path: str) -> None:
        await self.adapter.delete_directory(path)

    async def create_directory(self, path: str, *, visibility: Visibility | None = None) -> None:
        await self.adapter.create_directory(
            path,
            CreateDirectoryOptions(
                directory_visibility=visibility or self.options.directory_visibility,
            ),
        )

    def list(self, path: str = "", *, deep: bool = False) -> DirectoryListing:
        return DirectoryListing(lambda: self.adapter.list(path, deep=deep), path, deep)

    async def stat(self, path: str) -> StatEntry:
        return await self.adapter.stat(path)

    async def stat_file(self, path: str) -> FileEntry:
        """Stat a path that must be a file."""
        entry = await self.stat(path)
        if not isinstance(entry, FileEntry):
            raise InvalidPathException.not_a_file(path)
        return entry

    async def file_size(self, path: str) -> int:
        return (await self.stat_file(path)).size

    async def last_modified(self, path: str) -> int | None:
        """Last modification time in epoch milliseconds, if the backend reports it."""
        return (await self.stat_file(path)).last_modified_ms

    async def file_exists(self, path: str) -> bool:
        return await self.adapter.file_exists(path)

    async def directory_exists(self, path: str) -> bool:
        return await self.adapter.directory_exists(path)

    async def visibility(self, path: str) -> Visibility:
        return await self.adapter.visibility(path)

    async def change_visibility(self, path: str, visibility: Visibility) -> None:
        await self.adapter.change_visibility(path, visibility)

    async def checksum(self, path: str, *, algo: str | None = None) -> str:
        return await self.adapter.checksum(
            path,
            ChecksumOptions(algo=algo or self.options.checksum_algo),
        )

    async def mime_type(
        self,
        path: str,
        *,
        disallow_fallback: bool = False,
        fallback_method: Literal["path", "contents"] | None = None,
    ) -> str:
        return await self.adapter.mime_type(
            path,
            MimeTypeOptions(
                disallow_fallback=disallow_fallback,
                fallback_method=fallback_method or self.options.mime_type_fallback_method,
            ),
        )

    async def public_url(self, path: str, **extra: Any) -> str:
        return await self.adapter.public_url(
            path,
            PublicUrlOptions(extra={**self.options.public_url_extra, **extra}),
        )

    async def temporary_url(
        self,
        path: str,
        expires_at: int | float | datetime,
        **extra: Any,
    ) -> str:
        """
        Get a signed URL.

        Args:
            path: File path
            expires_at: Absolute expiry, epoch milliseconds or datetime
        """
        return await self.adapter.temporary_url(
            path,
            TemporaryUrlOptions(
                expires_at=expires_at,
                extra={**self.options.temporary_url_extra, **extra},
            ),
        )
