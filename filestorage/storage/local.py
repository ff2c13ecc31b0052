"""
Local filesystem storage adapter.
Stores files on the local filesystem for development and simple deployments.

Visibility maps to POSIX permission bits. Public URLs point at the HTTP
app's public endpoint; temporary URLs carry an HS256 token that the HTTP
app verifies through this adapter.
"""

import asyncio
import hashlib
import logging
import os
import shutil
import stat as stat_module
import time
from pathlib import Path
from typing import AsyncIterator, Callable
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os
from jose import JWTError, jwt

from filestorage.core.exceptions import (
    ChecksumIsNotAvailable,
    FileNotFoundException,
    InvalidPathException,
    MimeTypeNotAvailable,
    TemporaryUrlNotSupported,
    UnsupportedCapabilityException,
)
from filestorage.storage.base import (
    DEFAULT_CHUNK_SIZE,
    ChecksumOptions,
    CreateDirectoryOptions,
    DirectoryEntry,
    FileEntry,
    MimeTypeOptions,
    PublicUrlOptions,
    StatEntry,
    StorageAdapter,
    TemporaryUrlOptions,
    Visibility,
    WriteOptions,
    close_stream,
    normalize_expiry_to_milliseconds,
)
from filestorage.storage.mime import mime_type_from_path, resolve_mime_type
from filestorage.storage.prefixer import PathPrefixer, normalize_path

logger = logging.getLogger(__name__)

FILE_PERMISSIONS = {Visibility.PUBLIC: 0o644, Visibility.PRIVATE: 0o600}
DIRECTORY_PERMISSIONS = {Visibility.PUBLIC: 0o755, Visibility.PRIVATE: 0o700}

TOKEN_ALGORITHM = "HS256"


def _now_ms() -> int:
    return int(time.time() * 1000)


class LocalStorageAdapter(StorageAdapter):
    """
    Local filesystem storage implementation.

    Files are stored under ``root`` (plus an optional logical prefix).
    Suitable for development and small-scale deployments.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        prefix: str = "",
        public_url_base: str | None = None,
        temporary_url_base: str | None = None,
        signing_key: str | None = None,
        timestamp_resolver: Callable[[], int] | None = None,
    ):
        """
        Initialize local storage adapter.

        Args:
            root: Base directory for storage, created if missing
            prefix: Logical prefix all paths are rooted under
            public_url_base: Base URL public files are served from
            temporary_url_base: Base URL signed downloads are served from
            signing_key: Secret for temporary URL tokens; None disables them
            timestamp_resolver: Clock returning epoch milliseconds
        """
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.prefixer = PathPrefixer(prefix)
        self.public_url_base = public_url_base
        self.temporary_url_base = temporary_url_base
        self.signing_key = signing_key
        self.timestamp_resolver = timestamp_resolver or _now_ms

    def _full_path(self, path: str) -> Path:
        """Get full filesystem path for a storage path."""
        relative = self.prefixer.prefix_file_path(path)
        full_path = (self.root / relative).resolve()

        # Symlinks can still resolve outside root
        if not full_path.is_relative_to(self.root):
            raise InvalidPathException.path_outside_root(path)

        return full_path

    def _logical_path(self, full_path: Path) -> str:
        return self.prefixer.strip_file_path(full_path.relative_to(self.root).as_posix())

    async def write(
        self,
        path: str,
        contents: AsyncIterator[bytes],
        options: WriteOptions,
    ) -> None:
        full_path = self._full_path(path)
        mode = None
        if options.visibility is not None:
            mode = FILE_PERMISSIONS[Visibility.parse(options.visibility)]

        await aiofiles.os.makedirs(full_path.parent, exist_ok=True)

        async with aiofiles.open(full_path, "wb") as f:
            async for chunk in contents:
                await f.write(chunk)

        if mode is not None:
            await asyncio.to_thread(os.chmod, full_path, mode)

        logger.debug(f"Wrote {full_path}")

    async def read(self, path: str) -> AsyncIterator[bytes]:
        full_path = self._full_path(path)

        if not await aiofiles.os.path.isfile(full_path):
            raise FileNotFoundException(path)

        return self._stream_file(full_path)

    async def _stream_file(self, full_path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(full_path, "rb") as f:
            while chunk := await f.read(DEFAULT_CHUNK_SIZE):
                yield chunk

    async def delete_file(self, path: str) -> None:
        try:
            await aiofiles.os.remove(self._full_path(path))
        except FileNotFoundError:
            pass

    async def delete_directory(self, path: str) -> None:
        full_path = self._full_path(path)

        try:
            await asyncio.to_thread(shutil.rmtree, full_path)
        except FileNotFoundError:
            return

        # Deleting the root directory empties it rather than removing it
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        logger.info(f"Deleted directory {full_path}")

    async def create_directory(self, path: str, options: CreateDirectoryOptions) -> None:
        full_path = self._full_path(path)
        await aiofiles.os.makedirs(full_path, exist_ok=True)

        if options.directory_visibility is not None:
            mode = DIRECTORY_PERMISSIONS[Visibility.parse(options.directory_visibility)]
            await asyncio.to_thread(os.chmod, full_path, mode)

    async def list(self, path: str, *, deep: bool) -> AsyncIterator[StatEntry]:
        directory = self._full_path(path)

        if not await aiofiles.os.path.isdir(directory):
            return

        async for entry in self._walk(directory, deep):
            yield entry

    async def _walk(self, directory: Path, deep: bool) -> AsyncIterator[StatEntry]:
        for name in sorted(await aiofiles.os.listdir(directory)):
            full_path = directory / name
            try:
                st = await aiofiles.os.stat(full_path)
            except FileNotFoundError:
                # Removed while listing
                continue

            if stat_module.S_ISDIR(st.st_mode):
                yield DirectoryEntry(path=self._logical_path(full_path))
                if deep:
                    async for entry in self._walk(full_path, deep):
                        yield entry
            else:
                yield FileEntry(
                    path=self._logical_path(full_path),
                    size=st.st_size,
                    last_modified_ms=int(st.st_mtime * 1000),
                )

    async def _stat(self, path: str) -> os.stat_result:
        try:
            return await aiofiles.os.stat(self._full_path(path))
        except FileNotFoundError:
            raise FileNotFoundException(path) from None

    async def stat(self, path: str) -> StatEntry:
        st = await self._stat(path)

        if stat_module.S_ISDIR(st.st_mode):
            return DirectoryEntry(path=normalize_path(path))

        return FileEntry(
            path=normalize_path(path),
            size=st.st_size,
            last_modified_ms=int(st.st_mtime * 1000),
        )

    async def file_exists(self, path: str) -> bool:
        return await aiofiles.os.path.isfile(self._full_path(path))

    async def directory_exists(self, path: str) -> bool:
        return await aiofiles.os.path.isdir(self._full_path(path))

    async def visibility(self, path: str) -> Visibility:
        st = await self._stat(path)
        return Visibility.PUBLIC if st.st_mode & stat_module.S_IROTH else Visibility.PRIVATE

    async def change_visibility(self, path: str, visibility: Visibility) -> None:
        visibility = Visibility.parse(visibility)
        st = await self._stat(path)

        if stat_module.S_ISDIR(st.st_mode):
            mode = DIRECTORY_PERMISSIONS[visibility]
        else:
            mode = FILE_PERMISSIONS[visibility]

        await asyncio.to_thread(os.chmod, self._full_path(path), mode)

    async def checksum(self, path: str, options: ChecksumOptions) -> str:
        """Compute a hex digest of the file content with hashlib (md5 by default)."""
        algo = (options.algo or "md5").lower()

        if algo not in hashlib.algorithms_available or algo.startswith("shake"):
            raise ChecksumIsNotAvailable.checksum_not_supported(algo)

        hasher = hashlib.new(algo)
        async for chunk in await self.read(path):
            hasher.update(chunk)

        return hasher.hexdigest()

    async def mime_type(self, path: str, options: MimeTypeOptions) -> str:
        entry = await self.stat(path)

        if not entry.is_file:
            raise InvalidPathException.not_a_file(path)

        if options.disallow_fallback:
            raise MimeTypeNotAvailable(path, "Mime-type metadata is not stored for local files")

        if options.fallback_method == "path":
            mime_type = mime_type_from_path(path)
        else:
            stream = await self.read(path)
            mime_type, replay = await resolve_mime_type(path, stream)
            await close_stream(replay)
            await close_stream(stream)

        if mime_type is None:
            raise MimeTypeNotAvailable(path, "Unable to resolve mime-type")

        return mime_type

    async def public_url(self, path: str, options: PublicUrlOptions) -> str:
        base_url = options.extra.get("base_url", self.public_url_base)

        if not base_url:
            raise UnsupportedCapabilityException(
                message="Public URLs are not configured for local storage",
                details={"path": path},
            )

        return f"{base_url.rstrip('/')}/{quote(normalize_path(path))}"

    async def temporary_url(self, path: str, options: TemporaryUrlOptions) -> str:
        if not self.signing_key or not self.temporary_url_base:
            raise TemporaryUrlNotSupported(
                message="Temporary URLs require a signing key for local storage",
                details={"path": path},
            )

        expiry = normalize_expiry_to_milliseconds(options.expires_at)
        if expiry <= self.timestamp_resolver():
            raise TemporaryUrlNotSupported(
                message="Temporary URL expiry must be in the future",
                details={"path": path, "expires_at": expiry},
            )

        logical_path = normalize_path(path)
        token = jwt.encode(
            {"path": logical_path, "exp": expiry // 1000},
            self.signing_key,
            algorithm=TOKEN_ALGORITHM,
        )

        return (
            f"{self.temporary_url_base.rstrip('/')}/{quote(logical_path)}"
            f"?{urlencode({'token': token})}"
        )

    def verify_temporary_token(self, path: str, token: str) -> bool:
        """
        Check a token issued by ``temporary_url`` for the given path.

        Expiry is checked against this adapter's clock, not the token library's.
        """
        if not self.signing_key:
            return False

        try:
            claims = jwt.decode(
                token,
                self.signing_key,
                algorithms=[TOKEN_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            return False

        if claims.get("path") != normalize_path(path):
            return False

        expires = claims.get("exp")
        if not isinstance(expires, (int, float)):
            return False

        return expires * 1000 > self.timestamp_resolver()
