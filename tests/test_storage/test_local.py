"""
Tests for the local filesystem adapter.
"""

import os
import stat
from urllib.parse import parse_qs, urlparse

import pytest

from filestorage.core.exceptions import (
    ChecksumIsNotAvailable,
    FileNotFoundException,
    InvalidPathException,
    InvalidVisibilityException,
    MimeTypeNotAvailable,
    TemporaryUrlNotSupported,
    UnsupportedCapabilityException,
)
from filestorage.storage import FileStorage, LocalStorageAdapter, Visibility
from filestorage.storage.base import DirectoryEntry, FileEntry

NOW_MS = 1_700_000_000_000


class _Clock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestLocalStorageAdapter:
    """Tests for local filesystem storage."""

    @pytest.fixture
    def clock(self) -> _Clock:
        return _Clock(NOW_MS)

    @pytest.fixture
    def adapter(self, tmp_path, clock) -> LocalStorageAdapter:
        return LocalStorageAdapter(
            root=tmp_path / "root",
            public_url_base="https://files.example.com/public/",
            temporary_url_base="https://files.example.com/temporary",
            signing_key="secret",
            timestamp_resolver=clock,
        )

    @pytest.fixture
    def storage(self, adapter) -> FileStorage:
        return FileStorage(adapter)

    @pytest.mark.asyncio
    async def test_write_and_read(self, storage: FileStorage):
        await storage.write("test/file.txt", b"test file content")

        assert await storage.read_to_bytes("test/file.txt") == b"test file content"
        assert await storage.file_exists("test/file.txt")
        assert await storage.directory_exists("test")

    @pytest.mark.asyncio
    async def test_write_overwrites(self, storage: FileStorage):
        await storage.write("file.txt", "first version, longer")
        await storage.write("file.txt", "second")

        assert await storage.read_to_string("file.txt") == "second"

    @pytest.mark.asyncio
    async def test_write_from_async_stream(self, storage: FileStorage):
        async def chunks():
            yield b"hello "
            yield b"world"

        await storage.write("stream.txt", chunks())

        assert await storage.read_to_string("stream.txt") == "hello world"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, storage: FileStorage):
        with pytest.raises(FileNotFoundException) as exc_info:
            await storage.read("missing.txt")

        assert exc_info.value.path == "missing.txt"

    @pytest.mark.asyncio
    async def test_read_directory_is_not_found(self, storage: FileStorage):
        await storage.create_directory("docs")

        with pytest.raises(FileNotFoundException):
            await storage.read("docs")

    @pytest.mark.asyncio
    async def test_parent_segments_stay_inside_root(self, storage: FileStorage, tmp_path):
        await storage.write("../outside.txt", b"clamped")

        assert not (tmp_path / "outside.txt").exists()
        assert (tmp_path / "root" / "outside.txt").read_bytes() == b"clamped"
        assert await storage.read_to_bytes("outside.txt") == b"clamped"

    @pytest.mark.asyncio
    async def test_parent_segments_stay_inside_prefix(self, tmp_path):
        (tmp_path / "other").mkdir()
        (tmp_path / "other" / "secret.txt").write_bytes(b"secret")
        storage = FileStorage(LocalStorageAdapter(root=tmp_path, prefix="tenant"))

        assert not await storage.file_exists("../other/secret.txt")
        await storage.delete_directory("..")

        assert (tmp_path / "other" / "secret.txt").read_bytes() == b"secret"

    @pytest.mark.asyncio
    async def test_symlink_cannot_escape_root(self, storage: FileStorage, adapter: LocalStorageAdapter, tmp_path):
        (tmp_path / "outside").mkdir()
        (adapter.root / "link").symlink_to(tmp_path / "outside", target_is_directory=True)

        with pytest.raises(InvalidPathException):
            await storage.write("link/escaped.txt", b"nope")

        assert not (tmp_path / "outside" / "escaped.txt").exists()

    @pytest.mark.asyncio
    async def test_prefix_roots_paths(self, tmp_path):
        storage = FileStorage(LocalStorageAdapter(root=tmp_path, prefix="tenant-a"))

        await storage.write("docs/a.txt", b"a")

        assert (tmp_path / "tenant-a" / "docs" / "a.txt").read_bytes() == b"a"
        entries = await storage.list("", deep=True).to_list()
        assert [entry.path for entry in entries] == ["docs", "docs/a.txt"]

    @pytest.mark.asyncio
    async def test_delete_file(self, storage: FileStorage):
        await storage.write("file.txt", b"content")

        await storage.delete_file("file.txt")

        assert not await storage.file_exists("file.txt")

    @pytest.mark.asyncio
    async def test_delete_nonexistent_file(self, storage: FileStorage):
        await storage.delete_file("does/not/exist.txt")

    @pytest.mark.asyncio
    async def test_delete_directory(self, storage: FileStorage):
        await storage.write("dir/a.txt", b"a")
        await storage.write("dir/nested/b.txt", b"b")
        await storage.write("keep.txt", b"keep")

        await storage.delete_directory("dir")

        assert not await storage.directory_exists("dir")
        assert not await storage.file_exists("dir/nested/b.txt")
        assert await storage.file_exists("keep.txt")

    @pytest.mark.asyncio
    async def test_delete_nonexistent_directory(self, storage: FileStorage):
        await storage.delete_directory("ghost")

    @pytest.mark.asyncio
    async def test_delete_root_empties_it(self, storage: FileStorage, adapter: LocalStorageAdapter):
        await storage.write("a.txt", b"a")

        await storage.delete_directory("")

        assert adapter.root.is_dir()
        assert await storage.list("").to_list() == []

    @pytest.mark.asyncio
    async def test_list_shallow_and_deep(self, storage: FileStorage):
        await storage.write("a/b.txt", b"b")
        await storage.write("a/c/d.txt", b"dd")
        await storage.write("e.txt", b"eee")

        shallow = await storage.list("").to_list()
        deep = await storage.list("", deep=True).to_list()

        assert [(e.path, e.type) for e in shallow] == [("a", "directory"), ("e.txt", "file")]
        assert [(e.path, e.type) for e in deep] == [
            ("a", "directory"),
            ("a/b.txt", "file"),
            ("a/c", "directory"),
            ("a/c/d.txt", "file"),
            ("e.txt", "file"),
        ]

    @pytest.mark.asyncio
    async def test_list_subdirectory_excludes_itself(self, storage: FileStorage):
        await storage.write("a/b.txt", b"b")

        entries = await storage.list("a").to_list()

        assert [entry.path for entry in entries] == ["a/b.txt"]

    @pytest.mark.asyncio
    async def test_list_missing_directory_is_empty(self, storage: FileStorage):
        assert await storage.list("ghost").to_list() == []

    @pytest.mark.asyncio
    async def test_listing_is_restartable(self, storage: FileStorage):
        await storage.write("one.txt", b"1")
        listing = storage.list("")

        first = [entry.path async for entry in listing]
        await storage.write("two.txt", b"2")
        second = [entry.path async for entry in listing]

        assert first == ["one.txt"]
        assert second == ["one.txt", "two.txt"]

    @pytest.mark.asyncio
    async def test_stat(self, storage: FileStorage):
        await storage.write("docs/file.txt", b"12345")

        file_entry = await storage.stat("docs/file.txt")
        dir_entry = await storage.stat("docs")

        assert isinstance(file_entry, FileEntry)
        assert file_entry.size == 5
        assert file_entry.last_modified_ms is not None
        assert abs(file_entry.last_modified_ms / 1000 - os.path.getmtime(
            storage.adapter.root / "docs" / "file.txt"
        )) < 1
        assert dir_entry == DirectoryEntry(path="docs")

    @pytest.mark.asyncio
    async def test_stat_missing(self, storage: FileStorage):
        with pytest.raises(FileNotFoundException):
            await storage.stat("missing")

    @pytest.mark.asyncio
    async def test_file_helpers_reject_directories(self, storage: FileStorage):
        await storage.create_directory("docs")

        with pytest.raises(InvalidPathException):
            await storage.file_size("docs")

    @pytest.mark.asyncio
    async def test_visibility_uses_permission_bits(self, storage: FileStorage, adapter: LocalStorageAdapter):
        await storage.write("public.txt", b"x", visibility=Visibility.PUBLIC)
        await storage.write("private.txt", b"x", visibility=Visibility.PRIVATE)

        assert stat.S_IMODE(os.stat(adapter.root / "public.txt").st_mode) == 0o644
        assert stat.S_IMODE(os.stat(adapter.root / "private.txt").st_mode) == 0o600
        assert await storage.visibility("public.txt") == Visibility.PUBLIC
        assert await storage.visibility("private.txt") == Visibility.PRIVATE

    @pytest.mark.asyncio
    async def test_change_visibility(self, storage: FileStorage):
        await storage.write("file.txt", b"x", visibility=Visibility.PRIVATE)

        await storage.change_visibility("file.txt", Visibility.PUBLIC)

        assert await storage.visibility("file.txt") == Visibility.PUBLIC

    @pytest.mark.asyncio
    async def test_directory_visibility(self, storage: FileStorage, adapter: LocalStorageAdapter):
        await storage.create_directory("secret", visibility=Visibility.PRIVATE)

        assert stat.S_IMODE(os.stat(adapter.root / "secret").st_mode) == 0o700
        assert await storage.visibility("secret") == Visibility.PRIVATE

        await storage.change_visibility("secret", Visibility.PUBLIC)

        assert stat.S_IMODE(os.stat(adapter.root / "secret").st_mode) == 0o755

    @pytest.mark.asyncio
    async def test_invalid_visibility(self, storage: FileStorage):
        await storage.write("file.txt", b"x")

        with pytest.raises(InvalidVisibilityException):
            await storage.change_visibility("file.txt", "world-readable")

    @pytest.mark.asyncio
    async def test_checksum(self, storage: FileStorage):
        await storage.write("file.txt", b"hello")

        assert await storage.checksum("file.txt") == "5d41402abc4b2a76b9719d911017c592"
        assert await storage.checksum("file.txt", algo="sha256") == (
            "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("algo", ["crc64", "shake_128"])
    async def test_checksum_unsupported(self, storage: FileStorage, algo: str):
        await storage.write("file.txt", b"hello")

        with pytest.raises(ChecksumIsNotAvailable) as exc_info:
            await storage.checksum("file.txt", algo=algo)

        assert exc_info.value.algo == algo

    @pytest.mark.asyncio
    async def test_mime_type_from_path(self, storage: FileStorage):
        await storage.write("notes.txt", b"words")

        assert await storage.mime_type("notes.txt") == "text/plain"

    @pytest.mark.asyncio
    async def test_mime_type_from_contents(self, storage: FileStorage, png_header: bytes):
        await storage.write("image.bin", png_header)

        assert await storage.mime_type("image.bin", fallback_method="contents") == "image/png"

    @pytest.mark.asyncio
    async def test_mime_type_without_fallback(self, storage: FileStorage):
        await storage.write("notes.txt", b"words")

        with pytest.raises(MimeTypeNotAvailable):
            await storage.mime_type("notes.txt", disallow_fallback=True)

    @pytest.mark.asyncio
    async def test_mime_type_unresolvable(self, storage: FileStorage):
        await storage.write("README", b"words")

        with pytest.raises(MimeTypeNotAvailable):
            await storage.mime_type("README")

    @pytest.mark.asyncio
    async def test_public_url(self, storage: FileStorage):
        url = await storage.public_url("/docs/my file.txt")

        assert url == "https://files.example.com/public/docs/my%20file.txt"

    @pytest.mark.asyncio
    async def test_public_url_not_configured(self, tmp_path):
        storage = FileStorage(LocalStorageAdapter(root=tmp_path))

        with pytest.raises(UnsupportedCapabilityException):
            await storage.public_url("file.txt")

    @pytest.mark.asyncio
    async def test_temporary_url_round_trip(self, storage: FileStorage, adapter: LocalStorageAdapter, clock: _Clock):
        url = await storage.temporary_url("docs/file.txt", NOW_MS + 60_000)

        parsed = urlparse(url)
        token = parse_qs(parsed.query)["token"][0]

        assert parsed.path == "/temporary/docs/file.txt"
        assert adapter.verify_temporary_token("docs/file.txt", token)
        assert not adapter.verify_temporary_token("docs/other.txt", token)
        assert not adapter.verify_temporary_token("docs/file.txt", token + "x")

        clock.now = NOW_MS + 61_000
        assert not adapter.verify_temporary_token("docs/file.txt", token)

    @pytest.mark.asyncio
    async def test_temporary_url_in_the_past(self, storage: FileStorage):
        with pytest.raises(TemporaryUrlNotSupported):
            await storage.temporary_url("file.txt", NOW_MS - 1)

    @pytest.mark.asyncio
    async def test_temporary_url_requires_signing_key(self, tmp_path):
        storage = FileStorage(
            LocalStorageAdapter(root=tmp_path, temporary_url_base="https://files.example.com/temporary")
        )

        with pytest.raises(TemporaryUrlNotSupported):
            await storage.temporary_url("file.txt", NOW_MS + 60_000)
