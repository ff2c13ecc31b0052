"""
Pytest configuration and fixtures for file storage tests.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from filestorage.config import Settings, get_settings
from filestorage.main import app
from filestorage.storage import FileStorage, LocalStorageAdapter, S3StorageAdapter, get_storage
from tests.fakes import FakeS3Client

TEST_SIGNING_KEY = "test-signing-key"
TEST_BUCKET = "test-bucket"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Get test settings."""
    return Settings(
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_PATH=str(tmp_path / "storage"),
        LOCAL_PUBLIC_URL_BASE="http://test/api/v1/public",
        LOCAL_TEMPORARY_URL_BASE="http://test/api/v1/temporary",
        LOCAL_URL_SIGNING_KEY=TEST_SIGNING_KEY,
        MAX_UPLOAD_SIZE=1024,
    )


@pytest.fixture
def local_adapter(test_settings: Settings) -> LocalStorageAdapter:
    """Create a local adapter rooted in a temporary directory."""
    return LocalStorageAdapter(
        root=test_settings.LOCAL_STORAGE_PATH,
        public_url_base=test_settings.LOCAL_PUBLIC_URL_BASE,
        temporary_url_base=test_settings.LOCAL_TEMPORARY_URL_BASE,
        signing_key=test_settings.LOCAL_URL_SIGNING_KEY,
    )


@pytest.fixture
def test_storage(local_adapter: LocalStorageAdapter) -> FileStorage:
    """Create a file storage facade over the local adapter."""
    return FileStorage(local_adapter)


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_adapter(s3_client: FakeS3Client) -> S3StorageAdapter:
    """Create an S3 adapter backed by the in-memory client."""
    return S3StorageAdapter(s3_client, bucket=TEST_BUCKET, region="eu-west-1")


@pytest_asyncio.fixture(scope="function")
async def client(test_storage, test_settings) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    def override_get_storage():
        return test_storage

    def override_get_settings():
        return test_settings

    app.dependency_overrides[get_storage] = override_get_storage
    app.dependency_overrides[get_settings] = override_get_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_file_content() -> bytes:
    """Sample file content for testing uploads."""
    return b"plain text content for testing"


@pytest.fixture
def png_header() -> bytes:
    """The leading bytes of a PNG file, enough for signature sniffing."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 64
