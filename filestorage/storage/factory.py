"""
Storage adapter factory.
Provides configuration-driven adapter selection.
"""

import logging
from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from filestorage.config import Settings, get_settings
from filestorage.core.exceptions import StorageException
from filestorage.storage.base import StorageAdapter, Visibility
from filestorage.storage.file_storage import FileStorage, FileStorageOptions
from filestorage.storage.local import LocalStorageAdapter
from filestorage.storage.s3 import S3StorageAdapter

logger = logging.getLogger(__name__)


def create_s3_client(settings: Settings) -> Any:
    """Create a boto3 S3 client from settings."""
    config = Config(
        signature_version="s3v4",
        retries={"max_attempts": 3, "mode": "standard"},
        s3={"addressing_style": "path" if settings.S3_FORCE_PATH_STYLE else "auto"},
    )

    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
        config=config,
    )


def ensure_bucket_exists(client: Any, bucket: str, region: str | None) -> None:
    """Create bucket if it doesn't exist."""
    try:
        client.head_bucket(Bucket=bucket)
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code")
        if error_code != "404":
            raise
        try:
            if region and region != "us-east-1":
                client.create_bucket(
                    Bucket=bucket,
                    CreateBucketConfiguration={"LocationConstraint": region},
                )
            else:
                client.create_bucket(Bucket=bucket)
        except ClientError as create_error:
            raise StorageException(
                message=f"Failed to create bucket: {str(create_error)}",
                details={"bucket": bucket},
            )
        logger.info(f"Created bucket {bucket}")


def create_storage_adapter(settings: Settings) -> StorageAdapter:
    """
    Build the adapter selected by STORAGE_BACKEND.

    Raises:
        ValueError: If unknown storage backend is configured
    """
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "local":
        return LocalStorageAdapter(
            root=settings.LOCAL_STORAGE_PATH,
            prefix=settings.STORAGE_PREFIX,
            public_url_base=settings.LOCAL_PUBLIC_URL_BASE,
            temporary_url_base=settings.LOCAL_TEMPORARY_URL_BASE,
            signing_key=settings.LOCAL_URL_SIGNING_KEY,
        )
    elif backend == "s3":
        client = create_s3_client(settings)
        if settings.S3_CREATE_BUCKET:
            ensure_bucket_exists(client, settings.S3_BUCKET_NAME, settings.S3_REGION)

        public_url_options: dict[str, Any] = {"force_path_style": settings.S3_FORCE_PATH_STYLE}
        if settings.S3_PUBLIC_URL_BASE:
            public_url_options["base_url"] = settings.S3_PUBLIC_URL_BASE

        return S3StorageAdapter(
            client,
            bucket=settings.S3_BUCKET_NAME,
            prefix=settings.STORAGE_PREFIX,
            region=settings.S3_REGION,
            public_url_options=public_url_options,
            default_checksum_algo=settings.S3_DEFAULT_CHECKSUM_ALGO,
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


def create_file_storage(settings: Settings) -> FileStorage:
    """Build the facade with the configured adapter and defaults."""
    options = FileStorageOptions(
        visibility=Visibility(settings.DEFAULT_VISIBILITY) if settings.DEFAULT_VISIBILITY else None,
        directory_visibility=(
            Visibility(settings.DEFAULT_DIRECTORY_VISIBILITY)
            if settings.DEFAULT_DIRECTORY_VISIBILITY
            else None
        ),
    )
    logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")
    return FileStorage(create_storage_adapter(settings), options)


@lru_cache
def get_storage_backend() -> FileStorage:
    """
    Get the configured file storage.

    Uses LRU cache to ensure only one instance is created.
    """
    return create_file_storage(get_settings())


def get_storage() -> FileStorage:
    """
    Dependency function for FastAPI.

    Usage:
        @app.get("/files")
        async def list_files(storage: FileStorage = Depends(get_storage)):
            ...
    """
    return get_storage_backend()
