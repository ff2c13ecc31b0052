"""
Storage abstraction layer.
Supports multiple backends behind one contract: local filesystem and S3/MinIO.
"""

from filestorage.storage.base import (
    ChecksumOptions,
    CreateDirectoryOptions,
    DirectoryEntry,
    FileContents,
    FileEntry,
    MimeTypeOptions,
    PublicUrlOptions,
    StatEntry,
    StorageAdapter,
    TemporaryUrlOptions,
    Visibility,
    WriteOptions,
    normalize_expiry_to_milliseconds,
)
from filestorage.storage.file_storage import DirectoryListing, FileStorage, FileStorageOptions
from filestorage.storage.local import LocalStorageAdapter
from filestorage.storage.mime import SNIFF_WINDOW_SIZE, resolve_mime_type
from filestorage.storage.prefixer import PathPrefixer, normalize_path
from filestorage.storage.s3 import (
    AwsPublicUrlOptions,
    DefaultAwsPublicUrlGenerator,
    S3StorageAdapter,
)
from filestorage.storage.factory import get_storage_backend, get_storage

__all__ = [
    "AwsPublicUrlOptions",
    "ChecksumOptions",
    "CreateDirectoryOptions",
    "DefaultAwsPublicUrlGenerator",
    "DirectoryEntry",
    "DirectoryListing",
    "FileContents",
    "FileEntry",
    "FileStorage",
    "FileStorageOptions",
    "LocalStorageAdapter",
    "MimeTypeOptions",
    "PathPrefixer",
    "PublicUrlOptions",
    "S3StorageAdapter",
    "SNIFF_WINDOW_SIZE",
    "StatEntry",
    "StorageAdapter",
    "TemporaryUrlOptions",
    "Visibility",
    "WriteOptions",
    "get_storage",
    "get_storage_backend",
    "normalize_expiry_to_milliseconds",
    "normalize_path",
    "resolve_mime_type",
]
