"""
S3-compatible storage adapter.
Supports AWS S3 and S3-compatible services like MinIO.

S3 has a flat key namespace. Directories are emulated: a directory is either
implied by a common key prefix or marked explicitly by an empty object whose
key ends in "/". Visibility maps to canned ACLs.
"""

import asyncio
import logging
import math
import re
import tempfile
import time
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Literal, Protocol
from urllib.parse import quote

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import ClientError

from filestorage.core.exceptions import (
    ChecksumIsNotAvailable,
    FileNotFoundException,
    InvalidPathException,
    InvalidVisibilityException,
    MimeTypeNotAvailable,
    StorageException,
    TemporaryUrlNotSupported,
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

CHECKSUM_ALGOS = ("SHA1", "SHA256", "CRC32", "CRC32C", "ETAG")
ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
DEFAULT_PUBLIC_URL_BASE = "https://{subdomain}.amazonaws.com/{uri}"

MAX_PAGE_SIZE = 1000
DELETE_BATCH_SIZE = 1000  # DeleteObjects request limit
MAX_PRESIGN_SECONDS = 7 * 24 * 60 * 60  # SigV4 limit
SPOOL_MAX_SIZE = 8 * 1024 * 1024

TimestampResolver = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def _is_not_found(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in ("404", "NoSuchKey", "NotFound") or status == 404


@dataclass(frozen=True)
class AwsPublicUrlOptions:
    bucket: str
    region: str | None = None
    force_path_style: bool = False
    # Template with {subdomain} and {uri} placeholders
    base_url: str | None = None


class AwsPublicUrlGenerator(Protocol):
    def public_url(self, path: str, options: AwsPublicUrlOptions) -> str:
        ...


class DefaultAwsPublicUrlGenerator:
    """Builds virtual-host or path-style URLs from a base URL template."""

    def public_url(self, path: str, options: AwsPublicUrlOptions) -> str:
        base_url = options.base_url or DEFAULT_PUBLIC_URL_BASE

        if options.force_path_style:
            subdomain = "s3" if options.region is None else f"s3-{options.region}"
            uri = f"{options.bucket}/{quote(path)}"
        else:
            subdomain = f"{options.bucket}.s3"
            uri = quote(path)

        return base_url.replace("{subdomain}", subdomain).replace("{uri}", uri)


async def _empty() -> AsyncIterator[bytes]:
    return
    yield


class S3StorageAdapter(StorageAdapter):
    """
    S3-compatible object storage implementation.

    The client is any boto3 S3 client. SDK calls are blocking, so each one
    runs in a worker thread; that is what lets batched deletes overlap.
    SDK errors other than "not found" propagate unchanged.
    """

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        public_url_options: dict[str, Any] | None = None,
        put_object_options: dict[str, Any] | None = None,
        transfer_config: TransferConfig | None = None,
        default_checksum_algo: str | None = None,
        public_url_generator: AwsPublicUrlGenerator | None = None,
        timestamp_resolver: TimestampResolver | None = None,
    ):
        """
        Initialize S3 storage adapter.

        Args:
            client: boto3 S3 client
            bucket: S3 bucket name
            prefix: Key prefix all paths are rooted under
            region: AWS region, used for path-style public URLs
            public_url_options: Overrides for public URL generation
            put_object_options: Default upload arguments (e.g. StorageClass)
            transfer_config: Multipart configuration for managed uploads
            default_checksum_algo: Algorithm used when a call names none
            public_url_generator: Strategy for building public URLs
            timestamp_resolver: Clock returning epoch milliseconds
        """
        self.client = client
        self.bucket = bucket
        self.region = region
        self.prefixer = PathPrefixer(prefix)
        self.public_url_options = dict(public_url_options or {})
        self.put_object_options = dict(put_object_options or {})
        self.transfer_config = transfer_config
        self.default_checksum_algo = default_checksum_algo
        self.public_url_generator = public_url_generator or DefaultAwsPublicUrlGenerator()
        self.timestamp_resolver = timestamp_resolver or _now_ms

    async def _call(self, method: str, **params: Any) -> Any:
        return await asyncio.to_thread(getattr(self.client, method), **params)

    def _visibility_to_acl(self, visibility: Any) -> str:
        if visibility == Visibility.PUBLIC:
            return "public-read"
        elif visibility == Visibility.PRIVATE:
            return "private"

        raise InvalidVisibilityException(visibility)

    async def _delete_batch(self, keys: list[dict[str, str]]) -> None:
        response = await self._call(
            "delete_objects",
            Bucket=self.bucket,
            Delete={"Objects": keys, "Quiet": True},
        )

        errors = response.get("Errors") or []
        if errors:
            raise StorageException(
                message=f"Failed to delete {len(errors)} objects from S3",
                details={
                    "bucket": self.bucket,
                    "errors": [
                        {"key": e.get("Key"), "code": e.get("Code"), "message": e.get("Message")}
                        for e in errors
                    ],
                },
            )

    async def list_objects(
        self,
        path: str,
        *,
        deep: bool,
        include_prefixes: bool,
        include_self: bool,
        max_keys: int | None = None,
    ) -> AsyncIterator[tuple[Literal["prefix", "object"], dict[str, Any]]]:
        """
        Page through ListObjectsV2 under a directory.

        Each page is fetched only when the consumer has drained the previous
        one. Iteration ends when S3 reports no more pages or ``max_keys``
        items have been produced.
        """
        prefix = self.prefixer.prefix_directory_path(path)
        collected = 0
        continuation_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "Bucket": self.bucket,
                "Prefix": prefix,
                "MaxKeys": MAX_PAGE_SIZE if max_keys is None else min(MAX_PAGE_SIZE, max_keys - collected),
            }
            if not deep:
                params["Delimiter"] = "/"
            if continuation_token is not None:
                params["ContinuationToken"] = continuation_token

            response = await self._call("list_objects_v2", **params)

            prefixes = response.get("CommonPrefixes", []) if include_prefixes else []
            for item in prefixes:
                item_prefix = item.get("Prefix")
                if item_prefix is None or (not include_self and item_prefix == prefix):
                    continue

                collected += 1
                yield "prefix", item
                if max_keys is not None and collected >= max_keys:
                    return

            for item in response.get("Contents", []):
                key = item.get("Key")
                if key is None or (not include_self and key == prefix):
                    continue

                collected += 1
                yield "object", item
                if max_keys is not None and collected >= max_keys:
                    return

            continuation_token = response.get("NextContinuationToken")
            if not response.get("IsTruncated", False) or continuation_token is None:
                return

    def _implicit_directories(self, key: str, base: str) -> list[str]:
        """Directories implied by a key, between the listing base and the key."""
        segments = key[len(base):].rstrip("/").split("/")[:-1]
        return [
            self.prefixer.strip_directory_path(base + "/".join(segments[: i + 1]))
            for i in range(len(segments))
        ]

    async def list(self, path: str, *, deep: bool) -> AsyncIterator[StatEntry]:
        base = self.prefixer.prefix_directory_path(path)
        seen_directories: set[str] = set()

        listing = self.list_objects(
            path,
            deep=deep,
            include_prefixes=True,
            include_self=False,
        )

        async for kind, item in listing:
            if kind == "prefix":
                directories = [self.prefixer.strip_directory_path(item["Prefix"])]
            else:
                key = item["Key"]
                directories = self._implicit_directories(key, base) if deep else []
                if key.endswith("/"):
                    directories.append(self.prefixer.strip_directory_path(key))

            for directory in directories:
                if directory not in seen_directories:
                    seen_directories.add(directory)
                    yield DirectoryEntry(path=directory)

            if kind == "object" and not item["Key"].endswith("/"):
                yield FileEntry(
                    path=self.prefixer.strip_file_path(item["Key"]),
                    size=item.get("Size", 0),
                    last_modified_ms=_to_ms(item.get("LastModified")),
                )

    async def _upload(
        self,
        key: str,
        contents: AsyncIterator[bytes],
        options: dict[str, Any],
        size: int | None = None,
    ) -> None:
        params = {**self.put_object_options, **options}

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as spool:
            # Spool rolls over to disk past SPOOL_MAX_SIZE
            async for chunk in contents:
                await asyncio.to_thread(spool.write, chunk)
            await asyncio.to_thread(spool.seek, 0)

            if size is not None:
                await self._call(
                    "put_object",
                    Bucket=self.bucket,
                    Key=key,
                    Body=spool,
                    ContentLength=size,
                    **params,
                )
            else:
                await asyncio.to_thread(
                    self.client.upload_fileobj,
                    spool,
                    self.bucket,
                    key,
                    ExtraArgs=params or None,
                    Config=self.transfer_config,
                )

    async def write(
        self,
        path: str,
        contents: AsyncIterator[bytes],
        options: WriteOptions,
    ) -> None:
        """Upload a stream, sniffing its MIME type first when none is given."""
        mime_type = options.mime_type

        if mime_type is None:
            mime_type, contents = await resolve_mime_type(path, contents)

        upload_options: dict[str, Any] = {}
        if options.visibility is not None:
            upload_options["ACL"] = self._visibility_to_acl(options.visibility)
        if mime_type is not None:
            upload_options["ContentType"] = mime_type
        upload_options.update(options.extra)

        key = self.prefixer.prefix_file_path(path)
        logger.debug(f"Uploading s3://{self.bucket}/{key} ({mime_type})")
        await self._upload(key, contents, upload_options, size=options.size)

    async def read(self, path: str) -> AsyncIterator[bytes]:
        try:
            response = await self._call(
                "get_object",
                Bucket=self.bucket,
                Key=self.prefixer.prefix_file_path(path),
            )
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundException(path, details={"bucket": self.bucket}) from e
            raise

        return self._stream_body(response["Body"])

    async def _stream_body(self, body: Any) -> AsyncIterator[bytes]:
        try:
            while chunk := await asyncio.to_thread(body.read, DEFAULT_CHUNK_SIZE):
                yield chunk
        finally:
            body.close()

    async def delete_file(self, path: str) -> None:
        # DeleteObject succeeds for missing keys
        await self._call(
            "delete_object",
            Bucket=self.bucket,
            Key=self.prefixer.prefix_file_path(path),
        )

    async def delete_directory(self, path: str) -> None:
        """
        Delete every object under a directory, including its marker.

        Keys are flushed in batches of DELETE_BATCH_SIZE as soon as a batch is
        full, without waiting for earlier batches. Once every batch has
        settled the first failure, if any, is raised; batches that succeeded
        stay deleted.
        """
        listing = self.list_objects(
            path,
            deep=True,
            include_prefixes=False,
            include_self=True,
        )

        batch: list[dict[str, str]] = []
        tasks: list[asyncio.Task] = []
        total = 0

        try:
            async for _, item in listing:
                batch.append({"Key": item["Key"]})
                total += 1

                if len(batch) >= DELETE_BATCH_SIZE:
                    tasks.append(asyncio.create_task(self._delete_batch(batch)))
                    batch = []

            if batch:
                tasks.append(asyncio.create_task(self._delete_batch(batch)))
        except BaseException:
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        results = await asyncio.gather(*tasks, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]

        logger.info(
            f"Deleted directory {path!r} from s3://{self.bucket}: "
            f"{total} objects in {len(tasks)} batches, {len(failures)} failed"
        )

        if failures:
            raise failures[0]

    async def create_directory(self, path: str, options: CreateDirectoryOptions) -> None:
        upload_options: dict[str, Any] = {}
        if options.directory_visibility is not None:
            upload_options["ACL"] = self._visibility_to_acl(options.directory_visibility)

        await self._upload(
            self.prefixer.prefix_directory_path(path),
            _empty(),
            upload_options,
            size=0,
        )

    async def stat(self, path: str) -> StatEntry:
        try:
            response = await self._call(
                "head_object",
                Bucket=self.bucket,
                Key=self.prefixer.prefix_file_path(path),
            )
        except ClientError as e:
            if not _is_not_found(e):
                raise
            if await self.directory_exists(path):
                return DirectoryEntry(path=normalize_path(path))
            raise FileNotFoundException(path, details={"bucket": self.bucket}) from e

        return FileEntry(
            path=normalize_path(path),
            size=response.get("ContentLength", 0),
            last_modified_ms=_to_ms(response.get("LastModified")),
            mime_type=response.get("ContentType"),
        )

    async def file_exists(self, path: str) -> bool:
        try:
            await self._call(
                "head_object",
                Bucket=self.bucket,
                Key=self.prefixer.prefix_file_path(path),
            )
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise

    async def directory_exists(self, path: str) -> bool:
        listing = self.list_objects(
            path,
            deep=True,
            include_prefixes=True,
            include_self=True,
            max_keys=1,
        )
        try:
            async for _ in listing:
                return True
        finally:
            await listing.aclose()
        return False

    async def visibility(self, path: str) -> Visibility:
        response = await self._call(
            "get_object_acl",
            Bucket=self.bucket,
            Key=self.prefixer.prefix_file_path(path),
        )

        public_read = any(
            grant.get("Grantee", {}).get("URI") == ALL_USERS_URI
            and grant.get("Permission") == "READ"
            for grant in response.get("Grants", [])
        )

        return Visibility.PUBLIC if public_read else Visibility.PRIVATE

    async def change_visibility(self, path: str, visibility: Visibility) -> None:
        await self._call(
            "put_object_acl",
            Bucket=self.bucket,
            Key=self.prefixer.prefix_file_path(path),
            ACL=self._visibility_to_acl(visibility),
        )

    async def checksum(self, path: str, options: ChecksumOptions) -> str:
        """
        Read a checksum S3 stored for the object.

        Only checksums S3 already has are returned; content is never
        re-read to compute one.
        """
        algo = (options.algo or self.default_checksum_algo or "SHA256").upper()

        if algo not in CHECKSUM_ALGOS:
            raise ChecksumIsNotAvailable.checksum_not_supported(algo)

        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": self.prefixer.prefix_file_path(path),
        }
        if algo != "ETAG":
            params["ChecksumMode"] = "ENABLED"

        try:
            response = await self._call("head_object", **params)
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundException(path, details={"bucket": self.bucket}) from e
            raise

        checksum = response.get("ETag" if algo == "ETAG" else f"Checksum{algo}")

        if checksum is None:
            raise ChecksumIsNotAvailable.checksum_not_present(algo)

        return re.sub(r'^"(.+)"$', r"\1", checksum)

    async def mime_type(self, path: str, options: MimeTypeOptions) -> str:
        entry = await self.stat(path)

        if not entry.is_file:
            raise InvalidPathException.not_a_file(path)

        if entry.mime_type:
            return entry.mime_type

        if options.disallow_fallback:
            raise MimeTypeNotAvailable(path, "Mime-type not available via HeadObject")

        if options.fallback_method == "path":
            mime_type = mime_type_from_path(path)
        else:
            mime_type = await self._mime_type_from_contents(path)

        if mime_type is None:
            raise MimeTypeNotAvailable(path, "Unable to resolve mime-type")

        return mime_type

    async def _mime_type_from_contents(self, path: str) -> str | None:
        stream = await self.read(path)
        mime_type, replay = await resolve_mime_type(path, stream)
        await close_stream(replay)
        await close_stream(stream)
        return mime_type

    async def public_url(self, path: str, options: PublicUrlOptions) -> str:
        allowed = {f.name for f in fields(AwsPublicUrlOptions)}
        merged = {
            "bucket": self.bucket,
            "region": self.region,
            **options.extra,
            **self.public_url_options,
        }

        return self.public_url_generator.public_url(
            self.prefixer.prefix_file_path(path),
            AwsPublicUrlOptions(**{k: v for k, v in merged.items() if k in allowed}),
        )

    async def temporary_url(self, path: str, options: TemporaryUrlOptions) -> str:
        """Generate a presigned GET URL valid until ``options.expires_at``."""
        expiry = normalize_expiry_to_milliseconds(options.expires_at)
        now = self.timestamp_resolver()
        expires_in = math.floor((expiry - now) / 1000)

        if not 1 <= expires_in <= MAX_PRESIGN_SECONDS:
            raise TemporaryUrlNotSupported(
                message=f"Presigned URLs must expire within 1..{MAX_PRESIGN_SECONDS} seconds",
                details={"path": path, "expires_in": expires_in},
            )

        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={
                "Bucket": self.bucket,
                "Key": self.prefixer.prefix_file_path(path),
                **options.extra,
            },
            ExpiresIn=expires_in,
        )
