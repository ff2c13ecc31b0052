"""
Stream MIME-type resolution.

Sniffs a bounded head of a byte stream for a binary signature, falling back
to the filename extension. The caller gets back a stream that replays the
sniffed head before continuing with the rest of the source, so nothing is
lost even though the source was partially consumed.
"""

import logging
import mimetypes
from typing import AsyncIterable, AsyncIterator

import filetype

logger = logging.getLogger(__name__)

# Large enough for every signature window the sniffer inspects
SNIFF_WINDOW_SIZE = 4100


async def _replay(head: bytes, remainder: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    if head:
        yield head
    async for chunk in remainder:
        yield chunk


async def stream_head(
    stream: AsyncIterable[bytes],
    size: int,
) -> tuple[bytes, AsyncIterator[bytes]]:
    """
    Read at least ``size`` bytes (or until the stream ends) from ``stream``.

    Args:
        stream: Source byte stream. Must not be consumed by the caller afterwards.
        size: Minimum number of bytes to capture.

    Returns:
        Tuple of the captured head and a stream replaying head + remainder.
        Chunks after the head are pulled from the source only as the
        replay stream is consumed.
    """
    source = aiter(stream)
    chunks: list[bytes] = []
    read_bytes = 0

    while read_bytes < size:
        try:
            chunk = await anext(source)
        except StopAsyncIteration:
            break
        chunks.append(chunk)
        read_bytes += len(chunk)

    head = b"".join(chunks)
    return head, _replay(head, source)


def mime_type_from_path(path: str) -> str | None:
    """Look up a MIME type by filename extension."""
    mime_type, _ = mimetypes.guess_type(path, strict=False)
    return mime_type


def _sniff(head: bytes) -> str | None:
    try:
        kind = filetype.guess(head)
    except Exception as e:
        logger.debug(f"Content sniffing failed, treating as no match: {e}")
        return None
    return kind.mime if kind is not None else None


async def resolve_mime_type(
    filename: str,
    stream: AsyncIterable[bytes],
    fallback: str | None = None,
) -> tuple[str | None, AsyncIterator[bytes]]:
    """
    Determine the MIME type of a stream.

    Order: content signature, filename extension, ``fallback``, None.

    Returns:
        Tuple of the MIME type (or None) and the unconsumed replay stream
    """
    head, replay = await stream_head(stream, SNIFF_WINDOW_SIZE)

    mime_type = _sniff(head)
    if mime_type is None:
        mime_type = mime_type_from_path(filename) or fallback

    logger.debug(f"Resolved mime-type for {filename}: {mime_type}")
    return mime_type, replay
