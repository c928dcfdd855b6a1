"""Compressed-payload framing detection for CZI sub-blocks.

ZSTD1 payloads start with a small header before the zstd stream::

    u8  header size (1 means "size byte only")
    u8  chunk type            -- present when header size > 1
    u8  flags                 -- bit 0: hi/lo byte packing
    ... padding up to header size

No decompression happens here; callers get the header length to skip.
"""

from wsidecode.constants import CompressionKind
from wsidecode.errors import FramingError
from wsidecode.models import Framing

# Chunk type carrying the hi/lo byte-packing flag
ZSTD1_CHUNK_HILO_PACKING = 1


def detect_framing(compression: int, raw: bytes) -> Framing:
    """Return the framing header length and interleave hint of ``raw``.

    ``raw`` is the start of the sub-block's pixel data (the whole payload
    or at least its first 255 bytes). Compressions other than ZSTD1 have
    no framing.
    """
    if compression != CompressionKind.ZSTD1:
        return Framing(0, False)

    if not raw:
        raise FramingError('empty ZSTD1 payload, no framing header', 'framing')

    header_length = raw[0]
    if header_length <= 1:
        return Framing(header_length, False)

    if header_length < 3:
        raise FramingError(
            f'ZSTD1 header size {header_length} too small for a chunk',
            'framing')
    if header_length > len(raw):
        raise FramingError(
            f'ZSTD1 header declares {header_length} bytes, '
            f'payload has {len(raw)}', 'framing')
    chunk_type, flags = raw[1], raw[2]
    if chunk_type != ZSTD1_CHUNK_HILO_PACKING:
        raise FramingError(f'unknown ZSTD1 chunk type {chunk_type}', 'framing')
    return Framing(header_length, bool(flags & 1))
