"""Format registry -- auto-detection by magic bytes, then extension."""

import threading
from pathlib import Path
from typing import Any, Optional

from wsidecode.config import DecodeConfig
from wsidecode.errors import UnknownFormatError
from wsidecode.formats.base import FormatDecoder
from wsidecode.formats.czi import CZIDecoder
from wsidecode.formats.ndpi import NDPIDecoder
from wsidecode.source import ByteSource

# Registered decoders in priority order
_DECODERS = [
    NDPIDecoder(),
    CZIDecoder(),
]

# Longest magic signature we need to look at
_HEAD_SIZE = 16


def _read_head(filepath: Path) -> bytes:
    with open(filepath, 'rb') as f:
        return f.read(_HEAD_SIZE)


def detect_format_bytes(head: bytes) -> str:
    """Format name for a leading byte string, or "unknown"."""
    for decoder in _DECODERS:
        if decoder.matches_magic(head):
            return decoder.format_name
    return 'unknown'


def detect_format(filepath: Path) -> str:
    """Detect the slide format of a file.

    Returns "ndpi", "czi", or "unknown". The magic signature wins; the
    file extension is only consulted when no magic matches.
    """
    decoder = _find_decoder(Path(filepath))
    return decoder.format_name if decoder is not None else 'unknown'


def detect_format_by_extension(filepath: Path) -> str:
    """Format name from the file extension alone, without opening the file."""
    for decoder in _DECODERS:
        if decoder.can_handle(Path(filepath)):
            return decoder.format_name
    return 'unknown'


def _find_decoder(filepath: Path) -> Optional[FormatDecoder]:
    head = _read_head(filepath)
    for decoder in _DECODERS:
        if decoder.can_handle(filepath, head):
            return decoder
    for decoder in _DECODERS:
        if decoder.can_handle(filepath):
            return decoder
    return None


def get_decoder(filepath: Path) -> FormatDecoder:
    """Get the decoder for a file. Raises UnknownFormatError if none fits."""
    filepath = Path(filepath)
    decoder = _find_decoder(filepath)
    if decoder is None:
        raise UnknownFormatError(f'{filepath.name} is neither NDPI nor CZI',
                                 'formats', 0)
    return decoder


def get_decoder_by_name(format_name: str) -> FormatDecoder:
    for decoder in _DECODERS:
        if decoder.format_name == format_name:
            return decoder
    raise UnknownFormatError(f'no decoder named {format_name!r}', 'formats')


def decode_file(filepath, config: Optional[DecodeConfig] = None,
                cancel_event: Optional[threading.Event] = None) -> Any:
    """Decode a file into an NDPIFile or a Container."""
    filepath = Path(filepath)
    decoder = get_decoder(filepath)
    with ByteSource.open(filepath, cancel_event=cancel_event) as source:
        return decoder.decode(source, config)


def decode_bytes(data: bytes, config: Optional[DecodeConfig] = None) -> Any:
    """Decode an in-memory file; only the magic signature selects the format."""
    format_name = detect_format_bytes(data[:_HEAD_SIZE])
    if format_name == 'unknown':
        raise UnknownFormatError('no NDPI or CZI magic signature', 'formats', 0)
    decoder = get_decoder_by_name(format_name)
    return decoder.decode(ByteSource.from_bytes(data), config)


def list_supported_formats() -> list:
    """List all supported format names."""
    return [d.format_name for d in _DECODERS]
