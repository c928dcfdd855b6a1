"""wsidecode -- structural decoder for NDPI and CZI whole-slide image files."""

__version__ = "1.0.0"

from wsidecode.config import DecodeConfig
from wsidecode.errors import (
    ChainError,
    DecodeCancelled,
    DecodeError,
    FieldDecodeError,
    FramingError,
    RecordError,
    RecursionLimitError,
    SegmentKindError,
    SourceError,
    UnknownFormatError,
    UnsupportedExtensionError,
)
from wsidecode.models import (
    Attachment,
    BatchResult,
    ByteRange,
    Container,
    DecodeResult,
    Directory,
    Issue,
    NDPIFile,
    Record,
    Segment,
    SubBlock,
)
from wsidecode.formats import (
    decode_bytes,
    decode_file,
    detect_format,
    detect_format_by_extension,
)
from wsidecode.batch import decode_batch, decode_one
from wsidecode.report import document_report, generate_batch_report

__all__ = [
    "__version__",
    "DecodeConfig",
    "DecodeError",
    "SourceError",
    "DecodeCancelled",
    "UnknownFormatError",
    "ChainError",
    "RecursionLimitError",
    "RecordError",
    "FieldDecodeError",
    "UnsupportedExtensionError",
    "FramingError",
    "SegmentKindError",
    "Issue",
    "ByteRange",
    "Record",
    "Directory",
    "NDPIFile",
    "Segment",
    "SubBlock",
    "Attachment",
    "Container",
    "DecodeResult",
    "BatchResult",
    "decode_file",
    "decode_bytes",
    "detect_format",
    "detect_format_by_extension",
    "decode_one",
    "decode_batch",
    "document_report",
    "generate_batch_report",
]
