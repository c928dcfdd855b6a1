"""Data models for decoded NDPI directories and CZI containers."""

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from wsidecode.constants import (
    COMPRESSION_NAMES,
    CONTAINER_ATTACHMENT_TYPES,
    DIMENSION_ENTRY_SIZE,
    DV_ENTRY_SIZE,
    PIXEL_TYPE_NAMES,
    RAW_COMPRESSION_VALUE,
    SEGMENT_HEADER_SIZE,
    SEGMENT_KINDS,
    TAG_NAMES,
)


@dataclass
class Issue:
    """A warning or scoped error attached to a decoded entity."""
    severity: str  # "warning" | "error"
    component: str
    message: str
    offset: Optional[int] = None

    def __str__(self) -> str:
        where = f' @{self.offset}' if self.offset is not None else ''
        return f'[{self.severity}] {self.component}{where}: {self.message}'


@dataclass(frozen=True)
class ByteRange:
    """Half-open absolute byte range ``[offset, offset + length)``."""
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def __contains__(self, position: int) -> bool:
        return self.offset <= position < self.end


# ---------------------------------------------------------------------------
# NDPI
# ---------------------------------------------------------------------------

@dataclass
class NDPIHeader:
    byte_order: bytes
    version: int
    first_ifd_offset: int
    magic_ok: bool = True


@dataclass
class Record:
    """One 12-byte IFD record with its resolved value."""
    tag: int
    field_type: int
    count: int
    position: int
    entry_offset: int
    value_field: int
    size: Optional[int] = None
    high_word: int = 0
    is_inline: bool = True
    value_offset: Optional[int] = None
    value: Any = None
    error: Optional[str] = None
    issues: List[Issue] = field(default_factory=list)

    @property
    def tag_name(self) -> str:
        return TAG_NAMES.get(self.tag, f'Tag_{self.tag}')

    @property
    def value_range(self) -> Optional[ByteRange]:
        """Byte range of an external value, None for inline values."""
        if self.is_inline or self.value_offset is None or self.size is None:
            return None
        return ByteRange(self.value_offset, self.size)


@dataclass
class Directory:
    """One IFD of the NDPI chain."""
    sequence_number: int
    offset: int
    records: List[Record] = field(default_factory=list)
    next_offset: int = 0
    image_data: Optional[ByteRange] = None
    issues: List[Issue] = field(default_factory=list)

    def record(self, tag: int) -> Optional[Record]:
        for rec in self.records:
            if rec.tag == tag:
                return rec
        return None

    def value(self, tag: int, default=None):
        """Resolved scalar-or-tuple value of ``tag``, or ``default``."""
        rec = self.record(tag)
        if rec is None or rec.value is None:
            return default
        return rec.value.value


@dataclass
class NDPIFile:
    header: NDPIHeader
    directories: List[Directory] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)

    @property
    def image_ranges(self) -> List[Tuple[int, ByteRange]]:
        """(sequence_number, range) for every directory with image data."""
        return [(d.sequence_number, d.image_data) for d in self.directories
                if d.image_data is not None]

    def iter_issues(self) -> Iterator[Tuple[str, Issue]]:
        for issue in self.issues:
            yield 'file', issue
        for directory in self.directories:
            where = f'ifd[{directory.sequence_number}]'
            for issue in directory.issues:
                yield where, issue
            for rec in directory.records:
                for issue in rec.issues:
                    yield f'{where}.{rec.tag_name}', issue


# ---------------------------------------------------------------------------
# CZI
# ---------------------------------------------------------------------------

@dataclass
class Segment:
    """ZISRAW segment header; the body follows at ``body_offset``."""
    kind: str
    offset: int
    allocated_size: int
    used_size: int
    issues: List[Issue] = field(default_factory=list)

    @property
    def body_offset(self) -> int:
        return self.offset + SEGMENT_HEADER_SIZE

    @property
    def body_range(self) -> ByteRange:
        return ByteRange(self.body_offset, self.used_size)

    @property
    def next_offset(self) -> int:
        return self.body_offset + self.allocated_size

    @property
    def is_known(self) -> bool:
        return self.kind in SEGMENT_KINDS


@dataclass
class FileHeader:
    major: int
    minor: int
    primary_file_guid: uuid.UUID
    file_guid: uuid.UUID
    file_part: int
    directory_position: int
    metadata_position: int
    update_pending: bool
    attachment_directory_position: int

    @property
    def version(self) -> Tuple[int, int]:
        return self.major, self.minor


@dataclass
class MetadataSegment:
    segment: Segment
    xml: ByteRange
    attachment: ByteRange


@dataclass
class DimensionRange:
    axis: str
    start: int
    logical_size: int
    start_coordinate: float
    stored_size: int

    @property
    def downsample(self) -> float:
        if not self.stored_size:
            return 1.0
        return self.logical_size / self.stored_size


@dataclass
class SubBlockEntry:
    """Directory entry schema DV."""
    pixel_type: int
    file_offset: int
    file_part: int
    compression: int
    pyramid_kind: int
    dimensions: List[DimensionRange] = field(default_factory=list)
    entry_offset: Optional[int] = None

    @property
    def storage_size(self) -> int:
        return DV_ENTRY_SIZE + DIMENSION_ENTRY_SIZE * len(self.dimensions)

    @property
    def axes(self) -> str:
        return ''.join(d.axis for d in self.dimensions)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(d.logical_size for d in self.dimensions)

    @property
    def stored_shape(self) -> Tuple[int, ...]:
        return tuple(d.stored_size for d in self.dimensions)

    @property
    def start(self) -> Tuple[int, ...]:
        return tuple(d.start for d in self.dimensions)

    def dimension(self, axis: str) -> Optional[DimensionRange]:
        for dim in self.dimensions:
            if dim.axis == axis:
                return dim
        return None

    @property
    def downsample_factor(self) -> float:
        """Pyramid factor from the X axis (Y if X is absent)."""
        dim = self.dimension('X') or self.dimension('Y')
        return dim.downsample if dim is not None else 1.0

    @property
    def mosaic_index(self) -> Optional[int]:
        dim = self.dimension('M')
        return dim.start if dim is not None else None

    @property
    def pixel_type_name(self) -> str:
        return PIXEL_TYPE_NAMES.get(self.pixel_type, f'PixelType_{self.pixel_type}')

    @property
    def compression_name(self) -> str:
        if self.compression >= RAW_COMPRESSION_VALUE:
            return f'Raw_{self.compression}'
        return COMPRESSION_NAMES.get(self.compression, f'Compression_{self.compression}')

    def same_layout(self, other: 'SubBlockEntry') -> bool:
        """True if both copies agree on everything but position fields."""
        return (self.pixel_type == other.pixel_type
                and self.compression == other.compression
                and [(d.axis, d.start, d.logical_size, d.stored_size)
                     for d in self.dimensions]
                == [(d.axis, d.start, d.logical_size, d.stored_size)
                    for d in other.dimensions])


@dataclass
class Framing:
    """Result of payload framing detection."""
    header_length: int
    interleave_hint: bool = False


@dataclass
class SubBlock:
    """A sub-block directory entry and the segment it resolves to."""
    entry: SubBlockEntry
    segment: Optional[Segment] = None
    header_entry: Optional[SubBlockEntry] = None
    metadata: Optional[ByteRange] = None
    data: Optional[ByteRange] = None
    attachment: Optional[ByteRange] = None
    framing: Optional[Framing] = None
    payload: Optional[ByteRange] = None
    error: Optional[str] = None
    issues: List[Issue] = field(default_factory=list)


@dataclass
class AttachmentEntry:
    """Attachment entry schema A1."""
    file_offset: int
    file_part: int
    guid: uuid.UUID
    declared_type: str
    name: str
    entry_offset: Optional[int] = None

    @property
    def filename(self) -> str:
        return f'{self.name}@{self.file_offset}.{self.declared_type.lower()}'

    @property
    def is_container(self) -> bool:
        return self.declared_type in CONTAINER_ATTACHMENT_TYPES


@dataclass
class Attachment:
    entry: AttachmentEntry
    segment: Optional[Segment] = None
    data: Optional[ByteRange] = None
    container: Optional['Container'] = None
    error: Optional[str] = None
    issues: List[Issue] = field(default_factory=list)


@dataclass
class Container:
    """Decoded CZI container; offsets inside are relative to ``base_address``."""
    base_address: int
    depth: int
    header_segment: Segment
    header: FileHeader
    metadata: Optional[MetadataSegment] = None
    subblock_directory: Optional[Segment] = None
    attachment_directory: Optional[Segment] = None
    subblocks: List[SubBlock] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)

    def iter_containers(self) -> Iterator['Container']:
        """This container followed by every embedded one, depth first."""
        yield self
        for attachment in self.attachments:
            if attachment.container is not None:
                yield from attachment.container.iter_containers()

    @property
    def all_subblocks(self) -> List[SubBlock]:
        return [sb for c in self.iter_containers() for sb in c.subblocks]

    def iter_issues(self) -> Iterator[Tuple[str, Issue]]:
        where = f'container@{self.base_address}'
        for issue in self.issues + self.header_segment.issues:
            yield where, issue
        if self.metadata is not None:
            for issue in self.metadata.segment.issues:
                yield f'{where}.metadata', issue
        for name, segment in (('subblock_directory', self.subblock_directory),
                              ('attachment_directory', self.attachment_directory)):
            if segment is not None:
                for issue in segment.issues:
                    yield f'{where}.{name}', issue
        for i, sb in enumerate(self.subblocks):
            seg_issues = sb.segment.issues if sb.segment is not None else []
            for issue in sb.issues + seg_issues:
                yield f'{where}.subblock[{i}]', issue
        for i, att in enumerate(self.attachments):
            seg_issues = att.segment.issues if att.segment is not None else []
            for issue in att.issues + seg_issues:
                yield f'{where}.attachment[{i}]', issue
            if att.container is not None:
                yield from att.container.iter_issues()


# ---------------------------------------------------------------------------
# Decode results
# ---------------------------------------------------------------------------

@dataclass
class DecodeResult:
    """Result of decoding a single file."""
    filepath: Path
    format: str  # "ndpi" | "czi" | "unknown"
    document: Any = None
    decode_time_ms: float = 0.0
    file_size: int = 0
    warning_count: int = 0
    error_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Result of a batch decode run."""
    results: List[DecodeResult] = field(default_factory=list)
    total_files: int = 0
    files_clean: int = 0
    files_with_issues: int = 0
    files_errored: int = 0
    total_time_seconds: float = 0.0
