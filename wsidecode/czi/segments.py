"""ZISRAW segment framing and fixed-layout segment bodies.

Every segment is a 32-byte header (16-byte NUL-padded kind tag, u64
allocated size, u64 used size) followed by its body. Offsets handed to
these readers are absolute; callers add the container base address.
"""

import struct
import uuid
from typing import Iterator, List, Optional

from wsidecode.constants import (
    A1_ENTRY_FORMAT,
    DIMENSION_ENTRY_FORMAT,
    DIMENSION_ENTRY_SIZE,
    DV_ENTRY_FORMAT,
    DV_ENTRY_SIZE,
    FILE_HEADER_FORMAT,
    METADATA_HEADER_SIZE,
    SEGMENT_HEADER_SIZE,
    SEGMENT_KIND_SIZE,
    SEGMENT_KINDS,
)
from wsidecode.errors import RecordError, SegmentKindError, add_warning
from wsidecode.models import (
    AttachmentEntry,
    ByteRange,
    DimensionRange,
    FileHeader,
    MetadataSegment,
    Segment,
    SubBlockEntry,
)
from wsidecode.source import ByteSource


def _strip_nul(raw: bytes) -> str:
    return raw.split(b'\x00', 1)[0].decode('ascii', errors='replace')


def read_segment_header(source: ByteSource, offset: int,
                        expected: Optional[str] = None) -> Segment:
    """Read the 32-byte header of the segment at absolute ``offset``.

    A kind other than ``expected`` is a warning. If the kind found is a
    different *known* kind, the body must not be read as ``expected``:
    SegmentKindError is raised after the warning is recorded.
    """
    raw_kind, allocated_size, used_size = source.unpack_at(
        f'<{SEGMENT_KIND_SIZE}sQQ', offset, 'czi.segment')
    segment = Segment(kind=_strip_nul(raw_kind), offset=offset,
                      allocated_size=allocated_size, used_size=used_size)

    if used_size > allocated_size:
        add_warning(segment.issues, 'czi.segment',
                    f'{segment.kind} used size {used_size} exceeds '
                    f'allocated size {allocated_size}', offset)

    if expected is not None and segment.kind != expected:
        add_warning(segment.issues, 'czi.segment',
                    f'expected {expected} segment, found {segment.kind!r}',
                    offset)
        if segment.kind in SEGMENT_KINDS:
            raise SegmentKindError(
                f'reference to {expected} points at a {segment.kind} segment',
                'czi.segment', offset)
    elif expected is None and segment.kind not in SEGMENT_KINDS:
        add_warning(segment.issues, 'czi.segment',
                    f'unknown segment kind {segment.kind!r}', offset)
    return segment


def iter_segments(source: ByteSource, base_address: int = 0,
                  end: Optional[int] = None) -> Iterator[Segment]:
    """Walk segments back to back from ``base_address`` until ``end``.

    Unknown kinds are yielded as opaque segments. A segment whose
    allocation does not fit before ``end`` is yielded with a warning and
    stops the walk.
    """
    end = source.size if end is None else end
    offset = base_address
    while offset + SEGMENT_HEADER_SIZE <= end:
        source.check_cancelled('czi.segment', offset)
        segment = read_segment_header(source, offset)
        if segment.allocated_size == 0 or segment.next_offset > end:
            add_warning(segment.issues, 'czi.segment',
                        f'allocated size {segment.allocated_size} does not '
                        f'fit before end of data ({end})', offset)
            yield segment
            return
        yield segment
        offset = segment.next_offset


def read_file_header(source: ByteSource, segment: Segment) -> FileHeader:
    """Parse the ZISRAWFILE body. Positions stay container-relative."""
    (major, minor, primary_guid, file_guid, file_part, directory_position,
     metadata_position, update_pending, attachment_directory_position,
     ) = source.unpack_at(FILE_HEADER_FORMAT, segment.body_offset,
                          'czi.header')
    return FileHeader(
        major=major, minor=minor,
        primary_file_guid=uuid.UUID(bytes_le=primary_guid),
        file_guid=uuid.UUID(bytes_le=file_guid),
        file_part=file_part,
        directory_position=directory_position,
        metadata_position=metadata_position,
        update_pending=bool(update_pending),
        attachment_directory_position=attachment_directory_position,
    )


def read_metadata(source: ByteSource, segment: Segment) -> MetadataSegment:
    """Locate the XML and attachment byte ranges of a ZISRAWMETADATA body."""
    xml_size, attachment_size = source.unpack_at(
        '<ii', segment.body_offset, 'czi.metadata')
    xml = ByteRange(segment.body_offset + METADATA_HEADER_SIZE, max(xml_size, 0))
    attachment = ByteRange(xml.end, max(attachment_size, 0))
    if attachment.end > segment.body_offset + segment.used_size:
        add_warning(segment.issues, 'czi.metadata',
                    f'metadata ({xml_size} + {attachment_size} bytes) runs '
                    f'past used size {segment.used_size}', segment.offset)
    return MetadataSegment(segment=segment, xml=xml, attachment=attachment)


def read_dv_entry(source: ByteSource, offset: int) -> SubBlockEntry:
    """Parse a DV directory entry and its dimension list at ``offset``."""
    (schema, pixel_type, file_offset, file_part, compression, pyramid_kind,
     dimension_count) = source.unpack_at(DV_ENTRY_FORMAT, offset,
                                         'czi.directory')
    if schema != b'DV':
        raise RecordError(f'directory entry schema {schema!r}, expected DV',
                          'czi.directory', offset)
    if dimension_count < 0:
        raise RecordError(f'negative dimension count {dimension_count}',
                          'czi.directory', offset)

    raw = source.read_at(offset + DV_ENTRY_SIZE,
                         DIMENSION_ENTRY_SIZE * dimension_count, 'czi.directory')
    dimensions: List[DimensionRange] = []
    for i in range(dimension_count):
        start = DIMENSION_ENTRY_SIZE * i
        axis, first, size, start_coordinate, stored_size = struct.unpack(
            DIMENSION_ENTRY_FORMAT, raw[start:start + DIMENSION_ENTRY_SIZE])
        # stored size 0 means "not sub-sampled"
        dimensions.append(DimensionRange(
            axis=_strip_nul(axis), start=first, logical_size=size,
            start_coordinate=start_coordinate,
            stored_size=stored_size or size))

    return SubBlockEntry(pixel_type=pixel_type, file_offset=file_offset,
                         file_part=file_part, compression=compression,
                         pyramid_kind=pyramid_kind, dimensions=dimensions,
                         entry_offset=offset)


def read_a1_entry(source: ByteSource, offset: int) -> AttachmentEntry:
    """Parse a 128-byte A1 attachment entry at ``offset``."""
    (schema, file_offset, file_part, guid, declared_type, name,
     ) = source.unpack_at(A1_ENTRY_FORMAT, offset, 'czi.attachment')
    if schema != b'A1':
        raise RecordError(f'attachment entry schema {schema!r}, expected A1',
                          'czi.attachment', offset)
    return AttachmentEntry(
        file_offset=file_offset, file_part=file_part,
        guid=uuid.UUID(bytes_le=guid),
        declared_type=_strip_nul(declared_type),
        name=name.split(b'\x00', 1)[0].decode('utf-8', errors='replace'),
        entry_offset=offset)
