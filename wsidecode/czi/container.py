"""CZI container decoding: header, metadata, and both directories.

Directory resolution is eager: every sub-block and attachment entry is
followed to its segment at ``entry.file_offset + base_address``. An
attachment holding a CZI file is decoded as a nested Container whose base
address is the attachment's data offset; nesting depth is passed down
explicitly and bounded by ``DecodeConfig.max_recursion_depth``.
"""

import logging
from typing import Optional

from wsidecode.config import DecodeConfig
from wsidecode.constants import (
    A1_ENTRY_SIZE,
    ATTACHMENT_DIRECTORY_HEADER_SIZE,
    ATTACHMENT_HEADER_SIZE,
    SEG_ATTACHMENT,
    SEG_ATTACHMENT_DIRECTORY,
    SEG_FILE_HEADER,
    SEG_METADATA,
    SEG_SUBBLOCK,
    SEG_SUBBLOCK_DIRECTORY,
    SUBBLOCK_DIRECTORY_HEADER_SIZE,
    SUBBLOCK_FIXED_SIZE,
    SUBBLOCK_HEADER_FORMAT,
    CompressionKind,
)
from wsidecode.czi.framing import detect_framing
from wsidecode.czi.segments import (
    read_a1_entry,
    read_dv_entry,
    read_file_header,
    read_metadata,
    read_segment_header,
)
from wsidecode.errors import (
    ChainError,
    RecordError,
    RecursionLimitError,
    add_error,
    add_warning,
)
from wsidecode.models import (
    Attachment,
    AttachmentEntry,
    ByteRange,
    Container,
    SubBlock,
    SubBlockEntry,
)
from wsidecode.source import ByteSource

logger = logging.getLogger(__name__)


def decode_container(source: ByteSource, base_address: int = 0,
                     config: Optional[DecodeConfig] = None,
                     depth: int = 0) -> Container:
    """Decode the container whose ZISRAWFILE segment sits at ``base_address``.

    Raises RecursionLimitError when ``depth`` exceeds the configured limit,
    SegmentKindError when ``base_address`` holds another known segment, and
    SourceError when the file cannot satisfy a read.
    """
    config = config or DecodeConfig.default()
    if depth > config.max_recursion_depth:
        raise RecursionLimitError(
            f'container nesting depth {depth} exceeds limit '
            f'{config.max_recursion_depth}', 'czi.container', base_address)

    source.check_cancelled('czi.container', base_address)
    header_segment = read_segment_header(source, base_address, SEG_FILE_HEADER)
    header = read_file_header(source, header_segment)
    container = Container(base_address=base_address, depth=depth,
                          header_segment=header_segment, header=header)
    logger.debug('container at %d (depth %d): CZI %d.%d', base_address,
                 depth, header.major, header.minor)

    _read_metadata(source, container)
    _read_subblock_directory(source, container, config)
    _read_attachment_directory(source, container, config)
    return container


def _read_metadata(source: ByteSource, container: Container):
    position = container.header.metadata_position
    if not position:
        add_warning(container.issues, 'czi.container', 'no metadata segment',
                    container.base_address)
        return
    try:
        segment = read_segment_header(source, container.base_address + position,
                                      SEG_METADATA)
    except RecordError as e:
        add_error(container.issues, e)
        return
    container.metadata = read_metadata(source, segment)


def _read_directory_count(source: ByteSource, container: Container,
                          segment_offset: int, component: str) -> int:
    (count,) = source.unpack_at('<i', segment_offset, component)
    if count < 0:
        add_warning(container.issues, component,
                    f'negative entry count {count}, treated as empty',
                    segment_offset)
        return 0
    return count


def _read_subblock_directory(source: ByteSource, container: Container,
                             config: DecodeConfig):
    position = container.header.directory_position
    if not position:
        add_warning(container.issues, 'czi.directory',
                    'no sub-block directory segment', container.base_address)
        return
    try:
        segment = read_segment_header(source, container.base_address + position,
                                      SEG_SUBBLOCK_DIRECTORY)
    except RecordError as e:
        add_error(container.issues, e)
        return
    container.subblock_directory = segment

    count = _read_directory_count(source, container, segment.body_offset,
                                  'czi.directory')
    offset = segment.body_offset + SUBBLOCK_DIRECTORY_HEADER_SIZE
    for i in range(count):
        source.check_cancelled('czi.directory', offset)
        try:
            entry = read_dv_entry(source, offset)
        except RecordError as e:
            # Entries are variable-size; a bad one hides where the next starts
            add_error(container.issues, e)
            add_warning(container.issues, 'czi.directory',
                        f'sub-block directory truncated at entry {i} of {count}',
                        offset)
            break
        offset += entry.storage_size
        container.subblocks.append(
            resolve_subblock(source, entry, container.base_address, config))


def resolve_subblock(source: ByteSource, entry: SubBlockEntry,
                     base_address: int,
                     config: Optional[DecodeConfig] = None) -> SubBlock:
    """Read the ZISRAWSUBBLOCK segment an entry points at.

    Segment-scoped failures (wrong segment kind, corrupt entry copy,
    unreadable framing) are stored on the returned SubBlock.
    """
    config = config or DecodeConfig.default()
    subblock = SubBlock(entry=entry)
    try:
        _fill_subblock(source, subblock, base_address, config)
    except RecordError as e:
        subblock.error = e.message
        add_error(subblock.issues, e)
    return subblock


def _fill_subblock(source: ByteSource, subblock: SubBlock, base_address: int,
                   config: DecodeConfig):
    entry = subblock.entry
    segment = read_segment_header(source, entry.file_offset + base_address,
                                  SEG_SUBBLOCK)
    subblock.segment = segment
    body = segment.body_offset

    metadata_size, attachment_size, data_size = source.unpack_at(
        SUBBLOCK_HEADER_FORMAT, body, 'czi.subblock')
    if metadata_size < 0 or attachment_size < 0:
        raise RecordError(
            f'negative sub-block sizes ({metadata_size}, {attachment_size})',
            'czi.subblock', body)

    header_entry = read_dv_entry(source, body + 16)
    subblock.header_entry = header_entry
    if not entry.same_layout(header_entry):
        add_warning(subblock.issues, 'czi.subblock',
                    'directory entry and sub-block header disagree',
                    segment.offset)

    metadata_offset = body + max(SUBBLOCK_FIXED_SIZE,
                                 16 + header_entry.storage_size)
    subblock.metadata = ByteRange(metadata_offset, metadata_size)
    subblock.data = ByteRange(subblock.metadata.end, data_size)
    subblock.attachment = ByteRange(subblock.data.end, attachment_size)
    if subblock.attachment.end > body + segment.used_size:
        add_warning(subblock.issues, 'czi.subblock',
                    f'sub-block content ends at {subblock.attachment.end}, '
                    f'past used size {segment.used_size}', segment.offset)

    if not config.detect_framing:
        subblock.payload = subblock.data
        return
    probe = b''
    if entry.compression == CompressionKind.ZSTD1:
        probe = source.read_at(subblock.data.offset,
                               min(data_size, config.framing_probe_size),
                               'czi.subblock')
    framing = detect_framing(entry.compression, probe)
    subblock.framing = framing
    subblock.payload = ByteRange(subblock.data.offset + framing.header_length,
                                 data_size - framing.header_length)


def _read_attachment_directory(source: ByteSource, container: Container,
                               config: DecodeConfig):
    position = container.header.attachment_directory_position
    if not position:
        return
    try:
        segment = read_segment_header(source, container.base_address + position,
                                      SEG_ATTACHMENT_DIRECTORY)
    except RecordError as e:
        add_error(container.issues, e)
        return
    container.attachment_directory = segment

    count = _read_directory_count(source, container, segment.body_offset,
                                  'czi.attachment')
    offset = segment.body_offset + ATTACHMENT_DIRECTORY_HEADER_SIZE
    for _ in range(count):
        source.check_cancelled('czi.attachment', offset)
        try:
            entry = read_a1_entry(source, offset)
        except RecordError as e:
            add_error(container.issues, e)
        else:
            container.attachments.append(resolve_attachment(
                source, entry, container.base_address, config,
                container.depth))
        offset += A1_ENTRY_SIZE


def resolve_attachment(source: ByteSource, entry: AttachmentEntry,
                       base_address: int,
                       config: Optional[DecodeConfig] = None,
                       depth: int = 0) -> Attachment:
    """Read the ZISRAWATTACH segment an entry points at.

    An embedded CZI is decoded with ``depth + 1``; a failure inside that
    branch (too deep, not a container, bad references) stays on this
    attachment.
    """
    config = config or DecodeConfig.default()
    attachment = Attachment(entry=entry)
    try:
        segment = read_segment_header(source, entry.file_offset + base_address,
                                      SEG_ATTACHMENT)
    except RecordError as e:
        attachment.error = e.message
        add_error(attachment.issues, e)
        return attachment
    attachment.segment = segment
    body = segment.body_offset

    (data_size,) = source.unpack_at('<Q', body, 'czi.attachment')
    try:
        copy = read_a1_entry(source, body + 16)
    except RecordError as e:
        add_warning(attachment.issues, 'czi.attachment', e.message, e.offset)
    else:
        if copy.guid != entry.guid or copy.declared_type != entry.declared_type:
            add_warning(attachment.issues, 'czi.attachment',
                        'directory entry and attachment header disagree',
                        segment.offset)

    attachment.data = ByteRange(body + ATTACHMENT_HEADER_SIZE, data_size)
    if attachment.data.end > body + segment.used_size:
        add_warning(attachment.issues, 'czi.attachment',
                    f'attachment data ends at {attachment.data.end}, '
                    f'past used size {segment.used_size}', segment.offset)

    if entry.is_container:
        try:
            attachment.container = decode_container(
                source, attachment.data.offset, config, depth + 1)
        except (ChainError, RecordError) as e:
            attachment.error = e.message
            add_error(attachment.issues, e)
    return attachment
