"""NDPI tag-directory parser -- stdlib only (struct module).

NDPI is little-endian TIFF with 64-bit reach bolted on:

- the header's first-IFD pointer and every IFD's next pointer are 8 bytes;
- each record keeps the baseline 4-byte inline-or-offset slot, and the
  upper 32 bits of an offset (or of an inline LONG) live in a trailer of
  4-byte high words that follows the IFD's next pointer, one per record.

IFD layout at offset D with N records::

    D                 u16 N
    D + 2             N x 12-byte records (tag, type, count, value/low)
    D + 2 + 12N       u64 next IFD offset
    D + 10 + 12N      N x u32 high words
"""

import logging
import struct
from typing import Iterator, List, Optional

from wsidecode.config import DecodeConfig
from wsidecode.constants import (
    IFD_INLINE_SIZE,
    IFD_RECORD_SIZE,
    NDPI_BYTE_ORDER,
    NDPI_VERSION,
)
from wsidecode.errors import (
    ChainError,
    RecordError,
    UnsupportedExtensionError,
    add_error,
    add_warning,
)
from wsidecode.fields import (
    FieldType,
    FieldValue,
    decode_field,
    element_size,
    is_known_type,
)
from wsidecode.models import Directory, Issue, NDPIFile, NDPIHeader, Record
from wsidecode.source import ByteSource
from wsidecode.tiff.image_data import locate_image_data

logger = logging.getLogger(__name__)


def read_header(source: ByteSource, issues: List[Issue]) -> NDPIHeader:
    """Read the 12-byte NDPI header.

    A wrong byte-order marker or version is only a warning; the rest of
    the file is decoded assuming the NDPI layout anyway.
    """
    byte_order, version, first_ifd_offset = source.unpack_at(
        '<2sHQ', 0, 'ndpi.header')
    magic_ok = byte_order == NDPI_BYTE_ORDER and version == NDPI_VERSION
    if not magic_ok:
        add_warning(issues, 'ndpi.header',
                    f'unexpected magic {byte_order!r}/{version}, '
                    f'assuming little-endian NDPI', 0)
    return NDPIHeader(byte_order, version, first_ifd_offset, magic_ok)


def high_word_offset(ifd_offset: int, num_records: int, position: int) -> int:
    """Absolute offset of the high-word trailer slot for record ``position``."""
    return ifd_offset + IFD_RECORD_SIZE * num_records + 4 * position + 10


def resolve_record(source: ByteSource, record: Record,
                   config: DecodeConfig) -> None:
    """Fill in ``record.value`` from its inline slot or external offset.

    ``record.high_word`` must already hold the record's trailer slot.
    Raises UnsupportedExtensionError when a nonzero high word sits on an
    inline value other than a single LONG.
    """
    ftype = record.field_type
    inline = struct.pack('<I', record.value_field)

    if not is_known_type(ftype):
        add_warning(record.issues, 'ndpi.record',
                    f'unknown field type {ftype} on {record.tag_name}',
                    record.entry_offset)
        record.value = decode_field(ftype, record.count, inline)
        return

    size = record.count * element_size(ftype)
    record.size = size

    always_external = (ftype == FieldType.ASCII
                       and record.tag in config.external_ascii_tags)
    if size > IFD_INLINE_SIZE or always_external:
        offset = (record.high_word << 32) | record.value_field
        record.is_inline = False
        record.value_offset = offset
        data = source.read_at(offset, size, 'ndpi.record')
        record.value = decode_field(ftype, record.count, data)
        return

    record.value_offset = record.entry_offset + 8
    if record.high_word:
        if ftype == FieldType.LONG and record.count == 1:
            wide = (record.high_word << 32) | record.value_field
            record.value = FieldValue(ftype, 1, (wide,))
            return
        raise UnsupportedExtensionError(
            f'high word {record.high_word:#x} on inline '
            f'{FieldType(ftype).name} x{record.count} ({record.tag_name})',
            'ndpi.record', record.entry_offset)
    record.value = decode_field(ftype, record.count, inline[:size])


def read_ifd(source: ByteSource, ifd_offset: int, sequence_number: int,
             config: Optional[DecodeConfig] = None) -> Directory:
    """Read one IFD and resolve all of its record values.

    Record-scoped failures are stored on the record; the rest of the
    directory still decodes.
    """
    config = config or DecodeConfig.default()
    directory = Directory(sequence_number=sequence_number, offset=ifd_offset)

    (num_records,) = source.unpack_at('<H', ifd_offset, 'ndpi.directory')
    record_bytes = source.read_at(ifd_offset + 2, IFD_RECORD_SIZE * num_records,
                                  'ndpi.directory')
    (directory.next_offset,) = source.unpack_at(
        '<Q', ifd_offset + 2 + IFD_RECORD_SIZE * num_records, 'ndpi.directory')
    high_words = ()
    if num_records:
        high_words = struct.unpack(
            f'<{num_records}I',
            source.read_at(high_word_offset(ifd_offset, num_records, 0),
                           4 * num_records, 'ndpi.directory'))

    for i in range(num_records):
        source.check_cancelled('ndpi.directory', ifd_offset)
        start = IFD_RECORD_SIZE * i
        tag, ftype, count, value_field = struct.unpack(
            '<HHII', record_bytes[start:start + IFD_RECORD_SIZE])
        record = Record(tag=tag, field_type=ftype, count=count, position=i,
                        entry_offset=ifd_offset + 2 + start,
                        value_field=value_field, high_word=high_words[i])
        try:
            resolve_record(source, record, config)
        except RecordError as e:
            record.value = None
            record.error = e.message
            add_error(record.issues, e)
        directory.records.append(record)

    logger.debug('IFD %d at %d: %d records, next %d', sequence_number,
                 ifd_offset, num_records, directory.next_offset)
    return directory


def iter_ifds(source: ByteSource, header: NDPIHeader,
              config: Optional[DecodeConfig] = None) -> Iterator[Directory]:
    """Walk the IFD chain from the header, yielding each Directory.

    Stops when a next pointer is 0. Raises ChainError if the chain
    points back at an IFD it already visited.
    """
    offset = header.first_ifd_offset
    seen = set()
    sequence_number = 0

    while offset != 0:
        source.check_cancelled('ndpi.chain', offset)
        if offset in seen:
            raise ChainError(
                f'IFD chain revisits offset {offset} after '
                f'{sequence_number} directories', 'ndpi.chain', offset)
        seen.add(offset)
        directory = read_ifd(source, offset, sequence_number, config)
        yield directory
        offset = directory.next_offset
        sequence_number += 1


def decode_ndpi(source: ByteSource,
                config: Optional[DecodeConfig] = None) -> NDPIFile:
    """Decode the header, the whole IFD chain and each IFD's image range."""
    config = config or DecodeConfig.default()
    issues: List[Issue] = []
    header = read_header(source, issues)
    ndpi = NDPIFile(header=header, issues=issues)

    for directory in iter_ifds(source, header, config):
        locate_image_data(directory, source.size)
        ndpi.directories.append(directory)

    logger.debug('%s: %d IFDs decoded', source.name, len(ndpi.directories))
    return ndpi
