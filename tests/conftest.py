"""Shared test fixtures -- synthetic NDPI and CZI file generators."""

import struct
import uuid

import pytest

NDPI_FIRST_IFD = 16


def inline(value: bytes) -> int:
    """Pack up to 4 bytes into the little-endian inline value slot."""
    return int.from_bytes(value.ljust(4, b'\x00'), 'little')


def _ifd_size(entries):
    n = len(entries)
    ool = sum(len(e[3]) for e in entries if isinstance(e[3], bytes))
    return 2 + 12 * n + 8 + 4 * n + ool


def build_ndpi(ifd_entries_list, next_offsets=None, magic=b'II', version=42,
               first_ifd=None):
    """Build an NDPI file in memory.

    Args:
        ifd_entries_list: List of lists, each inner list holds
            (tag, type, count, value[, high_word]) tuples for one IFD.
            An int value goes in the inline slot; bytes go to the IFD's
            data area and the slot gets their offset.
        next_offsets: Override for each IFD's u64 next pointer (for cycles).
        magic, version: Header byte order and version.
        first_ifd: Override for the header's first-IFD pointer.

    Returns:
        bytes: Complete NDPI file content.
    """
    starts = []
    offset = NDPI_FIRST_IFD
    for entries in ifd_entries_list:
        starts.append(offset)
        offset += _ifd_size(entries)

    if first_ifd is None:
        first_ifd = starts[0] if starts else 0
    result = struct.pack('<2sHQ', magic, version, first_ifd)
    result += b'\x00' * (NDPI_FIRST_IFD - len(result))

    for i, entries in enumerate(ifd_entries_list):
        n = len(entries)
        data_start = starts[i] + 2 + 12 * n + 8 + 4 * n
        ifd_bytes = struct.pack('<H', n)
        high_words = b''
        data_bytes = b''
        for entry in entries:
            tag, ftype, count, value = entry[:4]
            high = entry[4] if len(entry) > 4 else 0
            if isinstance(value, bytes):
                low = data_start + len(data_bytes)
                data_bytes += value
            else:
                low = value
            ifd_bytes += struct.pack('<HHII', tag, ftype, count, low)
            high_words += struct.pack('<I', high)

        if next_offsets is not None:
            next_ifd = next_offsets[i]
        elif i + 1 < len(ifd_entries_list):
            next_ifd = starts[i + 1]
        else:
            next_ifd = 0
        ifd_bytes += struct.pack('<Q', next_ifd) + high_words + data_bytes
        result += ifd_bytes

    return result


def build_ndpi_with_strips(strips, extra_entries=()):
    """Build an NDPI file with one single-strip IFD per entry of ``strips``.

    Strip data is appended after the last IFD; each IFD gets StripOffsets
    (273) and StripByteCounts (279) pointing at its strip.
    """
    def ifds(offsets):
        return [list(extra_entries) + [(273, 4, 1, off), (279, 4, 1, len(s))]
                for off, s in zip(offsets, strips)]

    pos = len(build_ndpi(ifds([0] * len(strips))))
    offsets = []
    for strip in strips:
        offsets.append(pos)
        pos += len(strip)
    return build_ndpi(ifds(offsets)) + b''.join(strips)


# ---------------------------------------------------------------------------
# CZI builders
# ---------------------------------------------------------------------------

FILE_GUID = uuid.UUID('12345678-1234-5678-9abc-def012345678')


def segment(kind: str, body: bytes, allocated=None, used=None) -> bytes:
    """A ZISRAW segment: 32-byte header followed by ``body``."""
    used = len(body) if used is None else used
    allocated = len(body) if allocated is None else allocated
    return (struct.pack('<16sQQ', kind.encode('ascii'), allocated, used)
            + body.ljust(allocated, b'\x00'))


def dv_entry(dims, file_offset=0, compression=0, pixel_type=0, pyramid=0,
             file_part=0, schema=b'DV') -> bytes:
    """A DV directory entry; ``dims`` is a list of (axis, start, size, stored)."""
    raw = struct.pack('<2siQiiBx4xi', schema, pixel_type, file_offset,
                      file_part, compression, pyramid, len(dims))
    for axis, start, size, stored in dims:
        raw += struct.pack('<4siIfI', axis.encode('ascii'), start, size,
                           float(start), stored)
    return raw


def a1_entry(file_offset, name='Thumbnail', content_type='JPG',
             guid=FILE_GUID, schema=b'A1') -> bytes:
    return struct.pack('<2s10xQi16s8s80s', schema, file_offset, 0,
                       guid.bytes_le, content_type.encode('ascii'),
                       name.encode('utf-8'))


def subblock(dims, data=b'', compression=0, pixel_type=0, pyramid=0,
             metadata=b'', attachment=b'', header_dims=None):
    """Spec for one sub-block passed to build_czi()."""
    return {
        'dims': dims, 'data': data, 'compression': compression,
        'pixel_type': pixel_type, 'pyramid': pyramid, 'metadata': metadata,
        'attachment': attachment,
        'header_dims': dims if header_dims is None else header_dims,
    }


def attachment(data, name='Thumbnail', content_type='JPG', guid=FILE_GUID,
               header_type=None, header_guid=None):
    """Spec for one attachment passed to build_czi().

    ``header_type`` and ``header_guid`` override the A1 copy inside the
    attachment segment; by default it matches the directory entry.
    """
    return {
        'data': data, 'name': name, 'type': content_type, 'guid': guid,
        'header_type': content_type if header_type is None else header_type,
        'header_guid': guid if header_guid is None else header_guid,
    }


def _subblock_segment(spec) -> bytes:
    copy = dv_entry(spec['header_dims'], compression=spec['compression'],
                    pixel_type=spec['pixel_type'], pyramid=spec['pyramid'])
    fixed = max(256, 16 + len(copy))
    body = struct.pack('<iiQ', len(spec['metadata']), len(spec['attachment']),
                       len(spec['data']))
    body = (body + copy).ljust(fixed, b'\x00')
    body += spec['metadata'] + spec['data'] + spec['attachment']
    return segment('ZISRAWSUBBLOCK', body)


def _attachment_segment(spec) -> bytes:
    body = struct.pack('<Q8x', len(spec['data']))
    body += a1_entry(0, spec['name'], spec['header_type'], spec['header_guid'])
    body = body.ljust(256, b'\x00') + spec['data']
    return segment('ZISRAWATTACH', body)


def build_czi(subblocks=(), attachments=(), metadata_xml=b'<ImageDocument/>',
              version=(1, 0), layout=None, subblock_directory=True):
    """Build a CZI container in memory.

    Offsets inside are relative to the container start, so the result can
    be embedded as the data of another container's attachment.

    Args:
        subblocks: Specs from subblock().
        attachments: Specs from attachment().
        metadata_xml: XML bytes, or None for no metadata segment.
        version: (major, minor) written to the file header.
        layout: Optional dict filled with the relative segment offsets.
        subblock_directory: Write a sub-block directory segment.

    Returns:
        bytes: Complete CZI container content.
    """
    header_size = 32 + 512
    layout = {} if layout is None else layout
    body = b''

    def place(segment_bytes):
        nonlocal body
        offset = header_size + len(body)
        body += segment_bytes
        return offset

    metadata_position = 0
    if metadata_xml is not None:
        meta_body = struct.pack('<ii', len(metadata_xml), 0).ljust(256, b'\x00')
        metadata_position = place(segment('ZISRAWMETADATA',
                                          meta_body + metadata_xml))
    layout['metadata'] = metadata_position

    layout['subblocks'] = [place(_subblock_segment(s)) for s in subblocks]
    layout['attachments'] = [place(_attachment_segment(a)) for a in attachments]

    directory_position = 0
    if subblock_directory:
        entries = b''.join(
            dv_entry(s['dims'], file_offset=off, compression=s['compression'],
                     pixel_type=s['pixel_type'], pyramid=s['pyramid'])
            for s, off in zip(subblocks, layout['subblocks']))
        dir_body = struct.pack('<i', len(subblocks)).ljust(128, b'\x00') + entries
        directory_position = place(segment('ZISRAWDIRECTORY', dir_body))
    layout['subblock_directory'] = directory_position

    attachment_directory_position = 0
    if attachments:
        entries = b''.join(
            a1_entry(off, a['name'], a['type'], a['guid'])
            for a, off in zip(attachments, layout['attachments']))
        dir_body = struct.pack('<i', len(attachments)).ljust(256, b'\x00') + entries
        attachment_directory_position = place(segment('ZISRAWATTDIR', dir_body))
    layout['attachment_directory'] = attachment_directory_position

    header_body = struct.pack(
        '<ii8x16s16siQQiQ', version[0], version[1], FILE_GUID.bytes_le,
        FILE_GUID.bytes_le, 0, directory_position, metadata_position, 0,
        attachment_directory_position)
    header = segment('ZISRAWFILE', header_body.ljust(512, b'\x00'))
    return header + body


def attachment_data_offset(layout, index, base=0):
    """Absolute offset of attachment ``index``'s data."""
    return base + layout['attachments'][index] + 32 + 256


TILE_DIMS = [('X', 0, 256, 256), ('Y', 0, 256, 256), ('C', 0, 1, 1)]


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def ndpi_bytes():
    """Two-page NDPI with image strips and a scanner-properties string."""
    return build_ndpi_with_strips(
        [b'\xff\xd8' + b'\x11' * 30 + b'\xff\xd9', b'\xff\xd8' + b'\x22' * 10],
        extra_entries=[
            (256, 3, 1, 1024),
            (271, 2, 10, b'Hamamatsu\x00'),
            (65449, 2, 4, b'a=1\x00'),
        ])


@pytest.fixture
def tmp_ndpi(tmp_path, ndpi_bytes):
    filepath = tmp_path / 'slide.ndpi'
    filepath.write_bytes(ndpi_bytes)
    return filepath


@pytest.fixture
def czi_bytes():
    """CZI with one raw tile, one ZSTD1 tile and a thumbnail attachment."""
    return build_czi(
        subblocks=[
            subblock(TILE_DIMS, data=b'\x00' * 64),
            subblock([('X', 0, 512, 256), ('Y', 0, 512, 256), ('C', 0, 1, 1)],
                     data=bytes([3, 1, 1]) + b'zstd-stream', compression=6,
                     pyramid=1),
        ],
        attachments=[attachment(b'\xff\xd8thumb\xff\xd9')],
    )


@pytest.fixture
def tmp_czi(tmp_path, czi_bytes):
    filepath = tmp_path / 'slide.czi'
    filepath.write_bytes(czi_bytes)
    return filepath
