"""Tests for the NDPI tag-directory parser."""

import struct
import threading

import pytest

from wsidecode.config import DecodeConfig
from wsidecode.errors import ChainError, DecodeCancelled, SourceError
from wsidecode.models import Record
from wsidecode.source import ByteSource
from wsidecode.tiff import (
    decode_ndpi,
    high_word_offset,
    iter_ifds,
    read_header,
    read_ifd,
    resolve_record,
)
from tests.conftest import NDPI_FIRST_IFD, build_ndpi, inline


def _decode(content, config=None):
    return decode_ndpi(ByteSource.from_bytes(content), config)


class _RecordingSource:
    """Stand-in source that answers any read with zeros and remembers it."""

    def __init__(self):
        self.reads = []

    def read_at(self, offset, length, component='source'):
        self.reads.append((offset, length))
        return b'\x00' * length


class TestReadHeader:
    def test_valid_header(self):
        source = ByteSource.from_bytes(build_ndpi([[(256, 3, 1, 7)]]))
        issues = []
        header = read_header(source, issues)
        assert header.magic_ok
        assert header.byte_order == b'II'
        assert header.version == 42
        assert header.first_ifd_offset == NDPI_FIRST_IFD
        assert issues == []

    def test_bad_magic_is_warning(self):
        content = build_ndpi([[(256, 3, 1, 7)]], magic=b'MM', version=43)
        ndpi = _decode(content)
        assert not ndpi.header.magic_ok
        assert [i.severity for i in ndpi.issues] == ['warning']
        assert len(ndpi.directories) == 1

    def test_truncated_header_raises(self):
        with pytest.raises(SourceError):
            _decode(b'II*\x00')


class TestHighWordOffset:
    def test_formula(self):
        # D + 12N + 10 + 4i
        assert high_word_offset(100, 3, 0) == 146
        assert high_word_offset(100, 3, 2) == 154

    def test_trailer_follows_next_pointer(self):
        n = 2
        content = build_ndpi([[(256, 4, 1, 1, 0xAA), (257, 4, 1, 2, 0xBB)]])
        pos = high_word_offset(NDPI_FIRST_IFD, n, 1)
        assert struct.unpack_from('<I', content, pos) == (0xBB,)


class TestReadIFD:
    def test_inline_values(self):
        content = build_ndpi([[
            (256, 3, 1, 1024),
            (257, 4, 1, 70000),
            (258, 3, 2, (8 << 16) | 8),
        ]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        assert directory.value(256) == 1024
        assert directory.value(257) == 70000
        assert directory.value(258) == (8, 8)
        assert all(r.is_inline for r in directory.records)
        assert directory.next_offset == 0

    def test_external_ascii(self):
        content = build_ndpi([[(271, 2, 10, b'Hamamatsu\x00')]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        record = directory.record(271)
        assert not record.is_inline
        assert record.size == 10
        assert content[record.value_offset:record.value_offset + 10] == b'Hamamatsu\x00'
        assert record.value.value == 'Hamamatsu'

    def test_short_ascii_inline(self):
        content = build_ndpi([[(305, 2, 3, inline(b'v1\x00'))]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        assert directory.record(305).is_inline
        assert directory.value(305) == 'v1'

    def test_scanner_props_always_external(self):
        content = build_ndpi([[(65449, 2, 4, b'a=1\x00')]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        record = directory.record(65449)
        assert not record.is_inline
        assert record.value.value == 'a=1'

    def test_external_ascii_tags_configurable(self):
        content = build_ndpi([[(305, 2, 4, b'a=1\x00')]])
        config = DecodeConfig(external_ascii_tags=frozenset({305}))
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0,
                             config)
        assert directory.value(305) == 'a=1'

    def test_inline_long_with_high_word_is_64_bit(self):
        content = build_ndpi([[(273, 4, 1, 0x10, 0x1)]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        assert directory.value(273) == (1 << 32) | 0x10
        assert directory.record(273).high_word == 1

    def test_high_word_on_inline_short_is_record_error(self):
        content = build_ndpi([[(256, 3, 1, 5, 0x2), (257, 3, 1, 6)]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        bad = directory.record(256)
        assert bad.value is None
        assert 'high word' in bad.error
        assert bad.issues[0].severity == 'error'
        assert directory.value(257) == 6

    def test_unknown_type_is_warning(self):
        content = build_ndpi([[(40000, 99, 1, 0xDEADBEEF), (256, 3, 1, 1)]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        record = directory.record(40000)
        assert record.error is None
        assert not record.value.known
        assert record.issues[0].severity == 'warning'
        assert directory.value(256) == 1

    def test_empty_ifd(self):
        content = build_ndpi([[]])
        directory = read_ifd(ByteSource.from_bytes(content), NDPI_FIRST_IFD, 0)
        assert directory.records == []

    def test_external_offset_past_end_is_fatal(self):
        content = build_ndpi([[(271, 2, 64, 0x7FFFFFF0)]])
        with pytest.raises(SourceError):
            _decode(content)


class TestResolveRecord:
    def test_external_offset_combines_high_word(self):
        record = Record(tag=270, field_type=2, count=100, position=0,
                        entry_offset=18, value_field=0x200, high_word=0x3)
        source = _RecordingSource()
        resolve_record(source, record, DecodeConfig.default())
        assert source.reads == [((0x3 << 32) | 0x200, 100)]
        assert record.value_offset == (0x3 << 32) | 0x200
        assert record.value_range.length == 100

    def test_inline_value_offset_is_slot(self):
        record = Record(tag=256, field_type=3, count=1, position=0,
                        entry_offset=18, value_field=9)
        resolve_record(_RecordingSource(), record, DecodeConfig.default())
        assert record.value_offset == 26
        assert record.value_range is None


class TestChain:
    def test_walks_all_directories(self):
        content = build_ndpi([[(256, 3, 1, i)] for i in range(3)])
        ndpi = _decode(content)
        assert [d.sequence_number for d in ndpi.directories] == [0, 1, 2]
        assert [d.value(256) for d in ndpi.directories] == [0, 1, 2]
        assert ndpi.directories[-1].next_offset == 0

    def test_zero_first_offset_means_no_directories(self):
        ndpi = _decode(build_ndpi([], first_ifd=0))
        assert ndpi.directories == []

    def test_cycle_raises(self):
        # second IFD points back at the first
        second = NDPI_FIRST_IFD + 2 + 12 + 8 + 4
        content = build_ndpi([[(256, 3, 1, 1)], [(256, 3, 1, 2)]],
                             next_offsets=[second, NDPI_FIRST_IFD])
        with pytest.raises(ChainError) as exc_info:
            _decode(content)
        assert exc_info.value.offset == NDPI_FIRST_IFD

    def test_self_cycle_raises(self):
        content = build_ndpi([[(256, 3, 1, 1)]], next_offsets=[NDPI_FIRST_IFD])
        source = ByteSource.from_bytes(content)
        header = read_header(source, [])
        walked = []
        with pytest.raises(ChainError):
            for directory in iter_ifds(source, header):
                walked.append(directory)
        assert len(walked) == 1

    def test_cancel_stops_walk(self):
        event = threading.Event()
        event.set()
        source = ByteSource.from_bytes(build_ndpi([[(256, 3, 1, 1)]]),
                                       cancel_event=event)
        with pytest.raises(DecodeCancelled):
            decode_ndpi(source)
