"""Tests for ZSTD1 payload framing detection."""

import pytest

from wsidecode.constants import CompressionKind
from wsidecode.czi import detect_framing
from wsidecode.errors import FramingError


class TestDetectFraming:
    def test_non_zstd1_has_no_framing(self):
        for kind in (CompressionKind.UNCOMPRESSED, CompressionKind.JPG,
                     CompressionKind.ZSTD0):
            framing = detect_framing(kind, b'\x05\x01\x01')
            assert framing.header_length == 0
            assert not framing.interleave_hint

    def test_size_byte_only(self):
        framing = detect_framing(CompressionKind.ZSTD1, b'\x01\x28\xb5\x2f\xfd')
        assert framing.header_length == 1
        assert not framing.interleave_hint

    def test_zero_header(self):
        assert detect_framing(CompressionKind.ZSTD1, b'\x00').header_length == 0

    def test_chunk_with_hilo_flag(self):
        framing = detect_framing(CompressionKind.ZSTD1, b'\x03\x01\x01payload')
        assert framing.header_length == 3
        assert framing.interleave_hint

    def test_chunk_without_hilo_flag(self):
        framing = detect_framing(CompressionKind.ZSTD1, b'\x03\x01\x00payload')
        assert framing.header_length == 3
        assert not framing.interleave_hint

    def test_padded_header(self):
        framing = detect_framing(CompressionKind.ZSTD1, b'\x05\x01\x01\x00\x00')
        assert framing.header_length == 5

    def test_empty_payload_raises(self):
        with pytest.raises(FramingError):
            detect_framing(CompressionKind.ZSTD1, b'')

    def test_header_longer_than_payload_raises(self):
        with pytest.raises(FramingError):
            detect_framing(CompressionKind.ZSTD1, b'\x09\x01\x01')

    def test_header_too_small_for_chunk_raises(self):
        with pytest.raises(FramingError):
            detect_framing(CompressionKind.ZSTD1, b'\x02\x01')

    def test_unknown_chunk_type_raises(self):
        with pytest.raises(FramingError, match='chunk type 7'):
            detect_framing(CompressionKind.ZSTD1, b'\x03\x07\x01')
