"""Hamamatsu NDPI format decoder.

NDPI files are little-endian TIFF with 8-byte IFD pointers and per-record
high words for offsets beyond 4 GB. Decoding walks the whole IFD chain and
locates each IFD's single-strip image data.
"""

from typing import Dict, Optional

from wsidecode.config import DecodeConfig
from wsidecode.constants import NDPI_MAGIC
from wsidecode.formats.base import FormatDecoder
from wsidecode.models import NDPIFile
from wsidecode.source import ByteSource
from wsidecode.tiff import decode_ndpi

# NDPI_SOURCELENS values for special (non-slide) images
NDPI_SOURCELENS_TAG = 65421
NDPI_MACRO_LENS = -1.0    # Map/overview image
NDPI_BARCODE_LENS = -2.0  # Barcode area image


class NDPIDecoder(FormatDecoder):
    """Format decoder for Hamamatsu NDPI files."""

    format_name = 'ndpi'
    magic = NDPI_MAGIC
    extensions = ('.ndpi',)

    def decode(self, source: ByteSource,
               config: Optional[DecodeConfig] = None) -> NDPIFile:
        return decode_ndpi(source, config)

    def summarize(self, document: NDPIFile) -> Dict:
        info = {
            'magic_ok': document.header.magic_ok,
            'first_ifd_offset': document.header.first_ifd_offset,
            'page_count': len(document.directories),
            'image_ranges': len(document.image_ranges),
        }
        if document.directories:
            first = document.directories[0]
            for tag, key in ((271, 'make'), (272, 'model'), (305, 'software')):
                value = first.value(tag)
                if isinstance(value, str):
                    info[key] = value
        lenses = [d.value(NDPI_SOURCELENS_TAG) for d in document.directories]
        info['overview_images'] = sum(1 for v in lenses
                                   if v in (NDPI_MACRO_LENS, NDPI_BARCODE_LENS))
        return info
