"""Format constants for NDPI and CZI (ZISRAW) files."""

from enum import IntEnum
from typing import Dict

# ---------------------------------------------------------------------------
# NDPI (TIFF with 64-bit offset extension)
# ---------------------------------------------------------------------------

NDPI_BYTE_ORDER = b'II'
NDPI_VERSION = 42
NDPI_MAGIC = b'II*\x00'
IFD_RECORD_SIZE = 12        # tag + type + count + inline-or-offset-low
IFD_INLINE_SIZE = 4

STRIP_OFFSETS_TAG = 273
STRIP_BYTE_COUNTS_TAG = 279
NDPI_SCANNER_PROPS_TAG = 65449

# Names used in diagnostics and reports only
TAG_NAMES: Dict[int, str] = {
    254: 'NewSubfileType', 256: 'ImageWidth', 257: 'ImageLength',
    258: 'BitsPerSample', 259: 'Compression', 262: 'PhotometricInterpretation',
    270: 'ImageDescription', 271: 'Make', 272: 'Model',
    273: 'StripOffsets', 277: 'SamplesPerPixel', 278: 'RowsPerStrip',
    279: 'StripByteCounts', 282: 'XResolution', 283: 'YResolution',
    296: 'ResolutionUnit', 305: 'Software', 306: 'DateTime',
    513: 'JPEGInterchangeFormat', 514: 'JPEGInterchangeFormatLength',
    # Hamamatsu NDPI-specific tags
    65420: 'NDPI_FORMAT_FLAG', 65421: 'NDPI_SOURCELENS',
    65422: 'NDPI_XOFFSET', 65423: 'NDPI_YOFFSET',
    65424: 'NDPI_ZOFFSET', 65426: 'NDPI_JPEGQUALITY',
    65427: 'NDPI_REFERENCE', 65428: 'NDPI_IMGSIZE',
    65439: 'NDPI_FOCUSPOINTS', 65441: 'NDPI_CAPTUREMODE',
    65442: 'NDPI_SERIAL_NUMBER', 65449: 'NDPI_SCANNER_PROPS',
    65468: 'NDPI_BARCODE', 65477: 'NDPI_SCANPROFILE',
}

# ---------------------------------------------------------------------------
# CZI (ZISRAW segment container)
# ---------------------------------------------------------------------------

CZI_MAGIC = b'ZISRAWFILE'
SEGMENT_HEADER_SIZE = 32    # 16-byte kind + u64 allocated + u64 used
SEGMENT_KIND_SIZE = 16

SEG_FILE_HEADER = 'ZISRAWFILE'
SEG_METADATA = 'ZISRAWMETADATA'
SEG_SUBBLOCK = 'ZISRAWSUBBLOCK'
SEG_SUBBLOCK_DIRECTORY = 'ZISRAWDIRECTORY'
SEG_ATTACHMENT = 'ZISRAWATTACH'
SEG_ATTACHMENT_DIRECTORY = 'ZISRAWATTDIR'
SEG_DELETED = 'DELETED'

SEGMENT_KINDS = frozenset({
    SEG_FILE_HEADER, SEG_METADATA, SEG_SUBBLOCK, SEG_SUBBLOCK_DIRECTORY,
    SEG_ATTACHMENT, SEG_ATTACHMENT_DIRECTORY, SEG_DELETED,
})

# Fixed body layouts
FILE_HEADER_FORMAT = '<ii8x16s16siQQiQ'
METADATA_HEADER_SIZE = 256
SUBBLOCK_DIRECTORY_HEADER_SIZE = 128
ATTACHMENT_DIRECTORY_HEADER_SIZE = 256
SUBBLOCK_HEADER_FORMAT = '<iiQ'
SUBBLOCK_FIXED_SIZE = 256
ATTACHMENT_HEADER_SIZE = 256
DV_ENTRY_FORMAT = '<2siQiiBx4xi'
DV_ENTRY_SIZE = 32
DIMENSION_ENTRY_FORMAT = '<4siIfI'
DIMENSION_ENTRY_SIZE = 20
A1_ENTRY_FORMAT = '<2s10xQi16s8s80s'
A1_ENTRY_SIZE = 128

# Attachment content types holding an embedded CZI container
CONTAINER_ATTACHMENT_TYPES = frozenset({'CZI', 'ZISRAW'})

DEFAULT_MAX_RECURSION_DEPTH = 8


class CompressionKind(IntEnum):
    UNCOMPRESSED = 0
    JPG = 1
    LZW = 2
    JPGXR = 4
    ZSTD0 = 5
    ZSTD1 = 6


# Values from 100 upward are camera/system specific raw data
RAW_COMPRESSION_VALUE = 100

COMPRESSION_NAMES: Dict[int, str] = {
    0: 'Uncompressed',
    1: 'JpgFile',
    2: 'LZW',
    4: 'JpegXrFile',
    5: 'Zstd0',
    6: 'Zstd1',
}

PIXEL_TYPE_NAMES: Dict[int, str] = {
    0: 'Gray8',
    1: 'Gray16',
    2: 'Gray32Float',
    3: 'Bgr24',
    4: 'Bgr48',
    8: 'Bgr96Float',
    9: 'Bgra32',
    10: 'Gray64ComplexFloat',
    11: 'Bgr192ComplexFloat',
    12: 'Gray32',
    13: 'Gray64',
}
