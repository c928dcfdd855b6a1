"""NDPI tag-directory engine package.

Re-exports the public names so ``from wsidecode.tiff import X`` works for
everything in parser.py and image_data.py.
"""

# --- parser.py: header, IFD reading, record value resolution, chain walk ---
from wsidecode.tiff.parser import (  # noqa: F401
    decode_ndpi,
    high_word_offset,
    iter_ifds,
    read_header,
    read_ifd,
    resolve_record,
)

# --- image_data.py: StripOffsets/StripByteCounts image range ---
from wsidecode.tiff.image_data import locate_image_data  # noqa: F401
