"""Image-data byte range per NDPI directory."""

from typing import Optional

from wsidecode.constants import STRIP_BYTE_COUNTS_TAG, STRIP_OFFSETS_TAG
from wsidecode.errors import add_warning
from wsidecode.models import ByteRange, Directory


def _first_int(value) -> Optional[int]:
    if isinstance(value, int):
        return value
    if isinstance(value, tuple) and value and isinstance(value[0], int):
        return value[0]
    return None


def locate_image_data(directory: Directory,
                      source_size: Optional[int] = None) -> Optional[ByteRange]:
    """Set and return ``directory.image_data`` from StripOffsets/StripByteCounts.

    NDPI images are single-strip; a multi-strip offset record only earns a
    warning and its first strip is used. Missing or unresolved tags skip
    extraction for this directory.
    """
    offsets = directory.record(STRIP_OFFSETS_TAG)
    counts = directory.record(STRIP_BYTE_COUNTS_TAG)

    missing = [name for name, rec in (('StripOffsets', offsets),
                                      ('StripByteCounts', counts))
               if rec is None]
    if missing:
        add_warning(directory.issues, 'ndpi.image',
                    f'no {" or ".join(missing)} record, image data skipped',
                    directory.offset)
        return None

    offset = _first_int(offsets.value.value) if offsets.value else None
    length = _first_int(counts.value.value) if counts.value else None
    if offset is None or length is None:
        add_warning(directory.issues, 'ndpi.image',
                    'strip records unresolved or not integer, image data skipped',
                    directory.offset)
        return None

    if offsets.count != 1:
        add_warning(directory.issues, 'ndpi.image',
                    f'{offsets.count} strips declared, only the first is used',
                    offsets.entry_offset)

    image_data = ByteRange(offset, length)
    if source_size is not None and image_data.end > source_size:
        add_warning(directory.issues, 'ndpi.image',
                    f'image data [{image_data.offset}, {image_data.end}) runs '
                    f'past end of file ({source_size} bytes)', offset)
    directory.image_data = image_data
    return image_data
