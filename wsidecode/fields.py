"""Typed field decoder for TIFF/NDPI record values -- stdlib only (struct module).

All values are little-endian. The field type set is closed; unknown type
codes decode to a placeholder that keeps the raw bytes for diagnostics.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, NamedTuple, Tuple, Union

from wsidecode.errors import FieldDecodeError


class FieldType(IntEnum):
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12
    LONG8 = 16
    SLONG8 = 17


# {field_type: (element_size_bytes, struct_format_char)}
FIELD_TYPES: Dict[int, Tuple[int, str]] = {
    FieldType.BYTE: (1, 'B'),
    FieldType.ASCII: (1, 's'),
    FieldType.SHORT: (2, 'H'),
    FieldType.LONG: (4, 'I'),
    FieldType.RATIONAL: (8, 'II'),
    FieldType.SBYTE: (1, 'b'),
    FieldType.UNDEFINED: (1, 's'),
    FieldType.SSHORT: (2, 'h'),
    FieldType.SLONG: (4, 'i'),
    FieldType.SRATIONAL: (8, 'ii'),
    FieldType.FLOAT: (4, 'f'),
    FieldType.DOUBLE: (8, 'd'),
    FieldType.LONG8: (8, 'Q'),
    FieldType.SLONG8: (8, 'q'),
}


class Rational(NamedTuple):
    numerator: int
    denominator: int

    def __float__(self) -> float:
        if self.denominator == 0:
            return float('nan')
        return self.numerator / self.denominator


@dataclass(frozen=True)
class FieldValue:
    """Decoded record value.

    ``values`` is a tuple of numbers or Rationals for numeric types, a str
    for ASCII and bytes for UNDEFINED or unknown types.
    """
    field_type: int
    count: int
    values: Union[tuple, str, bytes]
    known: bool = True

    @property
    def value(self):
        """Scalar for single-element numeric values, else ``values``."""
        if isinstance(self.values, tuple) and self.count == 1:
            return self.values[0]
        return self.values


def is_known_type(field_type: int) -> bool:
    return field_type in FIELD_TYPES


def element_size(field_type: int) -> int:
    try:
        return FIELD_TYPES[field_type][0]
    except KeyError:
        raise FieldDecodeError(f'unknown field type {field_type}',
                               'fields') from None


def decode_field(field_type: int, count: int, data: bytes) -> FieldValue:
    """Decode ``count`` elements of ``field_type`` from ``data``.

    ``data`` must hold exactly ``count * element_size(field_type)`` bytes.
    Unknown types return a placeholder FieldValue with ``known=False``.
    """
    if field_type not in FIELD_TYPES:
        return FieldValue(field_type, count, bytes(data), known=False)

    size, fmt_char = FIELD_TYPES[field_type]
    if len(data) != count * size:
        raise FieldDecodeError(
            f'{FieldType(field_type).name} x{count} needs {count * size} '
            f'bytes, got {len(data)}', 'fields')

    if field_type == FieldType.ASCII:
        text = bytes(data).rstrip(b'\x00')
        return FieldValue(field_type, count, text.decode('ascii', errors='replace'))
    if field_type == FieldType.UNDEFINED:
        return FieldValue(field_type, count, bytes(data))

    flat = struct.unpack('<' + fmt_char * count, data)
    if field_type in (FieldType.RATIONAL, FieldType.SRATIONAL):
        values = tuple(Rational(flat[i], flat[i + 1])
                       for i in range(0, len(flat), 2))
    else:
        values = tuple(flat)
    return FieldValue(field_type, count, values)
