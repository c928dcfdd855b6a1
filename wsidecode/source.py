"""Random-access byte source shared by the NDPI and CZI decoders.

Wraps an open binary file handle (or an in-memory buffer) and offers the
two reads the decoders need: "N bytes at absolute offset O" and "N bytes
at the cursor". Every short read is a positional ``SourceError``.
"""

import io
import os
import struct
import threading
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from wsidecode.errors import DecodeCancelled, SourceError


class ByteSource:
    """Seekable, bounds-checked view over a binary stream."""

    def __init__(self, fh: BinaryIO, name: str = '<stream>',
                 cancel_event: Optional[threading.Event] = None,
                 owns_handle: bool = False):
        self._fh = fh
        self._lock = threading.Lock()
        self._owns_handle = owns_handle
        self.name = name
        self.cancel_event = cancel_event
        fh.seek(0, os.SEEK_END)
        self.size = fh.tell()
        fh.seek(0)
        self._cursor = 0

    @classmethod
    def from_bytes(cls, data: bytes, name: str = '<bytes>',
                   cancel_event: Optional[threading.Event] = None) -> 'ByteSource':
        return cls(io.BytesIO(data), name=name, cancel_event=cancel_event,
                   owns_handle=True)

    @classmethod
    def open(cls, filepath, cancel_event: Optional[threading.Event] = None) -> 'ByteSource':
        """Open a file for reading. Use as a context manager to close it."""
        filepath = Path(filepath)
        return cls(open(filepath, 'rb'), name=filepath.name,
                   cancel_event=cancel_event, owns_handle=True)

    def close(self):
        if self._owns_handle:
            self._fh.close()

    def __enter__(self) -> 'ByteSource':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    # --- reads ---

    def read_at(self, offset: int, length: int,
                component: str = 'source') -> bytes:
        """Read exactly ``length`` bytes at absolute ``offset``."""
        if offset < 0 or length < 0:
            raise SourceError(f'invalid read of {length} bytes',
                              component, offset)
        if offset + length > self.size:
            raise SourceError(
                f'read of {length} bytes runs past end of {self.name} '
                f'({self.size} bytes)', component, offset)
        with self._lock:
            self._fh.seek(offset)
            data = self._fh.read(length)
        if len(data) < length:
            raise SourceError(f'short read ({len(data)} of {length} bytes)',
                              component, offset)
        return data

    def read(self, length: int, component: str = 'source') -> bytes:
        """Read ``length`` bytes at the cursor and advance it."""
        data = self.read_at(self._cursor, length, component)
        self._cursor += length
        return data

    def seek(self, offset: int):
        self._cursor = offset

    def tell(self) -> int:
        return self._cursor

    def unpack_at(self, fmt: str, offset: int,
                  component: str = 'source') -> Tuple:
        """struct.unpack ``fmt`` from the bytes at ``offset``."""
        return struct.unpack(fmt, self.read_at(offset, struct.calcsize(fmt),
                                               component))

    def unpack(self, fmt: str, component: str = 'source') -> Tuple:
        """struct.unpack ``fmt`` at the cursor, advancing it."""
        return struct.unpack(fmt, self.read(struct.calcsize(fmt), component))

    def check_cancelled(self, component: str = 'source',
                        offset: Optional[int] = None):
        """Raise DecodeCancelled if the session's cancel event is set."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise DecodeCancelled('decode cancelled', component, offset)
