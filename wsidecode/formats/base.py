"""Abstract base class for slide format decoders."""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from wsidecode.config import DecodeConfig
from wsidecode.errors import DecodeError
from wsidecode.source import ByteSource


class FormatDecoder(ABC):
    """Base class for all format decoders.

    Each decoder knows its magic signature and file extensions, decodes a
    byte source into its document tree, and summarizes a file.
    """

    format_name = 'unknown'
    magic = b''
    extensions: Tuple[str, ...] = ()

    def matches_magic(self, head: bytes) -> bool:
        return bool(self.magic) and head.startswith(self.magic)

    def can_handle(self, filepath: Path, head: bytes = b'') -> bool:
        """Magic signature first; the extension only when there is no head."""
        if head:
            return self.matches_magic(head)
        return filepath.suffix.lower() in self.extensions

    @abstractmethod
    def decode(self, source: ByteSource,
               config: Optional[DecodeConfig] = None) -> Any:
        """Decode ``source`` into an NDPIFile or Container."""
        ...

    @abstractmethod
    def summarize(self, document: Any) -> Dict:
        """Format-specific summary fields of a decoded document."""
        ...

    def get_format_info(self, filepath: Path,
                        config: Optional[DecodeConfig] = None) -> Dict:
        """Decode a file and return a summary dict.

        Decode failures are reported under 'error' instead of raising.
        """
        info = {
            'format': self.format_name,
            'filename': filepath.name,
            'file_size': os.path.getsize(filepath),
        }
        try:
            with ByteSource.open(filepath) as source:
                document = self.decode(source, config)
        except DecodeError as e:
            info['error'] = str(e)
            return info

        info.update(self.summarize(document))
        issues = [issue for _, issue in document.iter_issues()]
        info['warnings'] = sum(1 for i in issues if i.severity == 'warning')
        info['errors'] = sum(1 for i in issues if i.severity == 'error')
        return info
