"""Zeiss CZI (ZISRAW) format decoder."""

from typing import Dict, Optional

from wsidecode.config import DecodeConfig
from wsidecode.constants import CZI_MAGIC
from wsidecode.czi import decode_container
from wsidecode.formats.base import FormatDecoder
from wsidecode.models import Container
from wsidecode.source import ByteSource


class CZIDecoder(FormatDecoder):
    """Format decoder for Zeiss CZI files, including embedded CZI attachments."""

    format_name = 'czi'
    magic = CZI_MAGIC
    extensions = ('.czi',)

    def decode(self, source: ByteSource,
               config: Optional[DecodeConfig] = None) -> Container:
        return decode_container(source, 0, config)

    def summarize(self, document: Container) -> Dict:
        containers = list(document.iter_containers())
        subblocks = document.all_subblocks
        compressions = sorted({sb.entry.compression_name for sb in subblocks})
        factors = sorted({sb.entry.downsample_factor for sb in subblocks})
        return {
            'version': '%d.%d' % document.header.version,
            'file_guid': str(document.header.file_guid),
            'containers': len(containers),
            'subblocks': len(subblocks),
            'attachments': sum(len(c.attachments) for c in containers),
            'compressions': ', '.join(compressions),
            'pyramid_levels': len(factors),
            'has_metadata': document.metadata is not None,
        }
