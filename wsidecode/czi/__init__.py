"""CZI (ZISRAW) segment-directory engine package."""

# --- segments.py: segment framing and fixed segment bodies ---
from wsidecode.czi.segments import (  # noqa: F401
    iter_segments,
    read_a1_entry,
    read_dv_entry,
    read_file_header,
    read_metadata,
    read_segment_header,
)

# --- framing.py: ZSTD1 payload header detection ---
from wsidecode.czi.framing import detect_framing  # noqa: F401

# --- container.py: container decode, eager directory resolution, nesting ---
from wsidecode.czi.container import (  # noqa: F401
    decode_container,
    resolve_attachment,
    resolve_subblock,
)
