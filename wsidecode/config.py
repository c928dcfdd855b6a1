"""Decoder configuration."""

import json
from dataclasses import dataclass, field, fields
from typing import FrozenSet

from wsidecode.constants import DEFAULT_MAX_RECURSION_DEPTH, NDPI_SCANNER_PROPS_TAG

# A ZSTD1 header declares its size in one byte, so 255 bytes always cover it
MIN_FRAMING_PROBE_SIZE = 255


@dataclass
class DecodeConfig:
    """Tunable decoder limits and format quirks.

    ``external_ascii_tags`` lists NDPI tags whose ASCII values are always
    stored out of line, even when they would fit in the 4-byte slot.
    """

    max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH
    external_ascii_tags: FrozenSet[int] = field(
        default_factory=lambda: frozenset({NDPI_SCANNER_PROPS_TAG}))
    detect_framing: bool = True
    framing_probe_size: int = MIN_FRAMING_PROBE_SIZE

    def __post_init__(self):
        if self.max_recursion_depth < 0:
            raise ValueError('max_recursion_depth must be >= 0')
        if self.framing_probe_size < MIN_FRAMING_PROBE_SIZE:
            raise ValueError(
                f'framing_probe_size must be >= {MIN_FRAMING_PROBE_SIZE}')

    @classmethod
    def default(cls) -> 'DecodeConfig':
        """Return the built-in defaults."""
        return cls()

    @classmethod
    def from_json(cls, path) -> 'DecodeConfig':
        """Load a config from a JSON file, keeping defaults for omitted keys.

        JSON format::

            {
              "max_recursion_depth": 4,
              "external_ascii_tags": [65449],
              "detect_framing": true,
              "framing_probe_size": 255
            }
        """
        with open(str(path), 'r') as f:
            data = json.load(f)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f'Unknown config keys: {", ".join(unknown)}')

        kwargs = {}
        if 'max_recursion_depth' in data:
            kwargs['max_recursion_depth'] = int(data['max_recursion_depth'])
        if 'external_ascii_tags' in data:
            kwargs['external_ascii_tags'] = frozenset(
                int(t) for t in data['external_ascii_tags'])
        if 'detect_framing' in data:
            kwargs['detect_framing'] = bool(data['detect_framing'])
        if 'framing_probe_size' in data:
            kwargs['framing_probe_size'] = int(data['framing_probe_size'])
        return cls(**kwargs)
