"""Exception hierarchy and issue reporting for the decoders.

Four severities of trouble exist while walking a slide file:

- warnings: recorded as an ``Issue`` on the entity and logged, decoding
  continues;
- record/segment-scoped errors (``RecordError``): the record's or
  segment's value is unavailable, siblings still decode;
- traversal errors (``ChainError``): the directory chain or nested
  container branch is abandoned;
- source errors (``SourceError``): the byte source cannot satisfy a read,
  the whole decode fails.
"""

import logging
from typing import List, Optional

from wsidecode.models import Issue


class DecodeError(Exception):
    """Base class for all decoding failures.

    Carries the component that failed and the absolute byte offset it was
    looking at, when known.
    """

    def __init__(self, message: str, component: str = 'decoder',
                 offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is None:
            return f'{self.component}: {self.message}'
        return f'{self.component} at offset {self.offset}: {self.message}'


class SourceError(DecodeError):
    """Read past the end of the byte source or at an invalid offset."""


class DecodeCancelled(DecodeError):
    """The session's cancel event was set between two records/segments."""


class UnknownFormatError(DecodeError):
    """Neither magic signature nor file extension matched a decoder."""


class ChainError(DecodeError):
    """A directory chain revisits an offset already decoded."""


class RecursionLimitError(ChainError):
    """Embedded containers nest deeper than the configured limit."""


class RecordError(DecodeError):
    """Failure scoped to a single record or segment."""


class FieldDecodeError(RecordError):
    """Unknown field type or byte length not matching the declared count."""


class UnsupportedExtensionError(RecordError):
    """Nonzero NDPI high word on an inline value that cannot carry one."""


class FramingError(RecordError):
    """Compressed payload framing header is truncated or unknown."""


class SegmentKindError(RecordError):
    """A reference points at a segment of a different known kind."""


def add_issue(issues: List[Issue], severity: str, component: str,
              message: str, offset: Optional[int] = None) -> Issue:
    """Append an Issue to ``issues`` and log it under ``wsidecode.<component>``."""
    issue = Issue(severity=severity, component=component,
                  message=message, offset=offset)
    issues.append(issue)
    level = logging.WARNING if severity == 'warning' else logging.ERROR
    logging.getLogger(f'wsidecode.{component}').log(level, '%s', issue)
    return issue


def add_warning(issues: List[Issue], component: str, message: str,
                offset: Optional[int] = None) -> Issue:
    return add_issue(issues, 'warning', component, message, offset)


def add_error(issues: List[Issue], error: DecodeError) -> Issue:
    """Record a scoped DecodeError as an error Issue."""
    return add_issue(issues, 'error', error.component, error.message,
                     error.offset)
