"""JSON reports for decoded NDPI files, CZI containers and batch runs."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import wsidecode
from wsidecode.models import (
    BatchResult,
    ByteRange,
    Container,
    Directory,
    Issue,
    NDPIFile,
    Record,
    SubBlock,
)


def _range(byte_range: Optional[ByteRange]) -> Optional[List[int]]:
    if byte_range is None:
        return None
    return [byte_range.offset, byte_range.length]


def _issue(where: str, issue: Issue) -> Dict:
    return {
        'where': where,
        'severity': issue.severity,
        'component': issue.component,
        'offset': issue.offset,
        'message': issue.message,
    }


def _jsonable(value: Any) -> Any:
    """Make a decoded field value JSON-serializable."""
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    if isinstance(value, float) and value != value:
        return None
    return value


def _record(record: Record) -> Dict:
    return {
        'tag': record.tag,
        'name': record.tag_name,
        'type': record.field_type,
        'count': record.count,
        'inline': record.is_inline,
        'value_offset': record.value_offset,
        'high_word': record.high_word,
        'value': _jsonable(record.value.value) if record.value is not None else None,
        'error': record.error,
    }


def _directory(directory: Directory) -> Dict:
    return {
        'sequence_number': directory.sequence_number,
        'offset': directory.offset,
        'next_offset': directory.next_offset,
        'image_data': _range(directory.image_data),
        'records': [_record(r) for r in directory.records],
    }


def ndpi_report(ndpi: NDPIFile) -> Dict:
    """Full report of a decoded NDPI file."""
    return {
        'format': 'ndpi',
        'header': {
            'byte_order': ndpi.header.byte_order.decode('latin-1'),
            'version': ndpi.header.version,
            'first_ifd_offset': ndpi.header.first_ifd_offset,
            'magic_ok': ndpi.header.magic_ok,
        },
        'directories': [_directory(d) for d in ndpi.directories],
        'issues': [_issue(w, i) for w, i in ndpi.iter_issues()],
    }


def _subblock(subblock: SubBlock) -> Dict:
    entry = subblock.entry
    return {
        'file_offset': entry.file_offset,
        'segment_offset': subblock.segment.offset if subblock.segment else None,
        'pixel_type': entry.pixel_type_name,
        'compression': entry.compression_name,
        'pyramid_kind': entry.pyramid_kind,
        'axes': entry.axes,
        'start': list(entry.start),
        'shape': list(entry.shape),
        'stored_shape': list(entry.stored_shape),
        'downsample': entry.downsample_factor,
        'metadata': _range(subblock.metadata),
        'data': _range(subblock.data),
        'payload': _range(subblock.payload),
        'framing': ({'header_length': subblock.framing.header_length,
                     'interleave_hint': subblock.framing.interleave_hint}
                    if subblock.framing is not None else None),
        'error': subblock.error,
    }


def _container(container: Container) -> Dict:
    header = container.header
    return {
        'base_address': container.base_address,
        'depth': container.depth,
        'version': list(header.version),
        'primary_file_guid': str(header.primary_file_guid),
        'file_guid': str(header.file_guid),
        'file_part': header.file_part,
        'metadata_xml': (_range(container.metadata.xml)
                         if container.metadata is not None else None),
        'subblocks': [_subblock(sb) for sb in container.subblocks],
        'attachments': [
            {
                'name': att.entry.name,
                'type': att.entry.declared_type,
                'guid': str(att.entry.guid),
                'file_offset': att.entry.file_offset,
                'data': _range(att.data),
                'container': (_container(att.container)
                              if att.container is not None else None),
                'error': att.error,
            }
            for att in container.attachments
        ],
    }


def czi_report(container: Container) -> Dict:
    """Full report of a decoded CZI container, nested containers inline."""
    report = {'format': 'czi'}
    report.update(_container(container))
    report['issues'] = [_issue(w, i) for w, i in container.iter_issues()]
    return report


def document_report(document: Any) -> Dict:
    if isinstance(document, NDPIFile):
        return ndpi_report(document)
    if isinstance(document, Container):
        return czi_report(document)
    raise TypeError(f'cannot report on {type(document).__name__}')


def generate_batch_report(batch_result: BatchResult,
                          output_path: Optional[Path] = None,
                          include_documents: bool = False) -> Dict:
    """Summary report of a batch decode run.

    Args:
        batch_result: The BatchResult from decode_batch().
        output_path: If provided, write the report JSON to this file.
        include_documents: Embed each file's full report.

    Returns:
        The report as a dict.
    """
    files = []
    for result in batch_result.results:
        record = {
            'file': str(result.filepath),
            'format': result.format,
            'file_size': result.file_size,
            'decode_time_ms': round(result.decode_time_ms, 1),
            'warnings': result.warning_count,
            'errors': result.error_count,
            'error': result.error,
        }
        if include_documents and result.document is not None:
            record['document'] = document_report(result.document)
        files.append(record)

    report = {
        'generator': f'wsidecode {wsidecode.__version__}',
        'generated': datetime.now().isoformat(timespec='seconds'),
        'summary': {
            'total_files': batch_result.total_files,
            'clean': batch_result.files_clean,
            'with_issues': batch_result.files_with_issues,
            'errors': batch_result.files_errored,
            'total_time_seconds': round(batch_result.total_time_seconds, 2),
        },
        'files': files,
    }

    if output_path is not None:
        write_json(report, output_path)
    return report


def write_json(data: Dict, output_path: Path):
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)
