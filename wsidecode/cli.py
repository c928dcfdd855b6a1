"""CLI interface for wsidecode -- info, ranges, segments, dump, scan subcommands."""

import sys
import time
from pathlib import Path

import click

import wsidecode
from wsidecode.batch import collect_slide_files, decode_batch
from wsidecode.config import DecodeConfig
from wsidecode.czi import iter_segments
from wsidecode.errors import DecodeError
from wsidecode.formats import decode_file, detect_format, get_decoder
from wsidecode.log import (
    cli_bold,
    cli_dim,
    cli_error,
    cli_header,
    cli_info,
    cli_issue,
    cli_separator,
    cli_success,
    cli_warning,
    log_error,
    log_info,
    log_warn,
    setup_logging,
    strip_ansi,
)
from wsidecode.models import NDPIFile
from wsidecode.report import document_report, generate_batch_report, write_json
from wsidecode.source import ByteSource


class _Session:
    """Per-invocation state shared by the subcommands."""

    def __init__(self, config: DecodeConfig, log_path=None):
        self.config = config
        self.log_file = open(log_path, 'a') if log_path else None

    def echo(self, msg: str = '', plain: str = None, level: str = 'info',
             err: bool = False):
        """Print ``msg``; log ``plain``, or ``msg`` stripped of colors."""
        click.echo(msg, err=err)
        if self.log_file:
            fmt = {'info': log_info, 'warn': log_warn, 'error': log_error}[level]
            self.log_file.write(fmt(strip_ansi(msg) if plain is None else plain) + '\n')
            self.log_file.flush()

    def close(self):
        if self.log_file:
            self.log_file.close()
            self.log_file = None


def _single_file(path: str) -> Path:
    filepath = Path(path)
    if filepath.is_dir():
        click.echo(cli_error('Error: this command requires a single file, '
                             'not a directory.'), err=True)
        sys.exit(1)
    return filepath


def _decode_or_exit(session: _Session, filepath: Path):
    try:
        return decode_file(filepath, session.config)
    except DecodeError as e:
        session.echo(cli_error(f'Error: {e}'), f'{filepath}: {e}',
                     level='error', err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=wsidecode.__version__, prog_name='wsidecode')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON decoder configuration file.')
@click.option('--log', 'log_path', type=click.Path(), help='Append a log to this file.')
@click.option('--debug', is_flag=True, help='Enable DEBUG logging on stderr.')
@click.pass_context
def main(ctx, config_path, log_path, debug):
    """wsidecode -- structural decoder for NDPI and CZI whole-slide images.

    Walks NDPI tag directories and CZI segment directories and reports
    where the image data lives, without decompressing any pixels.
    """
    setup_logging(debug)
    try:
        config = DecodeConfig.from_json(config_path) if config_path else DecodeConfig.default()
    except ValueError as e:
        click.echo(cli_error(f'Error: invalid config {config_path}: {e}'), err=True)
        sys.exit(1)
    session = _Session(config, log_path)
    ctx.obj = session
    ctx.call_on_close(session.close)


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.pass_obj
def info(session, path):
    """Show format and structure summary for a slide file."""
    filepath = _single_file(path)
    try:
        decoder = get_decoder(filepath)
    except DecodeError as e:
        session.echo(cli_error(f'Error: {e}'), str(e), level='error', err=True)
        sys.exit(1)
    file_info = decoder.get_format_info(filepath, session.config)

    session.echo(cli_header(f'File: {filepath.name}'), f'File: {filepath}')
    session.echo(f'Format: {file_info["format"]}')
    session.echo(f'Size: {file_info.get("file_size", 0) / 1e6:.1f} MB')

    if 'error' in file_info:
        session.echo(cli_error(f'Error: {file_info["error"]}'),
                     file_info['error'], level='error')
        sys.exit(1)

    for key, value in file_info.items():
        if key not in ('format', 'filename', 'file_size'):
            session.echo(f'{key}: {value}')


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.pass_obj
def ranges(session, path):
    """List the image-data byte ranges of a slide file."""
    filepath = _single_file(path)
    document = _decode_or_exit(session, filepath)

    session.echo(cli_header(f'{filepath.name} -- image data ranges'))
    if isinstance(document, NDPIFile):
        for seq, byte_range in document.image_ranges:
            session.echo(f'  ifd[{seq}]  offset {byte_range.offset}  '
                         f'length {byte_range.length}')
        count = len(document.image_ranges)
    else:
        subblocks = document.all_subblocks
        for sb in subblocks:
            if sb.payload is None:
                session.echo(cli_warning(f'  subblock @{sb.entry.file_offset}  '
                                         f'unresolved: {sb.error}'),
                             level='warn')
                continue
            framing = ''
            if sb.framing is not None and sb.framing.header_length:
                framing = (f'  header {sb.framing.header_length}'
                           f'{" hilo" if sb.framing.interleave_hint else ""}')
            session.echo(f'  {sb.entry.axes} {list(sb.entry.start)}  '
                         f'{sb.entry.compression_name}  offset {sb.payload.offset}  '
                         f'length {sb.payload.length}{framing}')
        count = sum(1 for sb in subblocks if sb.payload is not None)
    session.echo(cli_dim(f'{count} range(s)'))


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.pass_obj
def segments(session, path):
    """List the ZISRAW segments of a CZI file in file order."""
    filepath = _single_file(path)
    if detect_format(filepath) != 'czi':
        session.echo(cli_error('Error: segments requires a CZI file.'),
                     level='error', err=True)
        sys.exit(1)

    count = 0
    try:
        with ByteSource.open(filepath) as source:
            for segment in iter_segments(source):
                count += 1
                line = (f'  {segment.offset:>12}  {segment.kind:<16} '
                        f'allocated {segment.allocated_size}  used {segment.used_size}')
                if segment.issues:
                    session.echo(cli_warning(line), level='warn')
                    for issue in segment.issues:
                        session.echo(cli_dim(f'      {issue}'), level='warn')
                else:
                    session.echo(line)
    except DecodeError as e:
        session.echo(cli_error(f'Error: {e}'), str(e), level='error', err=True)
        sys.exit(1)
    session.echo(cli_dim(f'{count} segment(s)'))


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.option('--json-out', type=click.Path(), help='Write the report JSON to file.')
@click.pass_obj
def dump(session, path, json_out):
    """Print every decoded record, segment and issue of a slide file."""
    filepath = _single_file(path)
    document = _decode_or_exit(session, filepath)
    report = document_report(document)

    if json_out:
        write_json(report, Path(json_out))
        session.echo(f'Report written to {json_out}')
        return

    session.echo(cli_header(f'{filepath.name} ({report["format"]})'))
    session.echo(cli_separator(), '-' * 60)
    if report['format'] == 'ndpi':
        for directory in report['directories']:
            session.echo(cli_bold(f'IFD {directory["sequence_number"]} '
                                  f'@{directory["offset"]}'))
            for rec in directory['records']:
                value = rec['error'] or rec['value']
                session.echo(f'  {rec["tag"]:>5} {rec["name"]:<28} {value}')
    else:
        for container in document.iter_containers():
            session.echo(cli_bold(f'Container @{container.base_address} '
                                  f'(depth {container.depth})'))
            for sb in container.subblocks:
                session.echo(f'  subblock {sb.entry.axes} {list(sb.entry.shape)} '
                             f'{sb.entry.compression_name} '
                             f'{cli_dim("@" + str(sb.entry.file_offset))}')
            for att in container.attachments:
                session.echo(f'  attachment {att.entry.name} '
                             f'[{att.entry.declared_type}] '
                             f'{cli_dim("@" + str(att.entry.file_offset))}')
    if report['issues']:
        session.echo(cli_separator(), '-' * 60)
        for issue in report['issues']:
            line = (f'{issue["where"]}: [{issue["severity"]}] '
                    f'{issue["component"]}: {issue["message"]}')
            session.echo(cli_issue(issue['severity'], line), line,
                         level='warn' if issue['severity'] == 'warning' else 'error')


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.option('--verbose', '-v', is_flag=True, help='Show every issue.')
@click.option('--format', 'fmt', type=click.Choice(['ndpi', 'czi']),
              help='Only decode files of this format.')
@click.option('--workers', '-w', type=int, default=1,
              help='Number of parallel workers (default: 1, sequential).')
@click.option('--json-out', type=click.Path(), help='Write the batch report JSON to file.')
@click.pass_obj
def scan(session, path, verbose, fmt, workers, json_out):
    """Decode every slide file under PATH and summarize problems.

    PATH can be a single file or a directory to scan recursively.
    """
    input_path = Path(path)
    files = collect_slide_files(input_path, format_filter=fmt)
    if not files:
        session.echo(f'No slide files found in {input_path}')
        return

    workers_str = f', {workers} workers' if workers > 1 else ''
    session.echo(cli_header(f'wsidecode v{wsidecode.__version__}'
                            f' -- decoding {len(files)} file(s){workers_str}'))

    t0 = time.time()

    def progress(i, total, filepath, result):
        elapsed = time.time() - t0
        rate = i / elapsed if elapsed > 0 else 0
        prefix = f'  [{i}/{total}] {rate:.1f}/s | {filepath.name} | '
        if result.error:
            session.echo(prefix + cli_error(f'ERROR: {result.error}'),
                         prefix + f'ERROR: {result.error}', level='error')
            return
        if result.warning_count or result.error_count:
            status = f'{result.warning_count} warning(s), {result.error_count} error(s)'
            session.echo(prefix + cli_warning(status), prefix + status, level='warn')
        else:
            session.echo(prefix + cli_success('clean'), prefix + 'clean')
        if verbose and result.document is not None:
            for where, issue in result.document.iter_issues():
                line = f'      {where}: {issue}'
                session.echo(cli_issue(issue.severity, line), line,
                             level='warn' if issue.severity == 'warning' else 'error')

    batch_result = decode_batch(input_path, config=session.config,
                                format_filter=fmt, progress_callback=progress,
                                workers=workers)

    session.echo(f'\nDone in {batch_result.total_time_seconds:.1f}s')
    session.echo(f'  Total:       {batch_result.total_files}')
    session.echo(f'  Clean:       {cli_success(str(batch_result.files_clean))}',
                 f'  Clean:       {batch_result.files_clean}')
    session.echo(f'  With issues: {cli_warning(str(batch_result.files_with_issues))}',
                 f'  With issues: {batch_result.files_with_issues}')
    session.echo(f'  Errors:      {cli_error(str(batch_result.files_errored))}',
                 f'  Errors:      {batch_result.files_errored}')

    if json_out:
        generate_batch_report(batch_result, output_path=Path(json_out),
                              include_documents=verbose)
        session.echo(cli_info(f'Report written to {json_out}'),
                     f'Report written to {json_out}')

    if batch_result.files_errored > 0:
        sys.exit(1)


if __name__ == '__main__':
    main()
