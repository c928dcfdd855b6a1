"""Single-file and batch decoding with per-file results.

Supports both sequential and parallel (thread pool) batch processing.
Each file gets its own byte source, so workers share nothing but the
config and the cancel event.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, List, Optional

from wsidecode.config import DecodeConfig
from wsidecode.errors import DecodeError
from wsidecode.formats import detect_format_by_extension, get_decoder
from wsidecode.models import BatchResult, DecodeResult
from wsidecode.source import ByteSource

logger = logging.getLogger(__name__)

# File extensions considered for batch processing
SLIDE_EXTENSIONS = {'.ndpi', '.czi'}

# Default number of parallel workers
DEFAULT_WORKERS = 4


def decode_one(
    filepath: Path,
    config: Optional[DecodeConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DecodeResult:
    """Decode a single file, capturing failures in the result.

    Args:
        filepath: Path to the slide file.
        config: Decoder configuration (defaults when None).
        cancel_event: Optional event checked between records and segments.

    Returns:
        DecodeResult with the decoded document or an error string.
    """
    filepath = Path(filepath)
    t0 = time.monotonic()

    if not filepath.exists():
        return DecodeResult(filepath=filepath, format='unknown',
                            error=f'File not found: {filepath}')

    file_size = os.path.getsize(filepath)
    decoder = None
    try:
        decoder = get_decoder(filepath)
        with ByteSource.open(filepath, cancel_event=cancel_event) as source:
            document = decoder.decode(source, config)
    except (DecodeError, OSError) as e:
        elapsed = (time.monotonic() - t0) * 1000
        logger.error('decode failed for %s: %s', filepath, e)
        # The file may be unreadable; never reopen it here
        format_name = (decoder.format_name if decoder is not None
                       else detect_format_by_extension(filepath))
        return DecodeResult(filepath=filepath, format=format_name,
                            decode_time_ms=elapsed, file_size=file_size,
                            error=str(e))

    issues = [issue for _, issue in document.iter_issues()]
    elapsed = (time.monotonic() - t0) * 1000
    return DecodeResult(
        filepath=filepath, format=decoder.format_name, document=document,
        decode_time_ms=elapsed, file_size=file_size,
        warning_count=sum(1 for i in issues if i.severity == 'warning'),
        error_count=sum(1 for i in issues if i.severity == 'error'),
    )


def collect_slide_files(path: Path, format_filter: Optional[str] = None) -> List[Path]:
    """Collect all NDPI/CZI files from a path (file or directory).

    Args:
        path: File or directory to search.
        format_filter: If set, only collect files of this format ("ndpi" or "czi").
    """
    path = Path(path)
    if path.is_file():
        return [path]

    extensions = SLIDE_EXTENSIONS
    if format_filter:
        extensions = {f'.{format_filter}'} & SLIDE_EXTENSIONS

    files = []
    for root, _, filenames in os.walk(path):
        for fname in sorted(filenames):
            if Path(fname).suffix.lower() in extensions:
                files.append(Path(root) / fname)
    files.sort()
    return files


def decode_batch(
    input_path: Path,
    config: Optional[DecodeConfig] = None,
    format_filter: Optional[str] = None,
    progress_callback: Optional[Callable] = None,
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> BatchResult:
    """Decode a batch of slide files.

    Args:
        input_path: File or directory containing slide files.
        config: Decoder configuration shared by all files.
        format_filter: Only process files of this format.
        progress_callback: Called with (index, total, filepath, result) after each file.
        workers: Number of parallel workers. 1 = sequential (default).
        cancel_event: Set it to stop decoding; unfinished files report an error.

    Returns:
        BatchResult with summary statistics.
    """
    input_path = Path(input_path)
    t0 = time.monotonic()

    files = collect_slide_files(input_path, format_filter)
    total = len(files)
    batch = BatchResult(total_files=total)

    if workers > 1 and total > 1:
        results = _batch_parallel(files, config, workers, progress_callback,
                                  batch, cancel_event)
    else:
        results = _batch_sequential(files, config, progress_callback, batch,
                                    cancel_event)

    batch.results = results
    batch.total_time_seconds = time.monotonic() - t0
    return batch


def _batch_sequential(
    files: List[Path],
    config: Optional[DecodeConfig],
    progress_callback: Optional[Callable],
    batch: BatchResult,
    cancel_event: Optional[threading.Event],
) -> List[DecodeResult]:
    """Process files sequentially."""
    results = []
    total = len(files)

    for i, filepath in enumerate(files):
        result = decode_one(filepath, config, cancel_event)
        results.append(result)
        _update_batch_stats(batch, result)

        if progress_callback:
            progress_callback(i + 1, total, filepath, result)

    return results


def _batch_parallel(
    files: List[Path],
    config: Optional[DecodeConfig],
    workers: int,
    progress_callback: Optional[Callable],
    batch: BatchResult,
    cancel_event: Optional[threading.Event],
) -> List[DecodeResult]:
    """Process files in parallel using a thread pool.

    Files are processed concurrently but results are collected in
    submission order for deterministic output.
    """
    total = len(files)
    results: List[Optional[DecodeResult]] = [None] * total
    lock = threading.Lock()
    completed_count = [0]  # mutable counter for closure

    def process_one(index, filepath):
        try:
            return index, decode_one(filepath, config, cancel_event)
        except Exception as e:
            logger.exception('worker failed on %s', filepath)
            return index, DecodeResult(
                filepath=filepath,
                format=detect_format_by_extension(filepath),
                error=str(e),
            )

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {}
        for i, filepath in enumerate(files):
            future = executor.submit(process_one, i, filepath)
            futures[future] = (i, filepath)

        for future in as_completed(futures):
            _, filepath = futures[future]
            index, result = future.result()
            results[index] = result

            with lock:
                _update_batch_stats(batch, result)
                completed_count[0] += 1
                if progress_callback:
                    progress_callback(completed_count[0], total, filepath, result)

    return results


def _update_batch_stats(batch: BatchResult, result: DecodeResult):
    """Update batch statistics from a single result."""
    if result.error:
        batch.files_errored += 1
    elif result.warning_count or result.error_count:
        batch.files_with_issues += 1
    else:
        batch.files_clean += 1
