"""Logging utilities -- ANSI terminal colors, timestamped log lines.

Provides consistent color-coded CLI output and plain timestamped lines
for ``--log`` files, plus the stdlib logging setup used by the CLI.
"""

import logging
import re
import sys
from datetime import datetime

# ---------------------------------------------------------------------------
# ANSI color codes
# ---------------------------------------------------------------------------

_RESET = '\033[0m'
_DIM = '\033[2m'

_GREEN = '\033[32m'
_YELLOW = '\033[33m'
_CYAN = '\033[36m'

_BOLD_RED = '\033[1;31m'
_BOLD_CYAN = '\033[1;36m'
_BOLD_WHITE = '\033[1;37m'

_ANSI_RE = re.compile(r'\033\[[0-9;]*m')


def _is_tty():
    """Check if stdout is a terminal (not piped)."""
    try:
        return sys.stdout.isatty()
    except AttributeError:
        return False


# Module-level flag -- set once at import time
_USE_COLOR = _is_tty()


def set_color_enabled(enabled: bool):
    """Override automatic color detection."""
    global _USE_COLOR
    _USE_COLOR = enabled


def _c(code: str, text: str) -> str:
    if _USE_COLOR:
        return f'{code}{text}{_RESET}'
    return text


# ---------------------------------------------------------------------------
# CLI formatting helpers
# ---------------------------------------------------------------------------

def cli_header(text: str) -> str:
    """Bold cyan header line."""
    return _c(_BOLD_CYAN, text)


def cli_success(text: str) -> str:
    """Green text for files that decoded without issues."""
    return _c(_GREEN, text)


def cli_warning(text: str) -> str:
    """Yellow text for decode warnings."""
    return _c(_YELLOW, text)


def cli_error(text: str) -> str:
    """Red text for errors."""
    return _c(_BOLD_RED, text)


def cli_info(text: str) -> str:
    return _c(_CYAN, text)


def cli_dim(text: str) -> str:
    """Dim text for offsets and other secondary information."""
    return _c(_DIM, text)


def cli_bold(text: str) -> str:
    return _c(_BOLD_WHITE, text)


def cli_separator() -> str:
    """A visual separator line."""
    return _c(_DIM, '─' * 60)


def cli_issue(severity: str, text: str) -> str:
    """Color an issue line by its severity."""
    return cli_warning(text) if severity == 'warning' else cli_error(text)


def strip_ansi(text: str) -> str:
    """Remove ANSI color codes, for log files and other plain sinks."""
    return _ANSI_RE.sub('', text)


# ---------------------------------------------------------------------------
# Log file formatting (always plain text with timestamps and levels)
# ---------------------------------------------------------------------------

def _timestamp() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def log_info(msg: str) -> str:
    """Format a log file INFO line."""
    return f'[{_timestamp()}] [INFO]  {msg}'


def log_warn(msg: str) -> str:
    """Format a log file WARN line."""
    return f'[{_timestamp()}] [WARN]  {msg}'


def log_error(msg: str) -> str:
    """Format a log file ERROR line."""
    return f'[{_timestamp()}] [ERROR] {msg}'


# ---------------------------------------------------------------------------
# stdlib logging
# ---------------------------------------------------------------------------

LOG_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'


def setup_logging(debug: bool = False):
    """Route ``wsidecode.*`` loggers to stderr.

    Without ``debug`` only errors are shown; decode warnings are already
    reported per file by the commands.
    """
    logger = logging.getLogger('wsidecode')
    logger.setLevel(logging.DEBUG if debug else logging.ERROR)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
