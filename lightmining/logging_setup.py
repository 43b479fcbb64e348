"""Logging configuration for the light-mining bot.

Sets up a dual-handler logging pipeline on the root logger:

1. **Console** -- :class:`SafeStreamHandler` that never crashes on
   characters the terminal encoding cannot represent.
2. **File** -- :class:`CompressedRotatingFileHandler` writing to
   ``logs/lightmining.log`` with gzip rotation (10 MiB per file,
   5 backups).

Usage::

    from lightmining.logging_setup import setup_logging
    setup_logging("DEBUG")
"""

import gzip
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from lightmining.config import LOGS_DIR

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s - %(message)s'

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("web3", "urllib3", "asyncio")


class CompressedRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that gzip-compresses rotated log files.

    The daemon runs for days; rotated files get a ``.gz`` suffix and are
    compressed in place.
    """

    def rotation_filename(self, default_name: str) -> str:
        return f"{default_name}.gz"

    def rotate(self, source: str, dest: str) -> None:
        """Compress *source* into *dest* and remove *source*."""
        with open(source, 'rb') as f_in:
            with gzip.open(dest, 'wb') as f_out:
                shutil.copyfileobj(f_in, f_out)
        os.remove(source)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that degrades unencodable characters instead of failing.

    Wallet names and API messages may contain non-ASCII text; on a narrow
    console encoding the record is re-encoded with replacement characters.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                encoding = getattr(stream, "encoding", None) or "ascii"
                safe_msg = msg.encode(
                    encoding, errors='replace',
                ).decode(encoding)
                stream.write(safe_msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger with console and file handlers.

    Calling it again replaces the previous handlers, so the CLI can
    re-apply a ``--log-level`` override after settings are loaded.

    Args:
        log_level: Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).
            Unknown names fall back to ``INFO``.
        log_file: Log file path.  Defaults to
            ``logs/lightmining.log`` under the project root.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = log_file or str(LOGS_DIR / "lightmining.log")
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = CompressedRotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8',
    )

    stream_handler = SafeStreamHandler(sys.stdout)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[file_handler, stream_handler],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
