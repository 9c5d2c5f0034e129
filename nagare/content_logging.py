"""
Size-limited diagnostic logging of response content.

The content is tapped while the caller reads it: every byte still reaches
the caller, and at most ``limit`` bytes are kept for the log record. The
log lines are emitted when the stream is closed.
"""

from __future__ import annotations

import io
import logging
import re
from typing import BinaryIO

from .utils import format_byte_count

DEFAULT_CONTENT_LOGGING_LIMIT = 16384

# C0 controls and DEL, except LF and CR, are shown as spaces.
_UNPRINTABLE = re.compile(r"[\x00-\x09\x0b\x0c\x0e-\x1f\x7f]")


def validate_logging_limit(limit: int) -> int:
    if limit < 0:
        raise ValueError(f"content logging limit must be non-negative, got {limit}")
    return limit


def format_content_log(content: bytes, total: int, limit: int) -> list[str]:
    """
    Build the log lines for a body of ``total`` bytes whose first bytes are ``content``.

    Returns no lines for an empty body.
    """
    if total == 0:
        return []
    shown = min(limit, total)
    summary = f"Total: {format_byte_count(total)}"
    if 0 < shown < total:
        summary += f" (logging first {format_byte_count(shown)})"
    lines = [summary]
    if shown:
        text = content[:shown].decode("utf-8", errors="replace")
        lines.append(_UNPRINTABLE.sub(" ", text))
    return lines


class LoggingStream(io.RawIOBase):
    """
    Pass-through stream recording the first ``limit`` bytes read from it.

    Closing it logs the total size and the recorded prefix to ``logger``
    and closes the wrapped stream.
    """

    def __init__(
        self,
        stream: BinaryIO,
        logger: logging.Logger,
        limit: int,
        level: int = logging.DEBUG,
    ) -> None:
        self._stream = stream
        self._logger = logger
        self._limit = validate_logging_limit(limit)
        self._level = level
        self._head = bytearray()
        self.total = 0

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        data = self._stream.read(len(b))
        if not data:
            return 0
        n = len(data)
        b[:n] = data
        self.total += n
        room = self._limit - len(self._head)
        if room > 0:
            self._head += data[:room]
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            for line in format_content_log(bytes(self._head), self.total, self._limit):
                self._logger.log(self._level, line)
        finally:
            try:
                self._stream.close()
            finally:
                super().close()
