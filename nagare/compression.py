"""
Content-Encoding support for response bodies.

Supports gzip, deflate, and brotli (br) encodings. Decoding happens as a
stream wrapped around the raw transport content, so large bodies are never
buffered whole. Corrupt input raises ContentDecodingError.
"""

from __future__ import annotations

import io
import zlib
from typing import BinaryIO, Protocol

import brotli

from .errors import ContentDecodingError

DEFAULT_ACCEPT_ENCODING = "gzip, deflate, br"

READ_CHUNK_SIZE = 8192


class _Decoder(Protocol):
    def decompress(self, data: bytes) -> bytes: ...

    def finish(self) -> bytes: ...


class _GzipDecoder:
    """Streaming gunzip that also handles concatenated gzip members."""

    def __init__(self) -> None:
        self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)
        self._started = False

    def decompress(self, data: bytes) -> bytes:
        if data:
            self._started = True
        out = [self._obj.decompress(data)]
        while self._obj.eof and self._obj.unused_data:
            unused = self._obj.unused_data
            self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)
            out.append(self._obj.decompress(unused))
        return b"".join(out)

    def finish(self) -> bytes:
        # An empty body is legitimately empty, not a truncated gzip stream.
        if not self._started:
            return b""
        tail = self._obj.flush()
        if not self._obj.eof:
            raise ContentDecodingError("Truncated gzip stream")
        return tail


class _DeflateDecoder:
    """Deflate with or without the zlib wrapper, detected from the first two bytes."""

    def __init__(self) -> None:
        self._obj = None
        self._pending = b""

    def decompress(self, data: bytes) -> bytes:
        if self._obj is None:
            self._pending += data
            if len(self._pending) < 2:
                return b""
            data, self._pending = self._pending, b""
            self._obj = zlib.decompressobj(self._wbits(data))
        return self._obj.decompress(data)

    @staticmethod
    def _wbits(head: bytes) -> int:
        cmf, flg = head[0], head[1]
        if cmf & 0x0F == 8 and (cmf << 8 | flg) % 31 == 0:
            return zlib.MAX_WBITS
        return -zlib.MAX_WBITS

    def finish(self) -> bytes:
        if self._obj is None:
            if self._pending:
                raise ContentDecodingError("Truncated deflate stream")
            return b""
        tail = self._obj.flush()
        if not self._obj.eof:
            raise ContentDecodingError("Truncated deflate stream")
        return tail


class _BrotliDecoder:
    def __init__(self) -> None:
        self._obj = brotli.Decompressor()
        self._started = False

    def decompress(self, data: bytes) -> bytes:
        if not data:
            return b""
        self._started = True
        return self._obj.process(data)

    def finish(self) -> bytes:
        if self._started and not self._obj.is_finished():
            raise ContentDecodingError("Truncated brotli stream")
        return b""


_DECODERS = {
    "gzip": _GzipDecoder,
    "x-gzip": _GzipDecoder,
    "deflate": _DeflateDecoder,
    "br": _BrotliDecoder,
}


class DecodingStream(io.RawIOBase):
    """
    Read-only stream yielding decoded bytes from an encoded raw stream.

    Closing it closes the wrapped stream.
    """

    def __init__(self, raw: BinaryIO, decoder: _Decoder, encoding: str) -> None:
        self._raw = raw
        self._decoder = decoder
        self._encoding = encoding
        self._buffer = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        while not self._buffer and not self._eof:
            chunk = self._raw.read(READ_CHUNK_SIZE)
            try:
                if chunk:
                    self._buffer = self._decoder.decompress(chunk)
                else:
                    self._eof = True
                    self._buffer = self._decoder.finish()
            except (zlib.error, brotli.error) as exc:
                raise ContentDecodingError(
                    f"Failed to decode {self._encoding} content: {exc}"
                ) from exc
        n = min(len(b), len(self._buffer))
        b[:n] = self._buffer[:n]
        self._buffer = self._buffer[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                self._raw.close()
            finally:
                super().close()


def _split_encodings(content_encoding: str | None) -> list[str]:
    if not content_encoding:
        return []
    return [e.strip() for e in content_encoding.lower().split(",") if e.strip()]


def decoding_stream(raw: BinaryIO, content_encoding: str | None) -> BinaryIO:
    """
    Wrap a raw content stream so that reads yield decoded bytes.

    Args:
        raw: Raw response body stream
        content_encoding: Value of Content-Encoding header

    Returns:
        The raw stream itself when no known encoding applies, otherwise a
        buffered decoding stream.
    """
    stream = raw
    wrapped = False
    # Encodings are listed in the order applied, so decode in reverse.
    for enc in reversed(_split_encodings(content_encoding)):
        decoder_cls = _DECODERS.get(enc)
        if decoder_cls is None:
            # identity and unknown encodings pass through
            continue
        stream = io.BufferedReader(DecodingStream(stream, decoder_cls(), enc))
        wrapped = True
    return stream if wrapped else raw


def accept_encoding() -> str:
    """Accept-Encoding value advertised for the encodings decoded here."""
    return DEFAULT_ACCEPT_ENCODING
