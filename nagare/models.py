from __future__ import annotations

import enum
import io
import logging
import threading
from typing import TYPE_CHECKING, Any, BinaryIO

from .compression import decoding_stream
from .content_logging import LoggingStream, validate_logging_limit
from .errors import (
    NagareError,
    ProtocolError,
    ResponseClosedError,
    UnsupportedContentError,
    UnsupportedMediaTypeError,
    MissingTargetTypeError,
)
from .headers import Headers, bind_headers
from .results import IOFailure, NoContent, ParseOutcome, Parsed, Unsupported
from .status import has_no_body, is_success, normalize_status
from .transport import LowLevelResponse
from .transport import logger as transport_logger
from .utils import parse_media_type

if TYPE_CHECKING:
    from .request import Request

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 8192


class ResponseState(enum.Enum):
    OPEN = "open"
    CONSUMED = "consumed"
    DISCONNECTED = "disconnected"


class _ContentStream(io.RawIOBase):
    """
    Decoded content handed to callers.

    Reaching the end, failing, or closing it releases the owning response.
    Once released, further reads return no data.
    """

    def __init__(self, stream: BinaryIO, response: Response) -> None:
        self._stream = stream
        self._response = response
        self._released = False

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self._released:
            return 0
        try:
            data = self._stream.read(len(b))
        except Exception:
            self._response._release(ResponseState.CONSUMED)
            raise
        if not data:
            if len(b):
                self._response._release(ResponseState.CONSUMED)
            return 0
        n = len(data)
        b[:n] = data
        return n

    def release(self) -> None:
        # The wrapper stays open so buffered readers see a clean EOF.
        if self._released:
            return
        self._released = True
        self._stream.close()

    def close(self) -> None:
        if self.closed:
            return
        try:
            self.release()
        finally:
            super().close()
            self._response._release(ResponseState.CONSUMED)


class Response:
    """
    HTTP response produced by Request.execute().

    Owns the content stream and the connection behind it. Content is
    decoded (Content-Encoding), optionally logged, and can be consumed once
    as a stream, bytes, text, a download or a parsed object. Every way of
    finishing with the content releases the connection exactly once.
    """

    def __init__(self, request: Request, low_level: LowLevelResponse) -> None:
        self.request = request
        self._low_level = low_level
        self.status_code = normalize_status(low_level.status_code)
        self.status_message = low_level.reason_phrase
        self.headers: Headers = bind_headers(
            low_level.headers, request.response_headers()
        )
        self.content_type = low_level.content_type or self.headers.content_type
        self.content_encoding = low_level.content_encoding
        self.logging_enabled = request.logging_enabled
        self._content_logging_limit = request.content_logging_limit
        self._raw = low_level.get_content()
        self._content_stream: _ContentStream | None = None
        self._content: io.BufferedReader | None = None
        self._lock = threading.Lock()
        self.state = ResponseState.OPEN
        self.disconnected = False

    @property
    def content_logging_limit(self) -> int:
        return self._content_logging_limit

    @content_logging_limit.setter
    def content_logging_limit(self, limit: int) -> None:
        self._content_logging_limit = validate_logging_limit(limit)

    @property
    def is_success(self) -> bool:
        return is_success(self.status_code)

    @property
    def content_charset(self) -> str:
        _, params = parse_media_type(self.content_type)
        return params.get("charset") or "utf-8"

    def has_message_body(self) -> bool:
        """False for HEAD requests and for statuses that never carry a body."""
        return self.request.method.upper() != "HEAD" and not has_no_body(self.status_code)

    def get_content(self) -> io.BufferedReader | None:
        """
        Decoded content stream, or None when the transport sent no body.

        The stream is single-use: it is returned again on later calls until
        the response is released, after which ResponseClosedError is raised.
        """
        if self.state is not ResponseState.OPEN:
            raise ResponseClosedError(f"Response content already {self.state.value}")
        if self._content is not None:
            return self._content
        if self._raw is None:
            return None
        stream = decoding_stream(self._raw, self.content_encoding)
        if self.logging_enabled and transport_logger.isEnabledFor(logging.DEBUG):
            stream = LoggingStream(stream, transport_logger, self._content_logging_limit)
        self._content_stream = _ContentStream(stream, self)
        self._content = io.BufferedReader(self._content_stream)
        return self._content

    def read(self) -> bytes:
        """Read the whole decoded content and release the response."""
        content = self.get_content()
        try:
            return content.read() if content is not None else b""
        finally:
            self._release(ResponseState.CONSUMED)

    def _decode_text(self, data: bytes) -> str:
        try:
            return data.decode(self.content_charset, errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")

    def parse_as_string(self) -> str | None:
        """
        Content as text, decoded with the Content-Type charset (UTF-8 default).

        Returns None for responses that carry no body by definition and ""
        when the transport sent no content.
        """
        if not self.has_message_body():
            self.ignore()
            return None
        return self._decode_text(self.read())

    def download(self, sink: BinaryIO) -> int:
        """
        Stream the decoded content into ``sink`` and release the response.

        Returns the number of bytes written. The content can be consumed
        once; downloading a released response raises ResponseClosedError.
        """
        content = self.get_content()
        total = 0
        try:
            if content is None:
                return 0
            while True:
                chunk = content.read(DOWNLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
                total += len(chunk)
        finally:
            self._release(ResponseState.CONSUMED)
        return total

    def parse_as(self, target_type: Any) -> Any:
        """
        Parse the content into ``target_type`` with the codec registered for
        the response content type.

        Returns None when the response carries no body. Codec errors are
        raised unchanged; the response is released either way.
        """
        if target_type is None:
            self.ignore()
            raise MissingTargetTypeError("parse_as() requires a target type")
        if not self.has_message_body():
            self.ignore()
            return None
        codecs = self.request.codecs
        codec = codecs.codec_for(self.content_type) if codecs is not None else None
        if codec is None:
            self.ignore()
            raise UnsupportedMediaTypeError(self.content_type)
        content = self.get_content()
        try:
            if content is None:
                return None
            return codec.parse(content, target_type, self.content_charset)
        finally:
            self._release(ResponseState.CONSUMED)

    def parse_outcome(self, target_type: Any) -> ParseOutcome:
        """Like parse_as(), but returns a tagged outcome instead of raising."""
        if target_type is not None and not self.has_message_body():
            self.ignore()
            return NoContent()
        try:
            value = self.parse_as(target_type)
        except UnsupportedContentError as exc:
            return Unsupported(exc)
        except (OSError, ProtocolError, ResponseClosedError) as exc:
            return IOFailure(exc)
        if value is None and self._raw is None:
            return NoContent()
        return Parsed(value)

    def ignore(self) -> None:
        """Discard any unread content and release the response."""
        self._release(ResponseState.CONSUMED)

    def disconnect(self) -> None:
        """
        Close the content stream and the connection. Calling it again, or
        after the content was consumed, does nothing.
        """
        self._release(ResponseState.DISCONNECTED)

    def _release(self, state: ResponseState) -> None:
        with self._lock:
            if self.state is not ResponseState.OPEN:
                return
            self.state = state
        try:
            if self._content_stream is not None:
                self._content_stream.release()
            elif self._raw is not None:
                self._raw.close()
        finally:
            self._low_level.disconnect()
            self.disconnected = True
            logger.debug("Released response [%s] (%s)", self.status_code, state.value)

    def __enter__(self) -> Response:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.state.value}>"


def describe_error(response: Response) -> str | None:
    """
    Content of an error response for inclusion in an exception message.

    Read failures are logged and yield None so the status error itself
    still reaches the caller.
    """
    try:
        return response.parse_as_string()
    except (OSError, NagareError):
        logger.debug("Could not read error response content", exc_info=True)
        return None
    finally:
        response.disconnect()
