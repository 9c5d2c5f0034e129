from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .headers import Headers


class NagareError(Exception):
    """Base error for Nagare."""


class ConnectionError(NagareError):
    """Raised when a TCP/TLS connection fails."""


class TLSNegotiationError(ConnectionError):
    """Raised when TLS handshake does not meet expectations."""


class ProtocolError(NagareError):
    """Raised when an HTTP protocol error occurs."""


class ContentDecodingError(ProtocolError):
    """Raised when encoded content (gzip, deflate, br) cannot be decoded."""


class ResponseClosedError(NagareError):
    """Raised when content is requested from a response that was already released."""


class UnsupportedContentError(NagareError):
    """Raised when response content cannot be turned into the requested object."""


class UnsupportedMediaTypeError(UnsupportedContentError):
    """Raised when no codec is registered for the response content type."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__(f"No codec registered for content type: {content_type!r}")
        self.content_type = content_type


class MissingTargetTypeError(UnsupportedContentError, ValueError):
    """Raised when parse_as() is called without a target type."""


class HTTPResponseError(NagareError):
    """
    Raised by Request.execute() for a non-success status when the request
    is configured to raise on error status.
    """

    def __init__(
        self,
        status_code: int,
        status_message: str | None,
        headers: Headers,
        content: str | None = None,
    ) -> None:
        message = str(status_code)
        if status_message:
            message = f"{message} {status_message}"
        if content:
            message = f"{message}\n{content}"
        super().__init__(message)
        self.status_code = status_code
        self.status_message = status_message
        self.headers = headers
        self.content = content
