from __future__ import annotations

import logging
import urllib.parse

from .codecs import CodecRegistry, default_codecs
from .compression import accept_encoding
from .content_logging import DEFAULT_CONTENT_LOGGING_LIMIT, validate_logging_limit
from .errors import HTTPResponseError
from .headers import Headers, canonicalize_headers
from .models import Response, describe_error
from .transport import Transport
from .transport import logger as transport_logger

USER_AGENT = "nagare/0.1"

DEFAULT_HEADER_ORDER = ["User-Agent", "Accept", "Accept-Encoding", "Content-Type", "Content-Length"]


def encode_body(
    data: bytes | str | dict[str, str] | None,
    headers: dict[str, str],
) -> bytes | None:
    """Encode a request body, filling in Content-Type/Content-Length in ``headers``."""
    if data is None:
        return None
    if isinstance(data, bytes):
        body = data
    elif isinstance(data, str):
        body = data.encode("utf-8")
    elif isinstance(data, dict):
        body = urllib.parse.urlencode(data).encode("utf-8")
        headers.setdefault(
            "Content-Type", "application/x-www-form-urlencoded; charset=utf-8"
        )
    else:
        raise TypeError("Unsupported data type for request body")
    headers.setdefault("Content-Length", str(len(body)))
    return body


class Request:
    """
    A single HTTP exchange to run against a transport.

    Args:
        transport: Transport that builds and executes the low-level request
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        headers: Additional request headers
        data: Request body
        logging_enabled: Log request/response lines and content at DEBUG
            on the ``nagare.transport`` logger (default: True)
        content_logging_limit: Maximum number of content bytes to log
        raise_on_error_status: Raise HTTPResponseError instead of returning
            a response whose status is not 2xx (default: True)
        response_headers: Headers class to bind response headers into
        codecs: Codecs available to Response.parse_as()
    """

    def __init__(
        self,
        transport: Transport,
        method: str = "GET",
        url: str = "",
        headers: dict[str, str] | None = None,
        data: bytes | str | dict[str, str] | None = None,
        *,
        logging_enabled: bool = True,
        content_logging_limit: int = DEFAULT_CONTENT_LOGGING_LIMIT,
        raise_on_error_status: bool = True,
        response_headers: type[Headers] = Headers,
        codecs: CodecRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.method = method.upper()
        self.url = url
        self.headers = dict(headers or {})
        self.data = data
        self.logging_enabled = logging_enabled
        self.content_logging_limit = content_logging_limit
        self.raise_on_error_status = raise_on_error_status
        self.response_headers = response_headers
        self.codecs = codecs if codecs is not None else default_codecs()

    @property
    def content_logging_limit(self) -> int:
        return self._content_logging_limit

    @content_logging_limit.setter
    def content_logging_limit(self, limit: int) -> None:
        self._content_logging_limit = validate_logging_limit(limit)

    def _should_log(self) -> bool:
        return self.logging_enabled and transport_logger.isEnabledFor(logging.DEBUG)

    def execute(self) -> Response:
        """
        Run the request and return its Response.

        Raises:
            HTTPResponseError: the status is not 2xx and raise_on_error_status
                is set; the response has already been released.
        """
        computed: dict[str, str] = {"Accept-Encoding": accept_encoding()}
        body = encode_body(self.data, computed)
        if body is None and self.method in ("POST", "PUT"):
            computed["Content-Length"] = "0"
        merged = canonicalize_headers(
            [("User-Agent", USER_AGENT)],
            {**computed, **self.headers},
            order=DEFAULT_HEADER_ORDER,
        )

        low_level_request = self.transport.build_request(self.method, self.url)
        for name, value in merged:
            low_level_request.add_header(name, value)
        low_level_request.set_content(body)

        if self._should_log():
            transport_logger.debug("-------------- REQUEST  --------------")
            transport_logger.debug("%s %s", self.method, self.url)
            for name, value in merged:
                transport_logger.debug("%s: %s", name, value)

        low_level = low_level_request.execute()
        try:
            response = Response(self, low_level)
        except Exception:
            low_level.disconnect()
            raise

        if self._should_log():
            transport_logger.debug("-------------- RESPONSE --------------")
            status_line = str(low_level.status_code)
            if response.status_message:
                status_line = f"{status_line} {response.status_message}"
            transport_logger.debug(status_line)
            for name, value in response.headers.items():
                transport_logger.debug("%s: %s", name, value)

        if self.raise_on_error_status and not response.is_success:
            content = describe_error(response)
            raise HTTPResponseError(
                response.status_code, response.status_message, response.headers, content
            )
        return response

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"
