"""
Transport boundary and an in-memory transport for tests.

A transport builds low-level requests; executing one yields a low-level
response carrying the raw status, header pairs and body stream. Responses
are turned into nagare Response objects by Request.execute().
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Iterable
from typing import BinaryIO, Protocol

logger = logging.getLogger(__name__)


class LowLevelResponse(Protocol):
    status_code: int
    reason_phrase: str | None
    headers: list[tuple[str, str]]
    content_type: str | None
    content_encoding: str | None

    def get_content(self) -> BinaryIO | None: ...

    def disconnect(self) -> None: ...


class LowLevelRequest(Protocol):
    def add_header(self, name: str, value: str) -> None: ...

    def set_content(self, content: bytes | None) -> None: ...

    def execute(self) -> LowLevelResponse: ...


class Transport(Protocol):
    def build_request(self, method: str, url: str) -> LowLevelRequest: ...


def find_header(headers: Iterable[tuple[str, str]], name: str) -> str | None:
    """First value of ``name`` (case-insensitive) in raw header pairs."""
    key = name.lower()
    for header, value in headers:
        if header.lower() == key:
            return value
    return None


class MockContent(io.BytesIO):
    """In-memory body counting how often it was closed."""

    def __init__(self, data: bytes = b"") -> None:
        super().__init__(data)
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


class MockResponse:
    """
    Scripted low-level response.

    ``content`` may be bytes, str (encoded as UTF-8), a binary stream, or
    None for a response without a body.
    """

    def __init__(
        self,
        status_code: int = 200,
        reason_phrase: str | None = None,
        headers: Iterable[tuple[str, str]] = (),
        content: bytes | str | BinaryIO | None = None,
        content_type: str | None = None,
        content_encoding: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self.headers = list(headers)
        self.content_type = content_type or find_header(self.headers, "content-type")
        self.content_encoding = content_encoding or find_header(
            self.headers, "content-encoding"
        )
        if isinstance(content, str):
            content = content.encode("utf-8")
        if isinstance(content, bytes):
            content = MockContent(content)
        self.content: BinaryIO | None = content
        self.disconnected = False
        self.disconnect_calls = 0

    def get_content(self) -> BinaryIO | None:
        return self.content

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.disconnected = True


class MockRequest:
    def __init__(
        self,
        method: str,
        url: str,
        handler: Callable[[MockRequest], MockResponse] | None,
    ) -> None:
        self.method = method
        self.url = url
        self.headers: list[tuple[str, str]] = []
        self.content: bytes | None = None
        self._handler = handler

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def set_content(self, content: bytes | None) -> None:
        self.content = content

    def execute(self) -> MockResponse:
        if self._handler is None:
            return MockResponse()
        return self._handler(self)


class MockTransport:
    """
    Transport whose responses come from ``handler(request)``.

    Without a handler every request gets an empty 200 response. Built
    requests are kept in ``requests`` for inspection.
    """

    def __init__(self, handler: Callable[[MockRequest], MockResponse] | None = None) -> None:
        self.handler = handler
        self.requests: list[MockRequest] = []

    def build_request(self, method: str, url: str) -> MockRequest:
        request = MockRequest(method, url, self.handler)
        self.requests.append(request)
        return request
