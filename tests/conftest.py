"""Pytest configuration and fixtures."""

import gzip
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from nagare.request import Request
from nagare.transport import MockResponse, MockTransport

SAMPLE = "123יניב"


def gzip_compress(data: bytes) -> bytes:
    return gzip.compress(data)


@pytest.fixture
def make_request():
    """
    Build a Request whose transport answers with the given MockResponse.

    The low-level response is reachable as ``request.transport.last``.
    """

    def factory(low_level: MockResponse | None = None, **kwargs) -> Request:
        low_level = low_level or MockResponse()

        def handler(_request):
            return low_level

        transport = MockTransport(handler)
        transport.last = low_level
        return Request(transport, kwargs.pop("method", "GET"), "http://example.com/", **kwargs)

    return factory


@pytest.fixture
def mock_socket(mocker):
    """Create a mock socket."""
    return mocker.MagicMock()


@pytest.fixture
def transport_log(caplog):
    """Capture DEBUG records of the nagare.transport logger."""
    caplog.set_level(logging.DEBUG, logger="nagare.transport")
    return caplog


def transport_messages(caplog) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.name == "nagare.transport"]


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass  # Suppress logging

    def _send(self, status, body, headers=()):
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def do_HEAD(self):
        self.do_GET()

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        self._send(200, body, [("Content-Type", self.headers.get("Content-Type", "text/plain"))])

    def do_GET(self):
        if self.path == "/chunked":
            self.send_response(200)
            self.send_header("Transfer-Encoding", "chunked")
            self.send_header("Content-Type", "text/plain")
            self.end_headers()
            for i in range(5):
                chunk = f"chunk{i}\n".encode()
                self.wfile.write(f"{len(chunk):x}\r\n".encode())
                self.wfile.write(chunk)
                self.wfile.write(b"\r\n")
            self.wfile.write(b"0\r\n\r\n")
        elif self.path == "/large":
            self._send(200, b"x" * 100000, [("Content-Type", "application/octet-stream")])
        elif self.path == "/gzip":
            body = gzip_compress(b'{"compressed": true}')
            self._send(200, body, [
                ("Content-Type", "application/json"),
                ("Content-Encoding", "gzip"),
            ])
        elif self.path == "/headers":
            self._send(200, b"ok", [
                ("Content-Type", "text/plain"),
                ("X-Multi", "one"),
                ("X-Multi", "two"),
            ])
        elif self.path == "/echo-headers":
            lines = "\n".join(f"{k}: {v}" for k, v in self.headers.items())
            self._send(200, lines.encode(), [("Content-Type", "text/plain")])
        elif self.path == "/until-close":
            self.send_response(200)
            self.send_header("Content-Type", "text/plain")
            self.send_header("Connection", "close")
            self.end_headers()
            self.wfile.write(b"streamed until close")
            self.close_connection = True
        elif self.path == "/no-content":
            self.send_response(204)
            self.end_headers()
        else:
            self._send(404, b"not found", [("Content-Type", "text/plain")])


@pytest.fixture(scope="module")
def http_server():
    """Start a local HTTP server for testing."""
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    port = server.server_address[1]
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield f"http://127.0.0.1:{port}"
    server.shutdown()
    server.server_close()
