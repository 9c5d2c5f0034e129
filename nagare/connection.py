"""
HTTP/1.1 transport over a plain or TLS socket.

The body is not read up front: the low-level response exposes it as a
stream (chunked, Content-Length delimited, or read-until-close), and
Content-Encoding is left for the response pipeline to decode.
"""

from __future__ import annotations

import io
import socket
import ssl
from collections.abc import Iterable

from .errors import ConnectionError, ProtocolError, TLSNegotiationError
from .status import has_no_body
from .transport import find_header
from .utils import parse_url


class Connection:
    """
    Single TCP/TLS connection used for one HTTP/1.1 exchange.
    """

    def __init__(
        self,
        host: str,
        port: int,
        scheme: str,
        timeout: float = 10.0,
        verify: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.scheme = scheme
        self.timeout = timeout
        self.verify = verify
        self.sock: socket.socket | ssl.SSLSocket | None = None
        self.closed = True

    def connect(self) -> None:
        raw = self._open_tcp()

        if self.scheme == "https":
            context = ssl.create_default_context()
            if not self.verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            context.set_alpn_protocols(["http/1.1"])
            try:
                self.sock = context.wrap_socket(raw, server_hostname=self.host)
            except ssl.SSLError as exc:
                raw.close()
                raise TLSNegotiationError(f"TLS handshake failed: {exc}") from exc
        else:
            self.sock = raw

        self.sock.settimeout(self.timeout)
        self.closed = False

    def send(
        self,
        method: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None = None,
    ) -> None:
        if self.closed or self.sock is None:
            self.connect()
        request_bytes = self._build_request(method, path, headers, body)
        try:
            assert self.sock is not None
            self.sock.sendall(request_bytes)
        except OSError as exc:
            self.close()
            raise ConnectionError(f"Send failed: {exc}") from exc

    def _build_request(
        self,
        method: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None,
    ) -> bytes:
        lines = [f"{method} {path} HTTP/1.1\r\n".encode("ascii")]
        for name, value in headers:
            lines.append(f"{name}: {value}\r\n".encode("latin-1"))
        lines.append(b"\r\n")
        if body:
            lines.append(body)
        return b"".join(lines)

    def recv(self, n: int) -> bytes:
        assert self.sock is not None
        return self.sock.recv(n)

    def readline(self) -> bytes:
        buf = bytearray()
        while True:
            ch = self.recv(1)
            if not ch:
                break
            buf.extend(ch)
            if buf.endswith(b"\r\n"):
                break
        return bytes(buf)

    def read_exact(self, n: int) -> bytes:
        remaining = n
        chunks: list[bytes] = []
        while remaining > 0:
            chunk = self.recv(remaining)
            if not chunk:
                raise ProtocolError("Unexpected EOF while reading body")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def read_head(self) -> tuple[int, str, str, list[tuple[str, str]]]:
        """Read the status line and headers; returns (status, reason, version, headers)."""
        status_line = self.readline()
        if not status_line:
            raise ProtocolError("Empty response")
        try:
            # e.g., HTTP/1.1 200 OK
            parts = status_line.decode("latin-1").strip().split(" ", 2)
            version = parts[0].split("/", 1)[1]
            status_code = int(parts[1])
            reason = parts[2] if len(parts) > 2 else ""
        except Exception as exc:
            raise ProtocolError(f"Malformed status line: {status_line!r}") from exc

        headers: list[tuple[str, str]] = []
        while True:
            line = self.readline()
            if line in (b"\r\n", b"\n", b""):
                break
            try:
                name, value = line.split(b":", 1)
            except ValueError as exc:
                raise ProtocolError(f"Malformed header line: {line!r}") from exc
            headers.append(
                (name.decode("latin-1").strip(), value.decode("latin-1").strip())
            )
        return status_code, reason, version, headers

    def close(self) -> None:
        if self.sock:
            try:
                self.sock.close()
            finally:
                self.sock = None
        self.closed = True

    def _open_tcp(self) -> socket.socket:
        try:
            return socket.create_connection(
                (self.host, self.port), timeout=self.timeout
            )
        except OSError as exc:
            raise ConnectionError(f"TCP connection failed: {exc}") from exc


class _BodyReader(io.RawIOBase):
    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._done = False

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self._done or not len(b):
            return 0
        data = self._read(len(b))
        if not data:
            self._done = True
            return 0
        n = len(data)
        b[:n] = data
        return n

    def _read(self, n: int) -> bytes:
        raise NotImplementedError


class ContentLengthReader(_BodyReader):
    def __init__(self, conn: Connection, length: int) -> None:
        super().__init__(conn)
        self._remaining = length

    def _read(self, n: int) -> bytes:
        if self._remaining <= 0:
            return b""
        data = self._conn.recv(min(n, self._remaining))
        if not data:
            raise ProtocolError(
                f"Connection closed with {self._remaining} body bytes outstanding"
            )
        self._remaining -= len(data)
        return data


class ChunkedReader(_BodyReader):
    def __init__(self, conn: Connection) -> None:
        super().__init__(conn)
        self._chunk_left = 0

    def _read(self, n: int) -> bytes:
        if self._chunk_left == 0:
            line = self._conn.readline()
            if not line:
                raise ProtocolError("Connection closed inside chunked body")
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError as exc:
                raise ProtocolError(f"Invalid chunk size line: {line!r}") from exc
            if size == 0:
                # Trailers end with an empty line.
                while self._conn.readline() not in (b"\r\n", b"\n", b""):
                    pass
                return b""
            self._chunk_left = size
        data = self._conn.read_exact(min(n, self._chunk_left))
        self._chunk_left -= len(data)
        if self._chunk_left == 0:
            # Discard CRLF
            self._conn.read_exact(2)
        return data


class UntilCloseReader(_BodyReader):
    def _read(self, n: int) -> bytes:
        return self._conn.recv(n)


class HTTPResponse:
    """Low-level response read from a Connection."""

    def __init__(
        self,
        conn: Connection,
        status_code: int,
        reason: str,
        http_version: str,
        headers: list[tuple[str, str]],
        content: io.RawIOBase | None,
    ) -> None:
        self._conn = conn
        self.status_code = status_code
        self.reason_phrase = reason or None
        self.http_version = http_version
        self.headers = headers
        self.content_type = find_header(headers, "content-type")
        self.content_encoding = find_header(headers, "content-encoding")
        self._content = content

    def get_content(self) -> io.RawIOBase | None:
        return self._content

    def disconnect(self) -> None:
        self._conn.close()


class HTTPRequest:
    def __init__(self, transport: HTTPTransport, method: str, url: str) -> None:
        self.transport = transport
        self.method = method
        self.url = url
        self.headers: list[tuple[str, str]] = []
        self.content: bytes | None = None

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def set_content(self, content: bytes | None) -> None:
        self.content = content

    def execute(self) -> HTTPResponse:
        parsed, host, port, path = parse_url(self.url)
        headers = list(self.headers)
        if find_header(headers, "host") is None:
            default_port = 443 if parsed.scheme == "https" else 80
            headers.insert(0, ("Host", host if port == default_port else f"{host}:{port}"))
        # One exchange per connection.
        if find_header(headers, "connection") is None:
            headers.append(("Connection", "close"))

        conn = Connection(
            host, port, parsed.scheme, self.transport.timeout, self.transport.verify
        )
        try:
            conn.send(self.method, path, headers, self.content)
            status_code, reason, version, raw_headers = conn.read_head()
            content = self._body_reader(conn, status_code, raw_headers)
        except Exception:
            conn.close()
            raise
        return HTTPResponse(conn, status_code, reason, version, raw_headers, content)

    def _body_reader(
        self,
        conn: Connection,
        status_code: int,
        headers: list[tuple[str, str]],
    ) -> io.RawIOBase | None:
        if self.method == "HEAD" or has_no_body(status_code):
            return None
        transfer_encoding = (find_header(headers, "transfer-encoding") or "").lower()
        if "chunked" in transfer_encoding:
            return ChunkedReader(conn)
        content_length = find_header(headers, "content-length")
        if content_length is not None:
            try:
                length = int(content_length)
            except ValueError as exc:
                raise ProtocolError("Invalid Content-Length") from exc
            return ContentLengthReader(conn, length)
        return UntilCloseReader(conn)


class HTTPTransport:
    """
    Transport sending each request on a fresh HTTP/1.1 connection.

    Args:
        timeout: Socket timeout in seconds
        verify: Whether to verify SSL certificates
    """

    def __init__(self, timeout: float = 10.0, verify: bool = True) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self.verify = verify

    def build_request(self, method: str, url: str) -> HTTPRequest:
        return HTTPRequest(self, method.upper(), url)
