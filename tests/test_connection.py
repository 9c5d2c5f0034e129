"""Tests for nagare.connection module."""

import socket
import ssl
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from nagare.connection import (
    ChunkedReader,
    Connection,
    ContentLengthReader,
    HTTPRequest,
    HTTPTransport,
    UntilCloseReader,
)
from nagare.errors import ConnectionError, HTTPResponseError, ProtocolError, TLSNegotiationError
from nagare.request import Request


class FakeSocket:
    """Socket stand-in that serves ``data`` a few bytes at a time."""

    def __init__(self, data: bytes, step: int = 5) -> None:
        self._data = data
        self._step = step
        self.closed = False

    def recv(self, n: int) -> bytes:
        n = min(n, self._step)
        chunk, self._data = self._data[:n], self._data[n:]
        return chunk

    def close(self) -> None:
        self.closed = True


def connected(data: bytes, step: int = 5) -> Connection:
    conn = Connection("example.com", 80, "http")
    conn.sock = FakeSocket(data, step)
    conn.closed = False
    return conn


class TestConnectionInit:
    """Tests for Connection initialization."""

    def test_init_sets_attributes(self):
        conn = Connection(host="example.com", port=443, scheme="https", timeout=30.0, verify=False)
        assert conn.host == "example.com"
        assert conn.port == 443
        assert conn.scheme == "https"
        assert conn.timeout == 30.0
        assert conn.verify is False
        assert conn.sock is None
        assert conn.closed is True

    def test_init_default_values(self):
        conn = Connection(host="example.com", port=80, scheme="http")
        assert conn.timeout == 10.0
        assert conn.verify is True


class TestConnectionConnect:
    """Tests for Connection.connect method."""

    @patch("nagare.connection.socket.create_connection")
    def test_connect_http(self, mock_create_conn):
        """Test HTTP connection (no TLS)."""
        mock_sock = MagicMock()
        mock_create_conn.return_value = mock_sock

        conn = Connection(host="example.com", port=80, scheme="http", timeout=5.0)
        conn.connect()

        mock_create_conn.assert_called_once_with(("example.com", 80), timeout=5.0)
        mock_sock.settimeout.assert_called_once_with(5.0)
        assert conn.sock is mock_sock
        assert conn.closed is False

    @patch("nagare.connection.socket.create_connection")
    def test_connect_tcp_failure(self, mock_create_conn):
        mock_create_conn.side_effect = OSError("refused")
        conn = Connection(host="example.com", port=80, scheme="http")
        with pytest.raises(ConnectionError, match="TCP connection failed"):
            conn.connect()

    @patch("nagare.connection.ssl.create_default_context")
    @patch("nagare.connection.socket.create_connection")
    def test_connect_tls_failure(self, mock_create_conn, mock_context):
        raw = MagicMock()
        mock_create_conn.return_value = raw
        mock_context.return_value.wrap_socket.side_effect = ssl.SSLError("handshake")

        conn = Connection(host="example.com", port=443, scheme="https")
        with pytest.raises(TLSNegotiationError):
            conn.connect()
        raw.close.assert_called_once()
        assert conn.closed is True

    @patch("nagare.connection.ssl.create_default_context")
    @patch("nagare.connection.socket.create_connection")
    def test_connect_https_insecure(self, mock_create_conn, mock_context):
        context = mock_context.return_value
        conn = Connection(host="example.com", port=443, scheme="https", verify=False)
        conn.connect()
        assert context.check_hostname is False
        assert context.verify_mode == ssl.CERT_NONE
        context.set_alpn_protocols.assert_called_once_with(["http/1.1"])
        context.wrap_socket.assert_called_once_with(
            mock_create_conn.return_value, server_hostname="example.com"
        )


class TestConnectionSend:
    def test_build_request(self):
        conn = Connection("example.com", 80, "http")
        data = conn._build_request("POST", "/p", [("Host", "example.com")], b"body")
        assert data == b"POST /p HTTP/1.1\r\nHost: example.com\r\n\r\nbody"

    def test_send_failure_closes(self, mock_socket):
        conn = connected(b"")
        mock_socket.sendall.side_effect = OSError("broken pipe")
        conn.sock = mock_socket
        with pytest.raises(ConnectionError, match="Send failed"):
            conn.send("GET", "/", [])
        assert conn.closed is True
        assert conn.sock is None


class TestReadHead:
    """Tests for status line and header parsing."""

    def test_read_head(self):
        conn = connected(
            b"HTTP/1.1 404 Not Found\r\n"
            b"Content-Type: text/plain\r\n"
            b"X-Multi: one\r\n"
            b"X-Multi: two\r\n"
            b"\r\n"
            b"body"
        )
        status, reason, version, headers = conn.read_head()
        assert status == 404
        assert reason == "Not Found"
        assert version == "1.1"
        assert headers == [
            ("Content-Type", "text/plain"),
            ("X-Multi", "one"),
            ("X-Multi", "two"),
        ]
        assert conn.recv(10) == b"body"

    def test_status_without_reason(self):
        status, reason, _, _ = connected(b"HTTP/1.1 204\r\n\r\n").read_head()
        assert status == 204
        assert reason == ""

    def test_negative_status_is_passed_through(self):
        status, _, _, _ = connected(b"HTTP/1.1 -1 Odd\r\n\r\n").read_head()
        assert status == -1

    def test_empty_response(self):
        with pytest.raises(ProtocolError, match="Empty response"):
            connected(b"").read_head()

    def test_malformed_status_line(self):
        with pytest.raises(ProtocolError, match="Malformed status line"):
            connected(b"garbage\r\n\r\n").read_head()

    def test_malformed_header_line(self):
        with pytest.raises(ProtocolError, match="Malformed header line"):
            connected(b"HTTP/1.1 200 OK\r\nno colon here\r\n\r\n").read_head()


class TestBodyReaders:
    """Tests for the body framing readers."""

    def test_content_length(self):
        reader = ContentLengthReader(connected(b"hello worldEXTRA"), 11)
        assert reader.read() == b"hello world"
        assert reader.read() == b""

    def test_content_length_early_eof(self):
        reader = ContentLengthReader(connected(b"short"), 100)
        with pytest.raises(ProtocolError, match="outstanding"):
            reader.read()

    def test_chunked(self):
        body = b"5\r\nhello\r\n6;ext=1\r\n world\r\n0\r\nTrailer: x\r\n\r\n"
        reader = ChunkedReader(connected(body, step=3))
        assert reader.read() == b"hello world"
        assert reader.read() == b""

    def test_chunked_invalid_size(self):
        reader = ChunkedReader(connected(b"zz\r\nhello\r\n"))
        with pytest.raises(ProtocolError, match="Invalid chunk size"):
            reader.read()

    def test_chunked_truncated(self):
        reader = ChunkedReader(connected(b"5\r\nhello\r\n"))
        with pytest.raises(ProtocolError):
            reader.read()

    def test_until_close(self):
        reader = UntilCloseReader(connected(b"everything until close"))
        assert reader.read() == b"everything until close"

    def test_until_close_timeout_raises(self, mock_socket):
        conn = connected(b"")
        conn.sock = mock_socket
        mock_socket.recv.side_effect = [b"partial", TimeoutError()]
        reader = UntilCloseReader(conn)
        assert reader.read(100) == b"partial"
        with pytest.raises(TimeoutError):
            reader.read(100)


class TestHTTPTransport:
    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            HTTPTransport(timeout=0)

    def test_build_request(self):
        request = HTTPTransport().build_request("get", "http://example.com/")
        assert isinstance(request, HTTPRequest)
        assert request.method == "GET"


class TestLocalServer:
    """End-to-end tests against a local HTTP server."""

    def test_get_text(self, http_server):
        response = Request(HTTPTransport(), "GET", f"{http_server}/headers").execute()
        assert response.status_code == 200
        assert response.status_message == "OK"
        assert response.headers.get("x-multi") == ["one", "two"]
        assert response.parse_as_string() == "ok"
        assert response.disconnected

    def test_chunked_body(self, http_server):
        response = Request(HTTPTransport(), url=f"{http_server}/chunked").execute()
        assert response.parse_as_string() == "".join(f"chunk{i}\n" for i in range(5))

    def test_gzip_json(self, http_server):
        response = Request(HTTPTransport(), url=f"{http_server}/gzip").execute()
        assert response.content_encoding == "gzip"
        assert response.parse_as(dict) == {"compressed": True}

    def test_large_body_download(self, http_server, tmp_path):
        response = Request(HTTPTransport(), url=f"{http_server}/large").execute()
        target = tmp_path / "large.bin"
        with open(target, "wb") as sink:
            assert response.download(sink) == 100000
        assert target.read_bytes() == b"x" * 100000

    def test_until_close_body(self, http_server):
        response = Request(HTTPTransport(), url=f"{http_server}/until-close").execute()
        assert response.parse_as_string() == "streamed until close"

    def test_no_content(self, http_server):
        response = Request(HTTPTransport(), url=f"{http_server}/no-content").execute()
        assert response.status_code == 204
        assert response.get_content() is None
        assert response.parse_as(dict) is None

    def test_head_has_no_body(self, http_server):
        response = Request(HTTPTransport(), "HEAD", f"{http_server}/large").execute()
        assert response.headers.content_length == 100000
        assert response.get_content() is None

    def test_sent_headers(self, http_server):
        response = Request(
            HTTPTransport(), url=f"{http_server}/echo-headers", headers={"X-Custom": "yes"}
        ).execute()
        text = response.parse_as_string()
        assert "X-Custom: yes" in text
        assert "Accept-Encoding: gzip, deflate, br" in text
        assert "Connection: close" in text

    def test_post_body(self, http_server):
        response = Request(HTTPTransport(), "POST", http_server, data="payload").execute()
        assert response.parse_as_string() == "payload"

    def test_not_found_raises(self, http_server):
        with pytest.raises(HTTPResponseError) as info:
            Request(HTTPTransport(), url=f"{http_server}/missing").execute()
        assert info.value.status_code == 404
        assert info.value.content == "not found"

    def test_disconnect_mid_body(self, http_server):
        response = Request(HTTPTransport(), url=f"{http_server}/large").execute()
        content = response.get_content()
        assert content.read(10) == b"x" * 10
        response.disconnect()
        assert response.disconnected

    def test_connection_refused(self):
        with pytest.raises(ConnectionError):
            Request(HTTPTransport(timeout=2), url="http://127.0.0.1:1/").execute()


@pytest.fixture
def stalling_server():
    """Serve a close-delimited body that stalls after its first bytes."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]

    def serve():
        conn, _ = listener.accept()
        with conn:
            request = b""
            while b"\r\n\r\n" not in request:
                data = conn.recv(1024)
                if not data:
                    return
                request += data
            conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\npartial")
            time.sleep(1.5)
            try:
                conn.sendall(b"-rest")
            except OSError:
                pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{port}/"
    thread.join(timeout=5)
    listener.close()


class TestStalledBody:
    """A stalled close-delimited body fails instead of ending early."""

    def test_timeout_propagates_and_releases(self, stalling_server):
        response = Request(HTTPTransport(timeout=0.5), url=stalling_server).execute()
        with pytest.raises(TimeoutError):
            response.parse_as_string()
        assert response.disconnected
        assert response.state.value == "consumed"
