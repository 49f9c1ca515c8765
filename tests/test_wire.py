import io
import socket
from unittest import mock

import pytest

from cacheproxy.logger import LogLevel, ProxyLogger
from cacheproxy.wire import (
    MAX_BYTES,
    check_http_version,
    connect_remote_server,
    error_response,
    read_request,
    send_error,
)


def _recv_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


@pytest.mark.parametrize(
    "code, status_line, length_header",
    [
        (400, b"HTTP/1.1 400 Bad Request\r\n", b"Content-Length: 95\r\n"),
        (403, b"HTTP/1.1 403 Forbidden\r\n", b"Content-Length: 112\r\n"),
        (404, b"HTTP/1.1 404 Not Found\r\n", b"Content-Length: 91\r\n"),
        (500, b"HTTP/1.1 500 Internal Server Error\r\n", b"Content-Length: 115\r\n"),
        (501, b"HTTP/1.1 501 Not Implemented\r\n", b"Content-Length: 103\r\n"),
        (505, b"HTTP/1.1 505 HTTP Version Not Supported\r\n", b"Content-Length: 125\r\n"),
    ],
)
def test_error_response_layout(code, status_line, length_header):
    response = error_response(code, 0)
    assert response.startswith(status_line + length_header)
    head, body = response.split(b"\r\n\r\n", 1)
    assert b"Connection: keep-alive" in head
    assert b"Content-Type: text/html" in head
    assert body.startswith(b"<HTML><HEAD><TITLE>")
    assert body.endswith(b"</BODY></HTML>")


def test_error_response_date_header():
    assert b"\r\nDate: Thu, 01 Jan 1970 00:00:00 GMT\r\n" in error_response(404, 0)


def test_error_response_header_order_differs_for_403():
    head = error_response(403, 0).split(b"\r\n\r\n", 1)[0]
    assert head.index(b"Content-Type") < head.index(b"Connection")
    head = error_response(400, 0).split(b"\r\n\r\n", 1)[0]
    assert head.index(b"Connection") < head.index(b"Content-Type")


def test_error_response_unknown_code():
    with pytest.raises(ValueError, match="Invalid error code"):
        error_response(418)


@pytest.mark.parametrize(
    "version, expected",
    [
        ("HTTP/1.1", True),
        ("HTTP/1.0", True),
        ("HTTP/1.1 trailing", True),
        ("HTTP/2.0", False),
        ("http/1.1", False),
        ("", False),
    ],
)
def test_check_http_version(version, expected):
    assert check_http_version(version) is expected


def test_send_error_writes_page_and_logs():
    stream = io.StringIO()
    logger = ProxyLogger(level=LogLevel.ERROR, stream=stream)
    left, right = socket.socketpair()
    with left, right:
        send_error(left, 501, logger)
        left.shutdown(socket.SHUT_WR)
        received = _recv_all(right)
    assert received.startswith(b"HTTP/1.1 501 Not Implemented\r\n")
    assert "501 Not Implemented sent to client" in stream.getvalue()


def test_send_error_unknown_code_sends_nothing():
    stream = io.StringIO()
    logger = ProxyLogger(level=LogLevel.ERROR, stream=stream)
    left, right = socket.socketpair()
    with left, right:
        with pytest.raises(ValueError):
            send_error(left, 418, logger)
        left.shutdown(socket.SHUT_WR)
        assert _recv_all(right) == b""
    assert "Invalid error code: 418" in stream.getvalue()


def test_read_request_collects_until_blank_line():
    left, right = socket.socketpair()
    with left, right:
        left.sendall(b"GET http://example.com/ HTTP/1.1\r\n")
        left.sendall(b"Host: example.com\r\n\r\n")
        assert read_request(right) == (
            b"GET http://example.com/ HTTP/1.1\r\nHost: example.com\r\n\r\n"
        )


def test_read_request_stops_at_nul():
    left, right = socket.socketpair()
    with left, right:
        left.sendall(b"GET http://a/ HTTP/1.0\r\n\r\n\0trailing")
        assert read_request(right) == b"GET http://a/ HTTP/1.0\r\n\r\n"


def test_read_request_returns_none_on_disconnect():
    left, right = socket.socketpair()
    with right:
        left.sendall(b"GET http://example.com/ HTTP/1.1\r\n")
        left.close()
        assert read_request(right) is None


def test_read_request_returns_none_when_too_long():
    left, right = socket.socketpair()
    with left, right:
        left.sendall(b"a" * (MAX_BYTES + 100))
        assert read_request(right) is None


def test_connect_remote_server_reaches_listener():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        port = listener.getsockname()[1]
        remote = connect_remote_server("127.0.0.1", port)
        with remote:
            assert remote.getpeername() == ("127.0.0.1", port)
            accepted, _ = listener.accept()
            with accepted:
                remote.sendall(b"ping")
                assert accepted.recv(4) == b"ping"


def test_connect_remote_server_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    stream = io.StringIO()
    logger = ProxyLogger(level=LogLevel.ERROR, stream=stream)
    with pytest.raises(OSError):
        connect_remote_server("127.0.0.1", port, logger)
    assert f"Error connecting to remote server 127.0.0.1:{port}" in stream.getvalue()


def test_connect_remote_server_unknown_host():
    stream = io.StringIO()
    logger = ProxyLogger(level=LogLevel.ERROR, stream=stream)
    with mock.patch("socket.gethostbyname", side_effect=socket.gaierror("unknown")):
        with pytest.raises(socket.gaierror):
            connect_remote_server("nowhere.invalid", 80, logger)
    assert "No such host exists: nowhere.invalid" in stream.getvalue()