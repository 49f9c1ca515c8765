"""Socket-level helpers: error pages, request reading and upstream connects."""

from __future__ import annotations

import socket
import time
from typing import NamedTuple

from .logger import LogLevel, ProxyLogger

MAX_BYTES = 4096
SERVER_NAME = "cacheproxy"
_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"


class _ErrorPage(NamedTuple):
    status_line: str
    content_length: int
    connection_first: bool
    body: str
    log_text: str


_ERROR_PAGES = {
    400: _ErrorPage(
        "HTTP/1.1 400 Bad Request",
        95,
        True,
        "<HTML><HEAD><TITLE>400 Bad Request</TITLE></HEAD>\n"
        "<BODY><H1>400 Bad Rqeuest</H1>\n</BODY></HTML>",
        "400 Bad Request sent to client",
    ),
    403: _ErrorPage(
        "HTTP/1.1 403 Forbidden",
        112,
        False,
        "<HTML><HEAD><TITLE>403 Forbidden</TITLE></HEAD>\n"
        "<BODY><H1>403 Forbidden</H1><br>Permission Denied\n</BODY></HTML>",
        "403 Forbidden sent to client",
    ),
    404: _ErrorPage(
        "HTTP/1.1 404 Not Found",
        91,
        False,
        "<HTML><HEAD><TITLE>404 Not Found</TITLE></HEAD>\n"
        "<BODY><H1>404 Not Found</H1>\n</BODY></HTML>",
        "404 Not Found sent to client",
    ),
    500: _ErrorPage(
        "HTTP/1.1 500 Internal Server Error",
        115,
        True,
        "<HTML><HEAD><TITLE>500 Internal Server Error</TITLE></HEAD>\n"
        "<BODY><H1>500 Internal Server Error</H1>\n</BODY></HTML>",
        "500 Internal Server Error sent to client",
    ),
    501: _ErrorPage(
        "HTTP/1.1 501 Not Implemented",
        103,
        True,
        "<HTML><HEAD><TITLE>404 Not Implemented</TITLE></HEAD>\n"
        "<BODY><H1>501 Not Implemented</H1>\n</BODY></HTML>",
        "501 Not Implemented sent to client",
    ),
    505: _ErrorPage(
        "HTTP/1.1 505 HTTP Version Not Supported",
        125,
        True,
        "<HTML><HEAD><TITLE>505 HTTP Version Not Supported</TITLE></HEAD>\n"
        "<BODY><H1>505 HTTP Version Not Supported</H1>\n</BODY></HTML>",
        "505 HTTP Version Not Supported sent to client",
    ),
}


def _log(logger: ProxyLogger | None, level: LogLevel, message: str) -> None:
    if logger is not None:
        logger.log(level, message)


def error_response(status_code: int, now: float | None = None) -> bytes:
    """Return the complete error response for ``status_code`` dated ``now``."""
    try:
        page = _ERROR_PAGES[status_code]
    except KeyError:
        raise ValueError(f"Invalid error code: {status_code}") from None
    date = time.strftime(_DATE_FORMAT, time.gmtime(now))
    connection = "Connection: keep-alive"
    content_type = "Content-Type: text/html"
    middle = [connection, content_type] if page.connection_first else [content_type, connection]
    lines = [
        page.status_line,
        f"Content-Length: {page.content_length}",
        *middle,
        f"Date: {date}",
        f"Server: {SERVER_NAME}",
    ]
    return ("\r\n".join(lines) + "\r\n\r\n" + page.body).encode("ascii")


def check_http_version(version: str) -> bool:
    """Return True for the supported versions HTTP/1.1 and HTTP/1.0."""
    return version.startswith(("HTTP/1.1", "HTTP/1.0"))


def send_error(
    sock: socket.socket, status_code: int, logger: ProxyLogger | None = None
) -> None:
    """Send the error page for ``status_code``; raise ValueError if unknown."""
    try:
        response = error_response(status_code)
    except ValueError as exc:
        _log(logger, LogLevel.ERROR, str(exc))
        raise
    _log(logger, LogLevel.ERROR, _ERROR_PAGES[status_code].log_text)
    sock.sendall(response)


def read_request(sock: socket.socket) -> bytes | None:
    """Read until the blank line that ends the headers.

    Returns None when the client closes the connection first or the request
    does not fit in MAX_BYTES.
    """
    buffer = b""
    while b"\r\n\r\n" not in buffer:
        if len(buffer) >= MAX_BYTES:
            return None
        chunk = sock.recv(MAX_BYTES - len(buffer))
        if not chunk:
            return None
        buffer = (buffer + chunk).split(b"\0", 1)[0]
    return buffer


def connect_remote_server(
    host: str, port: int, logger: ProxyLogger | None = None
) -> socket.socket:
    """Open a TCP connection to ``host``:``port`` over IPv4."""
    _log(logger, LogLevel.DEBUG, f"Connecting to remote server {host}:{port}")
    try:
        address = socket.gethostbyname(host)
    except OSError:
        _log(logger, LogLevel.ERROR, f"No such host exists: {host}")
        raise
    remote = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        remote.connect((address, port))
    except OSError as exc:
        remote.close()
        _log(
            logger,
            LogLevel.ERROR,
            f"Error connecting to remote server {host}:{port}: {exc.strerror or exc}",
        )
        raise
    _log(logger, LogLevel.INFO, f"Successfully connected to remote server {host}:{port}")
    return remote