"""Parsing and re-serialising of proxied HTTP GET requests."""

from __future__ import annotations

from dataclasses import dataclass, field

MIN_REQUEST_LEN = 4
MAX_REQUEST_LEN = 65535
ROOT_PATH = "/"


class ParseError(ValueError):
    """Raised when a request buffer cannot be parsed."""


def _strtok(text: str, pos: int, delims: str) -> tuple[str | None, int]:
    """Return the next token of ``text`` from ``pos`` and the resume position.

    Leading delimiters are skipped; the token ends at the next delimiter,
    which is consumed.
    """
    length = len(text)
    while pos < length and text[pos] in delims:
        pos += 1
    if pos >= length:
        return None, length
    end = pos
    while end < length and text[end] not in delims:
        end += 1
    return text[pos:end], min(end + 1, length)


@dataclass
class ParsedRequest:
    """A parsed request line plus its ordered headers."""

    method: str
    protocol: str
    host: str
    path: str
    version: str
    port: str | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)

    def get_header(self, key: str) -> str | None:
        """Return the value of header ``key`` or None when absent."""
        for name, value in self.headers:
            if name == key:
                return value
        return None

    def remove_header(self, key: str) -> None:
        """Remove header ``key``; raise KeyError when it is absent."""
        for position, (name, _) in enumerate(self.headers):
            if name == key:
                del self.headers[position]
                return
        raise KeyError(key)

    def set_header(self, key: str, value: str) -> None:
        """Set header ``key``, replacing any earlier value and moving it last."""
        try:
            self.remove_header(key)
        except KeyError:
            pass
        self.headers.append((key, value))

    def request_line(self) -> str:
        """Return the request line, terminated by CRLF."""
        port = f":{self.port}" if self.port is not None else ""
        return (
            f"{self.method} {self.protocol}://{self.host}{port}{self.path} "
            f"{self.version}\r\n"
        )

    def unparse_headers(self) -> str:
        """Return the headers followed by the blank line that ends them."""
        lines = "".join(f"{name}: {value}\r\n" for name, value in self.headers)
        return lines + "\r\n"

    def unparse(self) -> str:
        """Return the whole request: request line, headers and blank line."""
        return self.request_line() + self.unparse_headers()

    def headers_len(self) -> int:
        """Length of the serialised headers including the final CRLF."""
        return len(self.unparse_headers())

    def total_len(self) -> int:
        """Length of the whole serialised request."""
        return len(self.unparse())


def _parse_header_line(line: str) -> tuple[str, str]:
    colon = line.find(":")
    if colon < 0:
        raise ParseError(f"no colon found in header line {line!r}")
    value = line[colon + 1:]
    if value.startswith(" "):
        value = value[1:]
    return line[:colon], value


def parse_request(data: bytes | str) -> ParsedRequest:
    """Parse a GET request held in ``data``, which must include the blank line."""
    if isinstance(data, bytes):
        data = data.decode("latin-1")
    if not MIN_REQUEST_LEN <= len(data) <= MAX_REQUEST_LEN:
        raise ParseError(f"invalid request length {len(data)}")

    text = data.split("\0", 1)[0]
    if "\r\n\r\n" not in text:
        raise ParseError("invalid request, no end of header")

    line_end = text.index("\r\n")
    line = text[:line_end]

    method, pos = _strtok(line, 0, " ")
    if method is None:
        raise ParseError("invalid request line, no whitespace")
    if method != "GET":
        raise ParseError(f"invalid request line, method not 'GET': {method}")

    full_addr, pos = _strtok(line, pos, " ")
    if full_addr is None:
        raise ParseError("invalid request line, no full address")

    version = line[pos:] if pos < len(line) and line[pos - 1] == " " else ""
    if not version.startswith("HTTP/"):
        raise ParseError(f"invalid request line, unsupported version {version!r}")

    protocol, addr_pos = _strtok(full_addr, 0, ":/")
    if protocol is None:
        raise ParseError("invalid request line, missing host")
    abs_uri_len = len(full_addr[len(protocol) + 3:])

    host_port, addr_pos = _strtok(full_addr, addr_pos, "/")
    if host_port is None:
        raise ParseError("invalid request line, missing host")
    if len(host_port) == abs_uri_len:
        raise ParseError("invalid request line, missing absolute path")

    rest, _ = _strtok(full_addr, addr_pos, " ")
    if rest is None:
        path = ROOT_PATH
    elif rest.startswith(ROOT_PATH):
        raise ParseError(
            "invalid request line, path cannot begin with two slash characters"
        )
    else:
        path = ROOT_PATH + rest

    host, host_pos = _strtok(host_port, 0, ":")
    if host is None:
        raise ParseError("invalid request line, missing host")
    port, _ = _strtok(host_port, host_pos, "/")
    if port is not None:
        stripped = port.lstrip()
        digits = stripped[1:] if stripped[:1] in "+-" else stripped
        if not digits[:1].isdigit():
            raise ParseError(f"invalid request line, bad port: {port}")

    request = ParsedRequest(
        method=method,
        protocol=protocol,
        host=host,
        path=path,
        version=version,
        port=port,
    )

    header_block = text[line_end + 2:].split("\r\n\r\n", 1)[0]
    if text[line_end + 2:].startswith("\r\n"):
        header_block = ""
    for header_line in header_block.split("\r\n") if header_block else []:
        key, value = _parse_header_line(header_line)
        request.set_header(key, value)
    return request