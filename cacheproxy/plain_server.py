"""A threaded HTTP GET proxy that forwards requests without caching."""

from __future__ import annotations

import re
import socket
import sys
import threading

from .parser import ParsedRequest, ParseError, parse_request
from .wire import (
    MAX_BYTES,
    check_http_version,
    connect_remote_server,
    read_request,
    send_error,
)

DEFAULT_PORT = 8080
DEFAULT_REMOTE_PORT = 80
MAX_CLIENTS = 400
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _leading_int(text: str) -> int:
    """Return the decimal integer at the start of ``text``, or 0 if there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


class ForwardingProxy:
    """Accept clients and relay their GET requests to the origin server."""

    def __init__(self, port: int = DEFAULT_PORT, max_clients: int = MAX_CLIENTS) -> None:
        self.port = port
        self.max_clients = max_clients
        self._slots = threading.BoundedSemaphore(max_clients)
        self._free = max_clients
        self._count_lock = threading.Lock()

    def _adjust_free(self, delta: int) -> int:
        with self._count_lock:
            self._free += delta
            return self._free

    def handle_request(self, client: socket.socket, request: ParsedRequest) -> int:
        """Forward ``request`` upstream and relay the reply; return bytes relayed.

        Raises OSError when the upstream server cannot be reached.
        """
        line = f"GET {request.path} {request.version}\r\n"
        request.set_header("Connection", "close")
        if request.get_header("Host") is None:
            request.set_header("Host", request.host)
        headers = request.unparse_headers()
        if len(line) + len(headers) > MAX_BYTES:
            print("unparse failed")
            outgoing = line
        else:
            outgoing = line + headers

        remote_port = (
            _leading_int(request.port) if request.port is not None else DEFAULT_REMOTE_PORT
        )
        remote = connect_remote_server(request.host, remote_port)

        relayed = 0
        with remote:
            remote.sendall(outgoing.encode("latin-1"))
            while True:
                chunk = remote.recv(MAX_BYTES - 1)
                if not chunk:
                    break
                try:
                    client.sendall(chunk)
                except OSError as exc:
                    print(f"Error in sending data to client socket: {exc}", file=sys.stderr)
                    break
                relayed += len(chunk)
        print("Done")
        return relayed

    def _serve_client(self, client: socket.socket) -> None:
        try:
            data = read_request(client)
        except OSError as exc:
            print(f"Error in receiving from client: {exc}", file=sys.stderr)
            return
        if data is None:
            print("Client disconnected!")
            return

        try:
            request = parse_request(data)
        except ParseError:
            print("Parsing failed")
            return

        if request.method != "GET":
            print("This code doesn't support any method other than GET")
            return

        if not (request.host and request.path and check_http_version(request.version)):
            send_error(client, 500)
            return

        try:
            self.handle_request(client, request)
        except OSError:
            send_error(client, 500)

    def handle_client(self, client: socket.socket) -> None:
        """Serve one client connection to completion and close it."""
        with self._slots:
            print(f"semaphore value:{self._adjust_free(-1)}")
            try:
                self._serve_client(client)
            except OSError as exc:
                print(f"Error while serving client: {exc}", file=sys.stderr)
            finally:
                try:
                    client.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                client.close()
                free = self._adjust_free(1)
        print(f"Semaphore post value:{free}")

    def serve_forever(self) -> None:
        """Listen on the configured port and serve each client in a thread.

        Raises OSError when the port cannot be bound, listened on or accepted from.
        """
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            try:
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as exc:
                print(f"setsockopt(SO_REUSEADDR) failed: {exc}", file=sys.stderr)
            try:
                listener.bind(("", self.port))
            except OSError as exc:
                print(f"Port is not free: {exc}", file=sys.stderr)
                raise
            print(f"Binding on port: {self.port}")
            try:
                listener.listen(self.max_clients)
            except OSError as exc:
                print(f"Error while Listening: {exc}", file=sys.stderr)
                raise
            while True:
                try:
                    client, _ = listener.accept()
                except OSError:
                    print("Error in Accepting connection !", file=sys.stderr)
                    raise
                threading.Thread(
                    target=self.handle_client, args=(client,), daemon=True
                ).start()


def main(argv: list[str] | None = None) -> int:
    """Run the forwarding proxy: ``<program> <port_number>``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print("Too few arguments")
        raise SystemExit(1)
    port = _leading_int(args[0])
    print(f"Setting Proxy Server Port : {port}")
    proxy = ForwardingProxy(port)
    try:
        proxy.serve_forever()
    except OSError:
        raise SystemExit(1) from None
    return 0