# cacheproxy

A small HTTP forward proxy, plus the parts it is built from:

- `cacheproxy.parser`: parses and re-serialises proxied `GET` requests.
- `cacheproxy.cache`: an in-memory response cache that evicts the least
  recently used entry first.
- `cacheproxy.logger`: levelled, thread-safe logging to a stream and an
  optional file.
- `cacheproxy.wire`: socket helpers for error pages, reading requests and
  connecting to origin servers.
- `cacheproxy.plain_server`: a threaded forwarding proxy. It does no caching.

## Installation

```
pip install .
```

## Running the forwarding proxy

```
cacheproxy-plain 8080
```

The command takes exactly one argument, the port number. With any other number
of arguments it prints `Too few arguments` and exits with status 1. It listens
on all interfaces and runs each client connection in its own thread. By
default it serves at most 400 clients at a time.

Point a client at it:

```
curl -x http://localhost:8080 http://example.com/
```

How a request is handled:

- Only `GET` requests with an absolute URI are accepted, and only
  `HTTP/1.0` and `HTTP/1.1`.
- The proxy sends the origin server `GET <path> <version>` followed by the
  client's headers. It sets `Connection: close`, and adds a `Host` header if the
  client did not send one.
- The origin server's port is the one in the URI, or 80 if the URI has none.
  The reply is relayed to the client as it arrives.
- If a request cannot be parsed, or its method is not `GET`, the connection is
  closed without a reply.
- An unsupported version, or an origin server that cannot be reached, gets a
  `500 Internal Server Error` page.

Progress messages are printed to standard output.

## Library use

### Parsing requests

```python
from cacheproxy.parser import parse_request, ParseError

req = parse_request(
    b"GET http://www.example.com:80/index.html HTTP/1.0\r\n"
    b"If-Modified-Since: Sat, 29 Oct 1994 19:43:31 GMT\r\n\r\n"
)
print(req.host, req.port, req.path)      # www.example.com 80 /index.html
req.set_header("Connection", "close")
print(req.unparse())
```

`parse_request` accepts `bytes` or `str`. The input must contain the blank line
that ends the headers. It raises `ParseError` if the request is malformed:
a method other than `GET`, a missing `HTTP/` version, a missing host, or a URI
with no path after the host. A URI such as `http://example.com/` gets the path
`/`.

`ParsedRequest` has these methods:

- `get_header`, `set_header` and `remove_header`. `set_header` replaces any
  existing value and moves the header to the end. `remove_header` raises
  `KeyError` if the header is absent.
- `request_line`, `unparse_headers` and `unparse`.
- `headers_len` and `total_len`.

### Caching responses

```python
from cacheproxy.cache import ResponseCache, create_cache_key

cache = ResponseCache(max_size=1 << 20, max_element_size=1 << 16)
key = create_cache_key(req)              # "www.example.com/index.html"
cache.add(b"HTTP/1.0 200 OK\r\n\r\nhello", key)
entry = cache.find(key)                  # marks the entry as used
print(entry.data)
print("\n".join(cache.describe()))
```

Cache keys are the host followed by the path. `normalize_url` lower-cases the
key and drops one trailing slash.

`add` returns `False` if the entry is larger than `max_element_size`.
Otherwise it evicts least recently used entries until the new one fits.
`evict_lru` removes the oldest entry itself. `entries` lists the entries,
newest first.

Both `ResponseCache` and `ProxyLogger` accept optional arguments: a cache
takes a `logger` and a `clock`, and a logger takes a `stream`.

### Logging

```python
from cacheproxy.logger import ProxyLogger, LogLevel, parse_log_level

with ProxyLogger("proxy.log", parse_log_level("debug")) as log:
    log.log(LogLevel.INFO, "started")
```

Each line is written as `[YYYY-mm-dd HH:MM:SS] [LEVEL] message`. The levels are
`ERROR`, `WARN`, `INFO` and `DEBUG`. `parse_log_level` raises `ValueError` for
an unknown name.

### Socket helpers

`cacheproxy.wire` provides these functions:

- `error_response(status_code, now)` builds the complete error page for 400,
  403, 404, 500, 501 or 505.
- `send_error` sends that page over a socket.
- `check_http_version` accepts `HTTP/1.0` and `HTTP/1.1`.
- `read_request` reads from a socket up to the end of the headers.
- `connect_remote_server` opens an IPv4 connection to an origin server.

## What this package does not do

The only command is the forwarding proxy, `cacheproxy-plain`, and it does not
cache anything. `ResponseCache` and `ProxyLogger` are library components. No
server command in this package uses them. There is no cached proxy to run, no
log-level option on the command line, and no signal that dumps the cache
contents.

## Tests

```
pip install .[test]
pytest
```