"""
HTTP Framing

Design Decision: How Much HTTP
==============================

Options Considered:
1. http.server / a web framework
   - Complete, but built around a serve-forever loop and routing
   - Hides the socket, so the single-accept and progress tick get awkward

2. h11 or another sans-IO parser
   - Correct incremental parsing
   - Far more protocol than one GET and one response need

3. Hand-written minimal framing
   - One request line check, one header block, chunk framing
   - Full control over exactly which bytes hit the wire

Decision: Minimal framing on top of asyncio streams
- Accept only `GET <path> HTTP/x`, skip the headers
- One fixed header block, no caching or connection-control headers
- Body is either raw (Content-Length) or chunked

Wire format:
```
HTTP/1.1 200 Ok\\r\\n
Content-Type: <mime>\\r\\n
Server: tws (not a real server)\\r\\n
Content-Length: <n>\\r\\n   |   Transfer-Encoding: chunked\\r\\n
\\r\\n
<body>
```
Chunk: `<hex size>\\r\\n<bytes>\\r\\n`, terminated by `0\\r\\n\\r\\n`.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..errors import ProtocolError, TransportError
from .session import TransferMode

logger = logging.getLogger(__name__)

SERVER_NAME = "tws (not a real server)"
STATUS_LINE = b"HTTP/1.1 200 Ok\r\n"
CRLF = b"\r\n"
LAST_CHUNK = b"0\r\n\r\n"

REQUEST_LINE_RE = re.compile(r'^GET (\S+) HTTP/(\S+)\r?\n$')

# Called with every raw request line, for the -v echo
LineCallback = Callable[[str], None]


@dataclass
class HttpRequest:
    """The parts of the client's request we bother to keep."""
    method: str
    path: str
    version: str
    headers: List[str] = field(default_factory=list)


async def _readline(reader: asyncio.StreamReader) -> bytes:
    try:
        return await reader.readline()
    except ValueError as e:
        # StreamReader turns LimitOverrunError into ValueError
        raise ProtocolError(f"Request line too long: {e}")
    except (ConnectionError, OSError) as e:
        raise TransportError(f"Error reading request: {e}")


async def read_request(reader: asyncio.StreamReader,
                       on_line: Optional[LineCallback] = None) -> HttpRequest:
    """
    Read the request line and the header block.

    No timeout: a client that connects and stays silent keeps us waiting.

    Raises:
        ProtocolError: not a GET, malformed, or connection closed early
        TransportError: the connection failed while reading
    """
    raw = await _readline(reader)
    line = raw.decode('latin-1')

    match = REQUEST_LINE_RE.match(line)
    if not match:
        logger.debug(f"Rejected request line: {line!r}")
        raise ProtocolError("Invalid request received, terminating")

    if on_line:
        on_line(line)

    request = HttpRequest(method='GET', path=match.group(1), version=match.group(2))

    # Read the rest and throw it away; we won't act on any of it.
    while True:
        raw = await _readline(reader)
        if raw == CRLF:
            break
        if not raw:
            raise ProtocolError("Client closed the connection before end of headers")

        header = raw.decode('latin-1')
        request.headers.append(header)
        if on_line:
            on_line(header)

    logger.debug(f"GET {request.path} (HTTP/{request.version}, "
                 f"{len(request.headers)} headers)")
    return request


def build_response_head(mode: TransferMode, mime_type: str, total_bytes: int) -> bytes:
    """The complete status line + header block, blank line included."""
    lines = [
        STATUS_LINE,
        f"Content-Type: {mime_type}\r\n".encode('latin-1', errors='replace'),
        f"Server: {SERVER_NAME}\r\n".encode('latin-1'),
    ]

    if mode is TransferMode.FIXED_LENGTH:
        lines.append(f"Content-Length: {total_bytes:d}\r\n".encode('latin-1'))
    else:
        lines.append(b"Transfer-Encoding: chunked\r\n")

    lines.append(CRLF)
    return b''.join(lines)


def frame_chunk(data: bytes) -> bytes:
    """Wrap data as one chunk of a chunked body."""
    if not data:
        # A zero-size chunk would end the body
        raise ValueError("cannot frame an empty chunk")
    return b"%x\r\n" % len(data) + data + CRLF
