"""Fakes shared by the transfer tests."""

import asyncio
import io
import re
import socket
from typing import List, Tuple

import pytest

from tws.errors import SetupError
from tws.transfer.listener import create_listen_socket
from tws.file.source import ByteSource, UNKNOWN_SIZE
from tws.transfer.progress import ProgressRenderer


class FakeWriter:
    """Collects what the transfer loop writes, optionally failing on drain."""

    def __init__(self, fail_after=None, error=ConnectionResetError):
        self.writes: List[bytes] = []
        self.closed = False
        self.close_calls = 0
        self.fail_after = fail_after
        self.error = error

    def write(self, data: bytes):
        self.writes.append(bytes(data))

    async def drain(self):
        if self.fail_after is not None and len(self.writes) > self.fail_after:
            raise self.error("Connection reset by peer")

    def close(self):
        self.closed = True
        self.close_calls += 1

    async def wait_closed(self):
        pass

    @property
    def data(self) -> bytes:
        return b''.join(self.writes)


class MemorySource(ByteSource):
    """A 'file' held in memory; size known."""

    def __init__(self, data: bytes):
        self.data = data
        self.size = len(data)
        self.name = 'memory'
        self.pos = 0
        self.reads: List[int] = []
        self.closed = False

    async def read(self, n: int) -> bytes:
        self.reads.append(n)
        chunk = self.data[self.pos:self.pos + n]
        self.pos += len(chunk)
        return chunk

    async def close(self):
        self.closed = True


class ScriptedSource(ByteSource):
    """
    An unbounded source replaying a script: bytes items are returned by
    successive reads, float items make the next read stall that long.
    """

    def __init__(self, script, error=None):
        self.script = list(script)
        self.size = UNKNOWN_SIZE
        self.name = 'scripted'
        self.error = error
        self.closed = False

    async def read(self, n: int) -> bytes:
        while self.script:
            item = self.script.pop(0)
            if isinstance(item, float):
                await asyncio.sleep(item)
                continue
            assert len(item) <= n
            return item
        if self.error:
            raise self.error
        return b''

    async def close(self):
        self.closed = True


class RecordingRenderer(ProgressRenderer):
    """Keeps (sent, percent, time_value, speed) of every draw."""

    def __init__(self):
        super().__init__(io.StringIO(), 80)
        self.draws: List[Tuple[int, int, float, float]] = []
        self.finished = False

    def draw(self, session, time_value, speed):
        self.draws.append((session.sent_bytes, session.percent(), time_value, speed))
        super().draw(session, time_value, speed)

    def finish(self):
        self.finished = True
        super().finish()


CHUNK_SIZE_RE = re.compile(rb'^[0-9a-f]+$')


def dechunk(body: bytes) -> Tuple[bytes, List[int]]:
    """
    Undo chunked framing strictly.

    Returns the payload and the list of chunk sizes (terminating 0 included).
    Fails on malformed framing or trailing bytes after the last chunk.
    """
    payload = io.BytesIO()
    sizes = []
    pos = 0
    while True:
        eol = body.index(b'\r\n', pos)
        size_line = body[pos:eol]
        assert CHUNK_SIZE_RE.match(size_line), size_line
        size = int(size_line, 16)
        sizes.append(size)
        pos = eol + 2
        if size == 0:
            assert body[pos:] == b'\r\n'
            break
        payload.write(body[pos:pos + size])
        pos += size
        assert body[pos:pos + 2] == b'\r\n'
        pos += 2
    return payload.getvalue(), sizes


def split_response(raw: bytes) -> Tuple[List[str], bytes]:
    """Split a raw response into header lines and body."""
    head, _, body = raw.partition(b'\r\n\r\n')
    return head.decode('latin-1').split('\r\n'), body


def _dual_stack_available() -> bool:
    if not socket.has_ipv6:
        return False
    try:
        sock = create_listen_socket(0)
    except SetupError:
        return False
    sock.close()
    return True


dual_stack = pytest.mark.skipif(
    not _dual_stack_available(), reason="IPv6 dual-stack sockets not available"
)
