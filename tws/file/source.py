"""
Payload Sources

Design Decision: Where the Bytes Come From
==========================================

Two kinds of input:
1. A regular file - size known up front, sent with Content-Length
2. A pipe on standard input - size unknown, sent chunked

Both expose the same `read(n)` coroutine: up to n bytes, b'' at end of
input. The transfer loop does not care which one it has, apart from
`size` (-1 when unbounded).

Files are read with aiofiles so a slow disk never blocks the event loop;
pipes are attached to the loop with connect_read_pipe.
"""

import asyncio
import logging
import os
import stat
import sys
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from ..errors import SetupError, SourceError

logger = logging.getLogger(__name__)

UNKNOWN_SIZE = -1


class ByteSource:
    """Read-next-chunk interface over the payload."""

    size: int = UNKNOWN_SIZE
    name: str = ''

    @property
    def is_unbounded(self) -> bool:
        return self.size < 0

    async def read(self, n: int) -> bytes:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class FileSource(ByteSource):
    """A regular file of known size."""

    def __init__(self, path: Path, handle, size: int):
        self.path = path
        self.name = path.name
        self.size = size
        self._handle = handle

    async def read(self, n: int) -> bytes:
        try:
            return await self._handle.read(n)
        except OSError as e:
            raise SourceError(f"Error reading input: {e}")

    async def close(self):
        await self._handle.close()


class StreamSource(ByteSource):
    """An unbounded stream, e.g. the read end of a pipe."""

    def __init__(self, reader: asyncio.StreamReader, name: str = '<stdin>',
                 transport: Optional[asyncio.ReadTransport] = None):
        self.name = name
        self.size = UNKNOWN_SIZE
        self._reader = reader
        self._transport = transport

    async def read(self, n: int) -> bytes:
        try:
            return await self._reader.read(n)
        except OSError as e:
            raise SourceError(f"Error reading input: {e}")

    async def close(self):
        if self._transport is not None:
            self._transport.close()
            self._transport = None


def stdin_is_pipe(stream=None) -> bool:
    """True when standard input is a FIFO, which selects streaming mode."""
    stream = stream if stream is not None else sys.stdin
    try:
        mode = os.fstat(stream.fileno()).st_mode
    except (AttributeError, ValueError, OSError):
        # replaced stdin (tests, embedding) or already closed
        return False
    return stat.S_ISFIFO(mode)


async def open_file_source(path: Path) -> FileSource:
    """
    Open a regular file for serving.

    Raises:
        SetupError: missing, unreadable, or a directory
    """
    path = Path(path)
    if path.is_dir() or not os.access(path, os.R_OK):
        raise SetupError(f"Invalid file specified: {path}")

    try:
        size = (await aiofiles.os.stat(path)).st_size
        handle = await aiofiles.open(path, 'rb')
    except OSError as e:
        raise SetupError(f"Cannot open {path}: {e.strerror or e}")

    logger.debug(f"Opened {path} ({size:,} bytes)")
    return FileSource(path, handle, size)


async def open_pipe_source(pipe=None, name: str = '<stdin>') -> StreamSource:
    """Attach a pipe (standard input by default) to the running loop."""
    pipe = pipe if pipe is not None else sys.stdin.buffer
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
    except (OSError, ValueError) as e:
        raise SetupError(f"Cannot read from {name}: {e}")

    logger.debug(f"Streaming from {name}")
    return StreamSource(reader, name=name, transport=transport)
