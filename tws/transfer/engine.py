"""
Transfer Loop

Design Decision: Waiting for Input Without Freezing the Progress Bar
=====================================================================

Options Considered:
1. Plain blocking read
   - Simplest
   - A quiet pipe freezes the progress bar until data shows up

2. Reader thread + queue
   - Bar keeps moving
   - Threads for what is one descriptor and one socket

3. Bounded wait on a single pending read
   - `asyncio.wait({read}, timeout=tick)`
   - On timeout the read is left pending, not cancelled, so nothing is lost
   - The tick doubles as the progress refresh clock

Decision: Bounded wait (option 3)

Cycle:
```
WAIT_READY --timeout--> IDLE_TICK ---------------------------+
    |                                                        |
    +--data--> FRAME_AND_WRITE --> account/refresh --> WAIT_READY
    |
    +--EOF---> FINALIZE (last chunk, final bar, close)
```

Writes go out one at a time and each is drained before the next read is
issued, so a slow client naturally slows the whole cycle down. Any write
failure ends the transfer; there is nothing to resume.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from ..errors import TransportError
from ..file.source import ByteSource
from .progress import ProgressRenderer
from .protocol import LAST_CHUNK, frame_chunk
from .session import TransferSession

logger = logging.getLogger(__name__)

# How often we (try to) redraw the progress bar, in seconds
REFRESH_INTERVAL = 0.3

Clock = Callable[[], float]


class TransferLoop:
    """
    Pushes the whole source to the client after the headers are out.

    Owns the connection and the source from here on: both are closed when
    run() returns or raises.
    """

    def __init__(self, session: TransferSession, source: ByteSource,
                 writer: asyncio.StreamWriter,
                 renderer: Optional[ProgressRenderer] = None,
                 refresh_interval: float = REFRESH_INTERVAL,
                 clock: Clock = time.monotonic):
        self.session = session
        self.source = source
        self.writer = writer
        self.renderer = renderer
        self.refresh_interval = refresh_interval
        self.clock = clock

        # Statistics
        self.writes = 0
        self.idle_ticks = 0

    async def run(self) -> TransferSession:
        """
        Transfer until the source is exhausted.

        Raises:
            TransportError: the client went away or the socket failed
            SourceError: the payload could not be read
        """
        session = self.session
        session.start(self.clock())
        session.chunk_framing_open = session.is_streaming
        self._draw(0.0, 0.0)

        pending: Optional[asyncio.Future] = None
        try:
            while True:
                if pending is None:
                    want = session.next_read_size()
                    if want == 0:
                        # Content-Length reached
                        break
                    pending = asyncio.ensure_future(self.source.read(want))

                done, _ = await asyncio.wait({pending}, timeout=self.refresh_interval)

                if pending in done:
                    chunk = pending.result()
                    pending = None
                    if not chunk:
                        break
                    await self._send(chunk)
                else:
                    self.idle_ticks += 1

                self._tick()

            await self._finalize()
        finally:
            if pending is not None:
                pending.cancel()
            await self._close_connection()
            await self.source.close()

        logger.debug(f"Transfer complete: {session.sent_bytes:,} bytes in "
                     f"{self.writes} writes, {self.idle_ticks} idle ticks")
        return session

    async def _write(self, data: bytes):
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(f"Error writing to client: {e}")

    async def _send(self, chunk: bytes):
        if self.session.is_streaming:
            await self._write(frame_chunk(chunk))
        else:
            await self._write(chunk)
        self.session.record_sent(len(chunk))
        self.writes += 1

    def _tick(self):
        """Per-cycle accounting; redraw if the refresh interval has passed."""
        session = self.session
        now = self.clock()
        speed = session.throughput(now)

        if session.refresh_due(now, self.refresh_interval):
            # ETA in fixed-length mode, otherwise elapsed time
            time_value = session.display_time(now)
            session.mark_refreshed(now)
            self._draw(time_value, speed)

    async def _finalize(self):
        session = self.session
        if not session.is_streaming and session.remaining > 0:
            logger.warning(f"Input ended early: sent {session.sent_bytes:,} of "
                           f"{session.total_bytes:,} bytes")

        if session.is_streaming:
            await self._write(LAST_CHUNK)
            session.chunk_framing_open = False

        # Final bar always shows elapsed time
        now = self.clock()
        self._draw(session.elapsed(now), session.throughput(now))
        if self.renderer:
            self.renderer.finish()

    async def _close_connection(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing client connection: {e}")

    def _draw(self, time_value: float, speed: float):
        if self.renderer:
            self.renderer.draw(self.session, time_value, speed)
