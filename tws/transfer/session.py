"""
Transfer Session

The single piece of mutable state of a run. It is created once the payload
source is known, handed explicitly to the transfer loop and the progress
renderer, and discarded at exit.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class TransferMode(Enum):
    """How the response body is delimited."""
    FIXED_LENGTH = "fixed-length"  # Content-Length, size known up front
    STREAMING = "streaming"        # Transfer-Encoding: chunked


@dataclass
class TransferSession:
    """Counters and clocks for one transfer."""
    mode: TransferMode
    total_bytes: int
    buffer_size: int
    mime_type: str
    sent_bytes: int = 0
    interval_count: int = 0
    start_time: float = field(default_factory=time.monotonic)
    last_progress_time: float = 0.0
    chunk_framing_open: bool = False

    def __post_init__(self):
        if self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.mode is TransferMode.STREAMING:
            self.total_bytes = -1
        elif self.total_bytes < 0:
            raise ValueError("fixed-length transfers need a known size")
        self.last_progress_time = self.start_time

    @classmethod
    def for_source(cls, size: int, buffer_size: int, mime_type: str) -> 'TransferSession':
        """Pick the mode from the source size (-1 means unbounded)."""
        mode = TransferMode.STREAMING if size < 0 else TransferMode.FIXED_LENGTH
        return cls(mode=mode, total_bytes=size, buffer_size=buffer_size,
                   mime_type=mime_type)

    @property
    def is_streaming(self) -> bool:
        return self.mode is TransferMode.STREAMING

    @property
    def remaining(self) -> int:
        """Bytes still owed to the client, or -1 when unknown."""
        if self.is_streaming:
            return -1
        return self.total_bytes - self.sent_bytes

    def start(self, now: float):
        """Reset both clocks; called right after the headers went out."""
        self.start_time = now
        self.last_progress_time = now

    def next_read_size(self) -> int:
        """
        How much to ask the source for on the next cycle.

        Never more than what is left in fixed-length mode, so sent_bytes
        cannot overshoot Content-Length even if the file grows under us.
        """
        if self.is_streaming:
            return self.buffer_size
        return min(self.buffer_size, self.remaining)

    def record_sent(self, count: int):
        if count < 0:
            raise ValueError(f"negative byte count: {count}")
        if not self.is_streaming and self.sent_bytes + count > self.total_bytes:
            raise ValueError(
                f"would send {self.sent_bytes + count} bytes, "
                f"Content-Length is {self.total_bytes}"
            )
        self.sent_bytes += count

    def elapsed(self, now: float) -> float:
        return max(0.0, now - self.start_time)

    def throughput(self, now: float) -> float:
        """Average bytes/second since start; 0 on a zero-length interval."""
        elapsed = self.elapsed(now)
        if elapsed == 0:
            return 0.0
        return self.sent_bytes / elapsed

    def percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        return self.sent_bytes * 100 // self.total_bytes

    def display_time(self, now: float) -> float:
        """ETA in fixed-length mode, elapsed time when streaming."""
        elapsed = self.elapsed(now)
        if self.is_streaming:
            return elapsed
        if self.sent_bytes == 0:
            return 0.0
        return self.total_bytes * elapsed / self.sent_bytes - elapsed

    def refresh_due(self, now: float, interval: float) -> bool:
        return now - self.last_progress_time > interval

    def mark_refreshed(self, now: float):
        self.last_progress_time = now
        self.interval_count += 1
