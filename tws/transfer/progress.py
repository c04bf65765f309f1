"""
Progress Bar

A single terminal line redrawn in place with a carriage return:

```
  42% [=================>                        ]      43,515,904 (1m 3s) 11.2M/s
  --  [           <=>                           ]       1,048,576 (12s) 87.4K/s
```

The first form is used when the size is known; the percentage and bar
track bytes sent and the time field is the ETA. The second form is used
when streaming: the `<=>` marker sweeps back and forth once per refresh
just to show we are alive, and the time field is the elapsed time.

Rendering (`render_line`) is a pure function; `ProgressRenderer` only adds
the write-and-flush.
"""

import sys
from typing import Optional, TextIO

from .session import TransferMode, TransferSession

DEFAULT_TERM_WIDTH = 80

# Room left on the line for the percentage/counter/time/speed fields
RESERVED_COLUMNS = 50
MIN_BAR_LEN = 10

BYTE_UNITS = (
    (1 << 30, 'G'),
    (1 << 20, 'M'),
    (1 << 10, 'K'),
    (1, 'B'),
)


def terminal_width(console=None) -> int:
    """Columns of the operator's terminal, 80 when it cannot be told."""
    if console is None:
        return DEFAULT_TERM_WIDTH
    width = console.width
    return width if width and width > 0 else DEFAULT_TERM_WIDTH


def bar_length(term_width: int) -> int:
    return max(term_width - RESERVED_COLUMNS, MIN_BAR_LEN)


def commify(n: int) -> str:
    return f"{n:,}"


def human_bytes(count: float) -> str:
    """Scale to the largest unit not above count: '512B', '1.5K', '3M'."""
    for divisor, symbol in BYTE_UNITS:
        if count >= divisor or divisor == 1:
            break

    result = f"{count / divisor:.1f}"
    if result.endswith('.0'):
        result = result[:-2]
    if divisor == 1:
        result = str(int(float(result)))
    return result + symbol


def human_time(seconds: float) -> str:
    """'1d 2h 3m 4s', dropping zero fields (seconds always kept)."""
    seconds = max(0, int(seconds))

    days = seconds // 86400
    if days >= 100:
        return f"{days}d+"

    parts = [
        (days, 'd'),
        (seconds // 3600 % 24, 'h'),
        (seconds // 60 % 60, 'm'),
        (seconds % 60, 's'),
    ]
    return ' '.join(f"{value}{unit}" for value, unit in parts
                    if value > 0 or unit == 's')


def _fixed_bar(sent: int, total: int, bar_len: int) -> str:
    perc, filled = 0, 1
    if total > 0:
        perc = sent * 100 // total
        filled = max(sent * bar_len // total, 1)

    bar = '=' * (filled - 1) + '>' + ' ' * (bar_len - filled)
    return f" {perc:3d}% [{bar}]"


def _sweep_bar(intervals: int, bar_len: int) -> str:
    track = bar_len - 2  # positions the 3-wide marker can start at
    s = intervals % (track * 2) + 1
    if s <= track:
        pre, post = s - 1, bar_len - s - 2
    else:
        pre, post = bar_len * 2 - s - 4, s - bar_len + 1

    bar = ' ' * pre + '<=>' + ' ' * post
    return f"  --  [{bar}]"


def render_line(mode: TransferMode, sent: int, intervals: int, total: int,
                bar_len: int, term_width: int, time_value: float,
                speed: float) -> str:
    """Build one progress line, padded to exactly term_width (if it fits)."""
    if mode is TransferMode.FIXED_LENGTH:
        line = _fixed_bar(sent, total, bar_len)
    else:
        line = _sweep_bar(intervals, bar_len)

    line += f" {commify(sent):>15} ({human_time(time_value)}) {human_bytes(speed)}/s"
    return line.ljust(term_width)


class ProgressRenderer:
    """Draws the progress line for a session onto a text stream."""

    def __init__(self, stream: Optional[TextIO] = None,
                 term_width: int = DEFAULT_TERM_WIDTH):
        self.stream = stream if stream is not None else sys.stdout
        self.term_width = term_width
        self.bar_len = bar_length(term_width)

    def draw(self, session: TransferSession, time_value: float, speed: float):
        line = render_line(
            session.mode, session.sent_bytes, session.interval_count,
            session.total_bytes, self.bar_len, self.term_width,
            time_value, speed,
        )
        self.stream.write(line + '\r')
        self.stream.flush()

    def finish(self):
        """Leave the last drawn line on screen."""
        self.stream.write('\n')
        self.stream.flush()
