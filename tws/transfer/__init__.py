"""
Transfer Module - One Connection, One Response

Listener, HTTP framing, session state, progress bar and the transfer loop.
"""

from .session import TransferMode, TransferSession
from .protocol import (
    HttpRequest, read_request, build_response_head, frame_chunk, LAST_CHUNK,
)
from .listener import ConnectionEndpoint, create_listen_socket, accept_one
from .progress import ProgressRenderer, render_line, terminal_width
from .engine import TransferLoop

__all__ = [
    'TransferMode',
    'TransferSession',
    'HttpRequest',
    'read_request',
    'build_response_head',
    'frame_chunk',
    'LAST_CHUNK',
    'ConnectionEndpoint',
    'create_listen_socket',
    'accept_one',
    'ProgressRenderer',
    'render_line',
    'terminal_width',
    'TransferLoop',
]
