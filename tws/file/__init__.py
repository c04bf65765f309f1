"""
File Module - Payload Sources and Content Type

Everything that reads the thing being served.
"""

from .source import (
    ByteSource, FileSource, StreamSource, UNKNOWN_SIZE,
    open_file_source, open_pipe_source, stdin_is_pipe,
)
from .mime import detect_mime

__all__ = [
    'ByteSource',
    'FileSource',
    'StreamSource',
    'UNKNOWN_SIZE',
    'open_file_source',
    'open_pipe_source',
    'stdin_is_pipe',
    'detect_mime',
]
