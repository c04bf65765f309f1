"""
tws - Throwaway Web Server

Hands one file, or the output of a pipe, to exactly one HTTP client and
exits. Meant for quick transfers between two machines that can already
reach each other.
"""

from .config import ServerConfig
from .errors import TwsError, SetupError, ProtocolError, TransportError, SourceError
from .server import OneShotServer

__version__ = '0.1.0'

__all__ = [
    'ServerConfig',
    'OneShotServer',
    'TwsError',
    'SetupError',
    'ProtocolError',
    'TransportError',
    'SourceError',
]
