"""
Configuration Management

Handles defaults from environment variables (and a .env file). Command-line
flags are applied on top by the CLI.

Configuration priority (highest to lowest):
1. Command-line flags
2. Environment variables (TWS_*)
3. Default values
"""

import os
import random
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from .errors import SetupError

# This value seems to saturate a gigabit link; larger buffers do slightly worse.
DEFAULT_BUFFER_SIZE = 16384

# How often we (try to) redraw the progress bar, in seconds
DEFAULT_REFRESH_INTERVAL = 0.3

DEFAULT_MIME = 'application/octet-stream'

# Random ports are drawn from [low, high)
DEFAULT_PORT_RANGE = (8000, 9000)


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise SetupError(f"Invalid value for {name}: {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise SetupError(f"Invalid value for {name}: {value!r}")


@dataclass
class ServerConfig:
    """Settings for a single serve-and-exit run."""
    # Network
    port: Optional[int] = None  # random from port_range if not set
    port_range: Tuple[int, int] = DEFAULT_PORT_RANGE
    unbuffered: bool = False

    # Transfer
    buffer_size: int = DEFAULT_BUFFER_SIZE
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL

    # Content
    mime_type: Optional[str] = None  # autodetect if not forced
    default_mime: str = DEFAULT_MIME

    # URL report
    all_addresses: bool = False
    resolve_names: bool = True
    user_url: Optional[str] = None
    url_filename: Optional[str] = None

    # Logging
    verbose: bool = False
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        """Load defaults from environment variables."""
        load_dotenv()

        config = cls()

        config.port = _env_int('TWS_PORT', config.port)
        config.port_range = (
            _env_int('TWS_PORT_MIN', config.port_range[0]),
            _env_int('TWS_PORT_MAX', config.port_range[1]),
        )
        config.buffer_size = _env_int('TWS_BUFFER_SIZE', config.buffer_size)
        config.refresh_interval = _env_float('TWS_REFRESH_INTERVAL', config.refresh_interval)
        config.default_mime = os.getenv('TWS_DEFAULT_MIME', config.default_mime)
        config.log_level = os.getenv('TWS_LOG_LEVEL', config.log_level).upper()

        return config

    def validate(self):
        """Raise SetupError on values the server cannot run with."""
        if self.port is not None and not 1 <= self.port <= 65535:
            raise SetupError(f"Invalid port specified: {self.port}")

        low, high = self.port_range
        if not (1 <= low < high <= 65536):
            raise SetupError(f"Invalid port range: {low}-{high}")

        if self.buffer_size <= 0:
            raise SetupError(f"Invalid buffer size: {self.buffer_size}")

        if self.refresh_interval <= 0:
            raise SetupError(f"Invalid refresh interval: {self.refresh_interval}")

    def pick_port(self) -> int:
        """The configured port, or a pseudo-random one from port_range."""
        if self.port is not None:
            return self.port
        low, high = self.port_range
        return random.randrange(low, high)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'port': self.port,
            'port_range': list(self.port_range),
            'unbuffered': self.unbuffered,
            'buffer_size': self.buffer_size,
            'refresh_interval': self.refresh_interval,
            'mime_type': self.mime_type,
            'default_mime': self.default_mime,
            'all_addresses': self.all_addresses,
            'resolve_names': self.resolve_names,
            'user_url': self.user_url,
            'url_filename': self.url_filename,
            'verbose': self.verbose,
            'log_level': self.log_level,
        }
