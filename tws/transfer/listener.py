"""
Single-Shot Listener

Binds one dual-stack TCP port, accepts exactly one client and closes the
listening socket. There is no second accept: this is not a server loop.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Optional

from ..errors import SetupError, TransportError

logger = logging.getLogger(__name__)

# Accept a backlog of exactly one pending connection
BACKLOG = 1

UNKNOWN_NAME = "unknown"


@dataclass
class ConnectionEndpoint:
    """The accepted client connection."""
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    ip: str
    port: int
    name: Optional[str] = None

    def describe(self) -> str:
        return f"{self.ip} ({self.name or UNKNOWN_NAME}) from port {self.port}"

    def set_unbuffered(self):
        """Push every write to the kernel before drain() returns."""
        self.writer.transport.set_write_buffer_limits(high=0)
        sock = self.writer.get_extra_info('socket')
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def create_listen_socket(port: int) -> socket.socket:
    """
    Create a listening socket on the IPv6 wildcard that also takes IPv4
    clients (as ::ffff:a.b.c.d mapped addresses).

    Raises:
        SetupError: on any socket/setsockopt/bind/listen failure
    """
    step = 'socket'
    sock = None
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_STREAM, socket.IPPROTO_TCP)
        step = 'setsockopt'
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        # allow v4 clients as well
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        step = 'bind'
        sock.bind(('::', port))
        step = 'listen'
        sock.listen(BACKLOG)
        sock.setblocking(False)
    except OSError as e:
        if sock is not None:
            sock.close()
        raise SetupError(f"{step}: {e.strerror or e}")

    logger.debug(f"Listening socket bound to [::]:{port}")
    return sock


def unmap_address(ip: str) -> str:
    """Strip the IPv4-mapped prefix so v4 clients show as plain a.b.c.d."""
    if ip.startswith('::ffff:') and ip.count('.') == 3:
        return ip[len('::ffff:'):]
    return ip


def resolve_peer_name(ip: str) -> Optional[str]:
    """Reverse lookup, None if the address has no name."""
    try:
        return socket.gethostbyaddr(ip)[0]
    except OSError as e:
        logger.debug(f"No reverse name for {ip}: {e}")
        return None


async def accept_one(sock: socket.socket, resolve_names: bool = True) -> ConnectionEndpoint:
    """
    Block until one client connects, then stop listening for good.

    The accepted socket is wrapped in asyncio streams for the request
    reader and the transfer loop.
    """
    loop = asyncio.get_running_loop()
    try:
        conn, address = await loop.sock_accept(sock)
    except OSError as e:
        raise TransportError(f"Error accepting connection: {e}")
    finally:
        sock.close()

    ip, port = unmap_address(address[0]), address[1]

    name = None
    if resolve_names:
        name = await loop.run_in_executor(None, resolve_peer_name, ip)

    try:
        reader, writer = await asyncio.open_connection(sock=conn)
    except OSError as e:
        conn.close()
        raise TransportError(f"Error accepting connection: {e}")
    logger.debug(f"Accepted connection from {ip}:{port}")

    return ConnectionEndpoint(reader=reader, writer=writer, ip=ip, port=port, name=name)
