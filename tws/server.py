"""
One-Shot Server - Main Controller

Runs the steps of a transfer in order; the first one that fails ends the
run with a TwsError:

1. Open the payload (file or pipe)
2. Decide the MIME type and the URL path segment
3. Bind the listening socket
4. Print where we are listening and the candidate URLs
5. Accept exactly one client
6. Read its GET request
7. Send the response headers
8. Hand over to the transfer loop
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from .config import ServerConfig
from .discovery import candidate_urls, discover_addresses, escape_filename
from .errors import TransportError
from .file import ByteSource, detect_mime, open_file_source, open_pipe_source
from .transfer import (
    ConnectionEndpoint, ProgressRenderer, TransferLoop, TransferSession,
    accept_one, build_response_head, create_listen_socket, read_request,
    terminal_width,
)

logger = logging.getLogger(__name__)


class OneShotServer:
    """
    Serves one file (or one pipe) to one client, then stops.

    Usage:
        server = OneShotServer(config, 'report.pdf', streaming=False)
        session = await server.run()
    """

    def __init__(self, config: ServerConfig, name: str, streaming: bool = False,
                 console: Optional[Console] = None, pipe=None):
        """
        Args:
            config: Validated run configuration
            name: File to serve; in streaming mode only used for the URL
            streaming: Read from a pipe instead of the file
            console: Where the operator report and progress bar go
            pipe: Pipe to stream from (standard input if not given)
        """
        self.config = config
        self.name = name
        self.streaming = streaming
        self.console = console or Console()
        self.pipe = pipe

        self.port: Optional[int] = None
        self.mime_type: Optional[str] = None
        self.path_segment: Optional[str] = None
        self.endpoint: Optional[ConnectionEndpoint] = None

    async def open_source(self) -> ByteSource:
        if self.streaming:
            return await open_pipe_source(self.pipe)
        return await open_file_source(Path(self.name))

    def resolve_mime(self) -> str:
        """Forced type, else detected (files only), else the default."""
        if self.config.mime_type:
            return self.config.mime_type
        if not self.streaming:
            detected = detect_mime(Path(self.name))
            if detected:
                return detected
        return self.config.default_mime

    def url_path_segment(self) -> str:
        if self.config.url_filename:
            return self.config.url_filename
        return escape_filename(Path(self.name).name)

    async def run(self) -> TransferSession:
        """Do the whole transfer; returns the finished session."""
        source = await self.open_source()
        handed_off = False
        try:
            self.mime_type = self.resolve_mime()
            self.path_segment = self.url_path_segment()

            sock = create_listen_socket(self.config.pick_port())
            try:
                self.port = sock.getsockname()[1]
                await self._announce()
            except BaseException:
                sock.close()
                raise

            self.endpoint = await accept_one(sock, self.config.resolve_names)
            writer = self.endpoint.writer
            try:
                self.console.print(f"Client connected: {self.endpoint.describe()}",
                                   markup=False, highlight=False, soft_wrap=True)

                if self.config.unbuffered:
                    self.endpoint.set_unbuffered()

                await read_request(self.endpoint.reader, self._echo if self.config.verbose else None)
                if self.config.verbose:
                    self.console.print()

                session = TransferSession.for_source(
                    source.size, self.config.buffer_size, self.mime_type,
                )
                await self._send_head(writer, session)
            except BaseException:
                writer.close()
                raise

            width = terminal_width(self.console)
            renderer = ProgressRenderer(self.console.file, width)
            loop = TransferLoop(session, source, writer, renderer,
                                refresh_interval=self.config.refresh_interval)
            handed_off = True
            return await loop.run()
        finally:
            if not handed_off:
                await source.close()

    async def _announce(self):
        """Tell the operator where to point the client, before we block."""
        mode = " (streaming mode)" if self.streaming else ""
        self.console.print(
            f"Listening on port [yellow]{self.port}[/yellow]{mode}, "
            f"MIME type is [cyan]{escape(self.mime_type)}[/cyan]\n"
        )
        self.console.print("Possible URLs that should work to retrieve the file:\n")

        loop = asyncio.get_running_loop()
        addresses: List[str] = await loop.run_in_executor(
            None, discover_addresses,
            self.config.all_addresses, self.config.resolve_names,
        )
        urls = candidate_urls(addresses, self.port, self.path_segment,
                              self.config.user_url)

        for url in urls:
            self.console.print(url, markup=False, highlight=False, soft_wrap=True)

        if not addresses:
            self.console.print("Cannot determine more URLs.")
            self.console.print(
                f"Use an URL like http://some.address.or.name:{self.port}/{self.path_segment},",
                markup=False, highlight=False, soft_wrap=True,
            )
            self.console.print("where 'some.address.or.name' is an address or a name "
                               "that eventually gets traffic to a local IP address")
        self.console.print()

    def _echo(self, line: str):
        self.console.print(line.rstrip('\r\n'), markup=False, highlight=False, soft_wrap=True)

    async def _send_head(self, writer: asyncio.StreamWriter, session: TransferSession):
        head = build_response_head(session.mode, session.mime_type, session.total_bytes)
        try:
            writer.write(head)
            await writer.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(f"Error writing to client: {e}")
        logger.debug(f"Sent {session.mode.value} response headers ({session.mime_type})")
