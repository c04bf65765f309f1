#!/usr/bin/env python3
"""
tws - Throwaway Web Server

Serve one file (or whatever comes down a pipe) to exactly one HTTP client,
with a live progress bar, then exit.

Usage:
    tws /path/to/file.zip                          # serve a file
    tws -p 4444 -U host.example.com:5555 file.zip  # behind a port forward
    tar -cjf - dir | tws -m application/x-bzip2 dir.tbz2
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from .config import DEFAULT_BUFFER_SIZE, DEFAULT_MIME, ServerConfig
from .errors import SetupError, TwsError
from .file import stdin_is_pipe
from .server import OneShotServer

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

PROG_NAME = 'tws'

OPTIONS_HELP = f"""\
-a          : consider all addresses for URLs (including loopback and link-local addresses)
-u          : flush output buffer as soon as it's written
-n          : do not resolve IPs to names
-b bufsize  : read/write up to bufsize bytes for cycle (default: {DEFAULT_BUFFER_SIZE})
-p port     : listen on this port (default: random)
-m mimetype : force MIME type (default: autodetect if possible, otherwise {DEFAULT_MIME})
-U url      : include this URL among the listed alternative URLs
-f filename : use 'filename' to build the request part of the URL (default: dynamically computed)
-v          : print client request headers
"""

EXAMPLES = f"""\
Examples:
$ {PROG_NAME} -p 1025 /path/to/file.zip
Listen for connections on port 1025; send file.zip upon client connection. The specified path must exist.

$ {PROG_NAME} -p 4444 -U 'publicname.example.com:5555' -f archive.zip '/path/to/funny file.zip'
Listen on port 4444, suggest http://publicname.example.com:5555/archive.zip as download URL (presumably a port forwarding exists)

$ tar -cjf - file1 file2 file3 | {PROG_NAME} -m application/x-bzip2 result.tbz2
Listen on random port; upon connection, send the data coming from the pipe with the specified MIME type.
result.tbz2 need not exist; it's only used to build the URL
"""


def usage_text(msg: Optional[str] = None) -> str:
    parts = []
    if msg:
        parts.append(f"{msg}\n")
    parts.append("Usage:")
    parts.append(f"{PROG_NAME} [ -a ] [ -u ] [ -n ] [ -b bufsize ] [ -p port ] [ -m mimetype ] "
                 f"[ -U url ] [ -f filename ] [ -v ] name\n")
    parts.append(OPTIONS_HELP)
    parts.append("'name' (mandatory argument) must exist in normal mode; "
                 "in streaming mode it's only used to build the URL\n")
    parts.append(EXAMPLES if not msg else "Use -h for full help")
    return '\n'.join(parts)


def usage_error(msg: str) -> int:
    """Print the message and short usage to stderr; exit status 1."""
    click.echo(usage_text(msg), err=True)
    return 1


def setup_logging(level: str = 'INFO'):
    """Configure logging with rich output."""
    level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


def _show_help(ctx: click.Context, param: click.Parameter, value: bool):
    if not value or ctx.resilient_parsing:
        return
    click.echo(usage_text(), err=True)
    ctx.exit(1)


@click.command(context_settings={'help_option_names': []})
@click.option('-a', 'all_addresses', is_flag=True,
              help='Consider all addresses for URLs (including loopback and link-local)')
@click.option('-u', 'unbuffered', is_flag=True, help="Flush output as soon as it's written")
@click.option('-n', 'no_resolve', is_flag=True, help='Do not resolve IPs to names')
@click.option('-b', 'buffer_size', type=int, metavar='BUFSIZE',
              help=f'Read/write up to BUFSIZE bytes per cycle (default: {DEFAULT_BUFFER_SIZE})')
@click.option('-p', 'port', type=int, metavar='PORT', help='Listen on this port (default: random)')
@click.option('-m', 'mime_type', metavar='MIMETYPE', help='Force MIME type')
@click.option('-U', 'user_url', metavar='URL', help='Include this URL among the listed URLs')
@click.option('-f', 'url_filename', metavar='FILENAME', help='Path segment to use in URLs')
@click.option('-v', 'verbose', is_flag=True, help='Print client request headers')
@click.option('-h', 'show_help', is_flag=True, is_eager=True, expose_value=False,
              callback=_show_help, help='Show this message and exit')
@click.argument('name', required=False)
@click.argument('extra', nargs=-1)
@click.pass_context
def cli(ctx, all_addresses, unbuffered, no_resolve, buffer_size, port, mime_type,
        user_url, url_filename, verbose, name, extra):
    """Serve one file or pipe to one HTTP client, then exit."""
    code = run(all_addresses, unbuffered, no_resolve, buffer_size, port, mime_type,
               user_url, url_filename, verbose, name, extra)
    if code:
        ctx.exit(code)


def run(all_addresses, unbuffered, no_resolve, buffer_size, port, mime_type,
        user_url, url_filename, verbose, name, extra) -> int:
    """Apply the flags, validate, and serve; returns the exit status."""
    if not name:
        return usage_error("Must specify a filename")
    if extra:
        return usage_error("Unexpected extra arguments: " + ' '.join(extra))

    try:
        config = ServerConfig.from_env()
    except SetupError as e:
        return usage_error(str(e))

    # Flags override the environment
    if port is not None:
        config.port = port
    if buffer_size is not None:
        config.buffer_size = buffer_size
    if mime_type:
        config.mime_type = mime_type
    config.all_addresses = all_addresses
    config.resolve_names = not no_resolve
    config.unbuffered = unbuffered
    config.user_url = user_url
    config.url_filename = url_filename
    config.verbose = verbose

    setup_logging(config.log_level)

    try:
        config.validate()
    except SetupError as e:
        return usage_error(str(e))

    streaming = stdin_is_pipe()
    if not streaming and not _is_servable(Path(name)):
        return usage_error(f"Invalid file specified: {name}")

    logger.debug(f"Configuration: {config.to_dict()}")

    server = OneShotServer(config, name, streaming=streaming, console=console)
    try:
        asyncio.run(server.run())
    except TwsError as e:
        console.print()
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        console.print()
        logger.error("Interrupted, terminating")
        return 1

    return 0


def _is_servable(path: Path) -> bool:
    return path.exists() and not path.is_dir() and os.access(path, os.R_OK)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit status."""
    try:
        rv = cli.main(args=argv, prog_name=PROG_NAME, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        click.echo("Use -h for full help", err=True)
        return 1
    except click.Abort:
        return 1
    return rv if isinstance(rv, int) else 0


if __name__ == '__main__':
    sys.exit(main())
