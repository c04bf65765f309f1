"""
Local Address Discovery

Design Decision: Finding Our Own Addresses
==========================================

Options Considered:
1. Connect a UDP socket to a public address and read getsockname()
   - One address only, and wrong on multi-homed hosts
2. netifaces / psutil
   - Extra compiled dependency for a best-effort hint
3. Parse `ip address show`
   - Every address of every interface that is up
   - Linux only, but absence just means no hints

Decision: Parse `ip address show`
- If the tool is missing or fails, return an empty list
- The operator then gets a generic "use some address" hint instead

The result only feeds the printed list of candidate URLs; nothing in the
transfer depends on it.
"""

import logging
import re
import shutil
import socket
import subprocess
from typing import List, Optional, Tuple
from urllib.parse import quote

logger = logging.getLogger(__name__)

IP_TIMEOUT = 5.0

IFACE_RE = re.compile(r'^\d+: ([^:]+):')
IFACE_UP_RE = re.compile(r'[<,]UP[,>]')
ADDR_RE = re.compile(r'^\s+(inet6?) (\S+)')

LOOPBACK_V4_RE = re.compile(r'^127\.')
LOCAL_V6_RE = re.compile(r'^(?:::1$|fe80)', re.IGNORECASE)


def parse_ip_output(text: str, all_addresses: bool = False) -> List[Tuple[int, str]]:
    """
    Extract (family, address) pairs from `ip address show` output.

    Only interfaces flagged UP are considered. Unless all_addresses is set,
    loopback and link-local addresses are skipped.
    """
    found: List[Tuple[int, str]] = []
    iface_up = False

    for line in text.splitlines():
        if IFACE_RE.match(line):
            iface_up = bool(IFACE_UP_RE.search(line))
            continue

        if not iface_up:
            continue

        match = ADDR_RE.match(line)
        if not match:
            continue

        kind, addr = match.group(1), match.group(2).split('/', 1)[0]

        if kind == 'inet6':
            if all_addresses or not LOCAL_V6_RE.match(addr):
                found.append((socket.AF_INET6, addr))
        else:
            if all_addresses or not LOOPBACK_V4_RE.match(addr):
                found.append((socket.AF_INET, addr))

    return found


def _run_ip() -> Optional[str]:
    tool = shutil.which('ip')
    if not tool:
        logger.debug("'ip' not found in PATH, cannot list local addresses")
        return None

    try:
        result = subprocess.run(
            [tool, 'address', 'show'],
            capture_output=True, text=True, timeout=IP_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"'ip address show' failed: {e}")
        return None

    if result.returncode != 0:
        return None
    return result.stdout


def reverse_name(addr: str) -> Optional[str]:
    try:
        return socket.gethostbyaddr(addr)[0]
    except OSError:
        return None


def discover_addresses(all_addresses: bool = False,
                       resolve_names: bool = True) -> List[str]:
    """
    Names and addresses that may reach this host.

    Ordered names first, then IPv4, then IPv6 (bracketed for URLs), each
    listed once. Empty when nothing can be determined.
    """
    output = _run_ip()
    if output is None:
        return []

    names: List[str] = []
    ip4: List[str] = []
    ip6: List[str] = []

    for family, addr in parse_ip_output(output, all_addresses):
        if resolve_names:
            name = reverse_name(addr)
            if name and name not in names:
                names.append(name)

        if family == socket.AF_INET6:
            bracketed = f"[{addr}]"
            if bracketed not in ip6:
                ip6.append(bracketed)
        elif addr not in ip4:
            ip4.append(addr)

    return names + ip4 + ip6


def escape_filename(name: str) -> str:
    """
    Percent-encode a file name for use as a URL path segment.

    Names that cannot be encoded (undecodable bytes from the file system)
    are returned as-is with a warning.
    """
    try:
        return quote(name, safe='')
    except UnicodeEncodeError:
        logger.warning("Cannot URL-encode the file name, using it unescaped")
        return name


def candidate_urls(addresses: List[str], port: int, path_segment: str,
                   user_url: Optional[str] = None) -> List[str]:
    """Build the URLs we suggest to the operator, user-supplied one first."""
    urls = []
    if user_url:
        urls.append(f"*** http://{user_url}/{path_segment}")
    for addr in addresses:
        urls.append(f"http://{addr}:{port}/{path_segment}")
    return urls
