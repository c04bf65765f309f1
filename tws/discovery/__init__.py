"""
Discovery Module - How the Client Can Reach Us

Lists local addresses and builds the candidate URLs shown to the operator.
"""

from .addresses import (
    discover_addresses, parse_ip_output, escape_filename, candidate_urls,
)

__all__ = [
    'discover_addresses',
    'parse_ip_output',
    'escape_filename',
    'candidate_urls',
]
