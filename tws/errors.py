"""
Error Types

Every failure in the core is terminal for the process: there is exactly one
client and nothing to recover into. Each step raises one of these, and the CLI
reports it and exits with status 1.
"""


class TwsError(Exception):
    """Base class for all errors that end a run."""


class SetupError(TwsError):
    """Bad arguments, unusable input file, or socket setup failure."""


class ProtocolError(TwsError):
    """The client sent something that is not an HTTP GET request."""


class TransportError(TwsError):
    """Writing to the client failed (reset, broken pipe, ...)."""


class SourceError(TwsError):
    """Reading the payload source failed."""
