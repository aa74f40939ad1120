"""Rendezvous reference process-owner and server."""

__version__ = "0.1.0"
__all__ = [
    "DialError",
    "ServerStartError",
    "SubprocessLauncher",
    "connect_back",
    "serve_echo",
]

from .dial import connect_back, serve_echo
from .exceptions import DialError, ServerStartError
from .launcher import SubprocessLauncher
