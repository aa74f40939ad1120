"""Rendezvous connection bootstrap client."""

__version__ = "0.1.0"
__all__ = [
    "AcceptError",
    "BindError",
    "BootstrapConfig",
    "BootstrapError",
    "BootstrapSession",
    "CapabilityRegistry",
    "ConnectTimeoutError",
    "ConnectionBootstrapper",
    "DuplexStream",
    "HostSession",
    "LauncherMissingError",
    "PortAllocator",
    "PortExhaustionError",
    "RemoteStartError",
    "RendezvousListener",
    "SessionState",
    "configure_bootstrap",
    "format_bootstrap_failure",
]

from .bootstrap import BootstrapSession, ConnectionBootstrapper, SessionState
from .config import BootstrapConfig, configure_bootstrap
from .exceptions import (
    AcceptError,
    BindError,
    BootstrapError,
    ConnectTimeoutError,
    LauncherMissingError,
    PortExhaustionError,
    RemoteStartError,
)
from .failure_report import format_bootstrap_failure
from .host import HostSession
from .launcher import CapabilityRegistry
from .listener import RendezvousListener
from .port_allocator import PortAllocator
from .streams import DuplexStream
