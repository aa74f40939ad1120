"""Custom exceptions for the rendezvous connection bootstrap."""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for bootstrap errors.

    Every subclass names the bootstrap step it failed in, so a single
    user-facing message can say which step went wrong.
    """

    step = "bootstrap"

    def __init__(self, message: str, *, address: str | None = None) -> None:
        self.address = address
        super().__init__(message)


class PortExhaustionError(BootstrapError):
    """Raised when no free port was found within the attempt budget."""

    step = "find open port"

    def __init__(self, attempts: int, detail: str | None = None) -> None:
        self.attempts = attempts
        message = f"No free port found after {attempts} attempt(s)"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BindError(BootstrapError):
    """Raised when the listening socket could not be created."""

    step = "open listener"

    def __init__(self, address: str, original_error: OSError) -> None:
        self.original_error = original_error
        super().__init__(f"Could not listen on {address}: {original_error}", address=address)


class LauncherMissingError(BootstrapError):
    """Raised when the process-owner capability is not registered."""

    step = "locate process-owner"

    def __init__(self, capability: str, reason: str | None = None) -> None:
        self.capability = capability
        message = f"Could not find {capability}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class RemoteStartError(BootstrapError):
    """Raised when the process-owner reports that the server failed to start."""

    step = "request server start"


class AcceptError(BootstrapError):
    """Raised when accepting the inbound connection fails with an I/O error."""

    step = "wait for connection"

    def __init__(self, address: str, original_error: OSError) -> None:
        self.original_error = original_error
        super().__init__(
            f"Accepting connection on {address} failed: {original_error}", address=address
        )


class ConnectTimeoutError(BootstrapError):
    """Raised when no inbound connection arrives within the allotted time."""

    step = "wait for connection"

    def __init__(self, address: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(
            f"No connection to {address} within {timeout_s:g}s", address=address
        )
