"""Custom exceptions for the rendezvous process-owner."""

from __future__ import annotations


class ProcessOwnerError(Exception):
    """Base class for process-owner errors."""


class DialError(ProcessOwnerError):
    """Raised when the server cannot connect back to the rendezvous address."""

    def __init__(self, address: str, original_error: BaseException) -> None:
        self.address = address
        self.original_error = original_error
        super().__init__(f"Could not connect to {address}: {original_error}")


class ServerStartError(ProcessOwnerError):
    """Raised when a spawned server exits before it could serve."""

    def __init__(self, kind: str, returncode: int, stderr_tail: str = "") -> None:
        self.kind = kind
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        message = f"{kind} server exited with status {returncode}"
        if stderr_tail:
            message = f"{message}: {stderr_tail}"
        super().__init__(message)
