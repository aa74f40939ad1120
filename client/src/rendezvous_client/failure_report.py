"""Human-readable reports for failed bootstrap attempts."""

from __future__ import annotations

from .exceptions import (
    AcceptError,
    BindError,
    BootstrapError,
    ConnectTimeoutError,
    LauncherMissingError,
    PortExhaustionError,
    RemoteStartError,
)

_CAUSES: dict[type[BootstrapError], tuple[list[str], list[str]]] = {
    PortExhaustionError: (
        [
            "All candidate ports on 127.0.0.1 are in use.",
            "The configured port range is too small.",
        ],
        [
            "Close programs holding local ports and retry.",
            "Widen RENDEZVOUS_PORT_RANGE or unset it to let the OS pick a port.",
        ],
    ),
    BindError: (
        [
            "Another process took the port between discovery and bind.",
            "Binding loopback sockets is not permitted in this environment.",
        ],
        [
            "Retry; a new port will be chosen.",
            "Check sandbox or firewall rules for local sockets.",
        ],
    ),
    LauncherMissingError: (
        [
            "The process-owner extension is not installed or not activated.",
            "It is registered under a different capability name.",
        ],
        [
            "Install or enable the process-owner, then reload.",
            "Set RENDEZVOUS_LAUNCHER to the name it registers.",
        ],
    ),
    RemoteStartError: (
        [
            "The server executable is missing or crashed during startup.",
            "The process-owner rejected the start request.",
        ],
        [
            "Check the process-owner's output for the server's error.",
            "Verify the server for this language is installed.",
        ],
    ),
    ConnectTimeoutError: (
        [
            "The server did not start, or failed before dialing back.",
            "The server dialed a different address.",
            "Startup takes longer than the connect timeout.",
        ],
        [
            "Check the process-owner's output for startup errors.",
            "Raise RENDEZVOUS_CONNECT_TIMEOUT.",
        ],
    ),
    AcceptError: (
        ["The connection was reset while it was being accepted."],
        ["Retry the bootstrap."],
    ),
}


def _headline(error: BootstrapError) -> str:
    if isinstance(error, LauncherMissingError):
        return f"Could not find {error.capability}; please install it."
    return f"Could not {error.step}."


def format_bootstrap_failure(error: BaseException, address: str | None = None) -> str:
    """Build the single user-facing message for a failed attempt.

    Args:
        error: The error that ended the attempt.
        address: The rendezvous address, if one was chosen.

    Returns:
        A multi-line report naming the failed step and likely fixes.
    """
    if not isinstance(error, BootstrapError):
        return f"Could not connect to language server:\n\n{type(error).__name__}: {error}"

    address = address or error.address
    lines = [
        f"Rendezvous bootstrap failed: {_headline(error)}",
        "",
        "Details:",
        f"- Step: {error.step}",
        f"- Summary: {error}",
    ]
    if address:
        lines.append(f"- Address: {address}")
    cause = error.__cause__
    if cause is not None:
        lines.append(f"- Exception: {type(cause).__name__}: {cause}")

    causes, fixes = _lookup(type(error))
    if causes:
        lines.extend(["", "Most likely causes:"])
        lines.extend(f"{index}. {text}" for index, text in enumerate(causes, start=1))
    if fixes:
        lines.extend(["", "Potential fixes:"])
        lines.extend(f"{index}. {text}" for index, text in enumerate(fixes, start=1))
    return "\n".join(lines)


def _lookup(error_type: type[BootstrapError]) -> tuple[list[str], list[str]]:
    for klass in error_type.__mro__:
        if klass in _CAUSES:
            return _CAUSES[klass]
    return [], []
