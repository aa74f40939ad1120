"""Textual rendezvous address format shared by both sides of the connection."""

from __future__ import annotations

LOOPBACK_HOST = "127.0.0.1"


def _validate_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"port must be an integer, got {port!r}")
    if not (1 <= port <= 65535):
        raise ValueError(f"port must be in 1..65535, got {port}")
    return port


def format_address(port: int, host: str = LOOPBACK_HOST) -> str:
    """Build the address string handed to the process-owner.

    Args:
        port: The listening port.
        host: The listening host (default: loopback).

    Returns:
        A string of the form ``host:port``.
    """
    _validate_port(port)
    if not host:
        raise ValueError("host must not be empty")
    return f"{host}:{port}"


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address into its parts.

    Args:
        address: The address string.

    Returns:
        The ``(host, port)`` pair.

    Raises:
        ValueError: If the address is malformed or the port is out of range.
    """
    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must look like host:port, got {address!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"address port is not a number: {address!r}") from None
    return host, _validate_port(port)
