"""Shared helpers for the rendezvous client and server."""

from .address import (  # noqa: F401
    LOOPBACK_HOST,
    format_address,
    parse_address,
)
