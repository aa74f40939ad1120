"""Pytest fixtures for shared test state."""

from __future__ import annotations

import socket

import pytest

import rendezvous_client.listener as listener_module


class TrackingSocket(socket.socket):
    """Listening socket that counts ``close()`` calls."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


@pytest.fixture
def loopback() -> None:
    """Skip the test when loopback sockets cannot be bound."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
    except PermissionError:
        pytest.skip("Socket bind not permitted in this environment")


@pytest.fixture
def tracked_sockets(monkeypatch: pytest.MonkeyPatch, loopback: None) -> list[TrackingSocket]:
    """Make the listener create TrackingSockets and collect them."""
    created: list[TrackingSocket] = []

    def _create_socket() -> TrackingSocket:
        sock = TrackingSocket(socket.AF_INET, socket.SOCK_STREAM)
        created.append(sock)
        return sock

    monkeypatch.setattr(listener_module, "_create_socket", _create_socket)
    return created


@pytest.fixture
def busy_port(loopback: None):
    """A loopback port with a live listener on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        yield sock.getsockname()[1]
