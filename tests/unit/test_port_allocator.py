"""Tests for free-port discovery."""

from __future__ import annotations

import asyncio
import socket

import pytest

import rendezvous_client.port_allocator as port_allocator
from rendezvous_client.exceptions import PortExhaustionError
from rendezvous_client.port_allocator import PortAllocator, find_free_port, is_port_available


def test_find_free_port_returns_valid_port(loopback: None) -> None:
    """Test that find_free_port returns a port in valid range."""
    port = find_free_port()
    assert 1 <= port <= 65535


def test_find_free_port_is_actually_free(loopback: None) -> None:
    """Test that the port returned can be bound again."""
    port = find_free_port()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", port))


def test_is_port_available_detects_listener(busy_port: int) -> None:
    assert is_port_available(busy_port) is False


def test_allocate_runs_off_the_event_loop(loopback: None) -> None:
    port = asyncio.run(PortAllocator().allocate())
    assert 1 <= port <= 65535


def test_os_assigned_allocation_retries_then_exhausts(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def failing_find_free_port(host: str) -> int:
        calls.append(host)
        raise OSError("no ports left")

    monkeypatch.setattr(port_allocator, "find_free_port", failing_find_free_port)

    with pytest.raises(PortExhaustionError) as excinfo:
        PortAllocator(max_attempts=3).find_port()

    assert len(calls) == 3
    assert excinfo.value.attempts == 3
    assert "no ports left" in str(excinfo.value)


def test_os_assigned_allocation_recovers_after_transient_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    results = iter([OSError("busy"), 6001])

    def flaky_find_free_port(host: str) -> int:
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(port_allocator, "find_free_port", flaky_find_free_port)
    assert PortAllocator(max_attempts=2).find_port() == 6001


def test_range_scan_returns_first_available_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        port_allocator, "is_port_available", lambda port, host: port == 7003
    )
    assert PortAllocator(port_range=(7000, 7010)).find_port() == 7003


def test_range_scan_exhausts_when_all_ports_busy(monkeypatch: pytest.MonkeyPatch) -> None:
    probed: list[int] = []

    def busy(port: int, host: str) -> bool:
        probed.append(port)
        return False

    monkeypatch.setattr(port_allocator, "is_port_available", busy)

    with pytest.raises(PortExhaustionError) as excinfo:
        PortAllocator(port_range=(7000, 7004), max_attempts=20).find_port()

    assert probed == [7000, 7001, 7002, 7003, 7004]
    assert excinfo.value.attempts == 5
    assert "7000-7004" in str(excinfo.value)


def test_range_scan_respects_attempt_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    probed: list[int] = []
    monkeypatch.setattr(
        port_allocator, "is_port_available", lambda port, host: probed.append(port) or False
    )

    with pytest.raises(PortExhaustionError):
        PortAllocator(port_range=(7000, 7100), max_attempts=4).find_port()

    assert probed == [7000, 7001, 7002, 7003]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"port_range": (0, 10)},
        {"port_range": (10, 5)},
        {"port_range": (1, 65536)},
    ],
)
def test_invalid_allocator_settings_raise(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        PortAllocator(**kwargs)
