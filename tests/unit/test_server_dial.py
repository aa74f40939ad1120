"""Tests for the server side of the rendezvous."""

from __future__ import annotations

import asyncio

import pytest

from rendezvous_client.listener import RendezvousListener
from rendezvous_client.port_allocator import find_free_port
from rendezvous_server.__main__ import main, parse_args
from rendezvous_server.dial import connect_back, serve_echo
from rendezvous_server.exceptions import DialError


def test_connect_back_reaches_listener_and_echoes(loopback: None) -> None:
    async def scenario() -> bytes:
        listener = RendezvousListener()
        handle = listener.open(find_free_port())

        async def server() -> int:
            reader, writer = await connect_back(handle.address, timeout_s=5.0)
            return await serve_echo(reader, writer)

        server_task = asyncio.ensure_future(server())
        stream = await listener.await_connection(handle, timeout_s=5.0)
        stream.writer.write(b"\x01\x02\x03")
        await stream.writer.drain()
        echoed = await stream.reader.readexactly(3)
        await stream.close()
        assert await server_task == 3
        return echoed

    assert asyncio.run(scenario()) == b"\x01\x02\x03"


def test_connect_back_to_closed_port_raises_dial_error(loopback: None) -> None:
    address = f"127.0.0.1:{find_free_port()}"
    with pytest.raises(DialError) as excinfo:
        asyncio.run(connect_back(address, timeout_s=2.0))
    assert excinfo.value.address == address


def test_connect_back_rejects_malformed_address() -> None:
    with pytest.raises(ValueError):
        asyncio.run(connect_back("not-an-address"))


def test_parse_args_defaults() -> None:
    args = parse_args(["--address", "127.0.0.1:5000"])
    assert args.kind == "R"
    assert args.connect_timeout == 10.0
    assert args.fail is False


def test_main_rejects_invalid_address(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--address", "nowhere"])
    assert excinfo.value.code == 2
    assert "Invalid address" in capsys.readouterr().err


def test_main_fail_flag_exits_with_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--address", "127.0.0.1:5000", "--kind", "R", "--fail"])
    assert excinfo.value.code == 1
    assert "R server failed to start" in capsys.readouterr().err


def test_main_reports_dial_failure(loopback: None, capsys: pytest.CaptureFixture[str]) -> None:
    port = find_free_port()
    with pytest.raises(SystemExit) as excinfo:
        main(["--address", f"127.0.0.1:{port}", "--connect-timeout", "2"])
    assert excinfo.value.code == 1
    assert "Error connecting to client" in capsys.readouterr().err
