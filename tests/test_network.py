import socket
import threading

import pytest

from chordshare.network import NetworkStation, RPCError


class Echo:
    def echo(self, *args):
        return list(args)

    def blob(self, data):
        return data + b"!"

    def fail(self):
        raise ValueError("offline")

    def _hidden(self):
        return 1


@pytest.fixture
def station():
    server = NetworkStation()
    server.init_rpc(Echo(), "echo")
    ready = threading.Event()
    thread = threading.Thread(
        target=server.run_rpc_server, args=("127.0.0.1:0", ready), daemon=True
    )
    thread.start()
    assert ready.wait(5)
    yield server
    server.stop_rpc_server()
    thread.join(5)


def _free_port():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def test_call_returns_arguments(station):
    client = NetworkStation()
    assert client.remote_call(station.addr, "echo.echo", 1, "a", [2]) == [1, "a", [2]]


def test_big_integers_survive(station):
    big = 2**160 - 1
    assert NetworkStation().remote_call(station.addr, "echo.echo", big) == [big]


def test_bytes_survive(station):
    data = bytes(range(256))
    assert NetworkStation().remote_call(station.addr, "echo.blob", data) == data + b"!"


def test_remote_error_is_raised(station):
    with pytest.raises(RPCError, match="offline"):
        NetworkStation().remote_call(station.addr, "echo.fail")


def test_private_method_is_not_callable(station):
    with pytest.raises(RPCError, match="can't find method"):
        NetworkStation().remote_call(station.addr, "echo._hidden")


def test_unknown_service(station):
    with pytest.raises(RPCError, match="can't find service"):
        NetworkStation().remote_call(station.addr, "other.echo")


def test_many_sequential_calls(station):
    client = NetworkStation()
    results = [client.remote_call(station.addr, "echo.echo", value) for value in range(20)]
    assert results == [[value] for value in range(20)]


def test_unreachable_address():
    port = _free_port()
    with pytest.raises(RPCError):
        NetworkStation().remote_call(f"127.0.0.1:{port}", "echo.echo")


def test_invalid_address():
    with pytest.raises(RPCError):
        NetworkStation().remote_call("", "echo.echo")


def test_stopped_server_refuses_calls(station):
    addr = station.addr
    station.stop_rpc_server()
    with pytest.raises(RPCError):
        NetworkStation().remote_call(addr, "echo.echo")


def test_listen_error_signals_ready():
    with socket.socket() as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen()
        port = occupied.getsockname()[1]
        server = NetworkStation()
        server.init_rpc(Echo(), "echo")
        ready = threading.Event()
        with pytest.raises(RPCError, match="listen error"):
            server.run_rpc_server(f"127.0.0.1:{port}", ready)
        assert ready.is_set()
        assert server.listening is False