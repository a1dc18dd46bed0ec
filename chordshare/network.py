"""A small line-delimited JSON RPC layer over TCP."""

from __future__ import annotations

import base64
import json
import logging
import socket
import threading

__all__ = ["RPCError", "NetworkStation", "DIAL_TIMEOUT"]

logger = logging.getLogger(__name__)

DIAL_TIMEOUT = 1.0
_ACCEPT_POLL = 0.2
_BYTES_TAG = "__bytes__"


class RPCError(Exception):
    """Raised when a remote call cannot be made or the remote method fails."""


def _to_wire(obj):
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return {_BYTES_TAG: base64.b64encode(bytes(obj)).decode("ascii")}
    raise TypeError(f"cannot send value of type {type(obj).__name__}")


def _from_wire(obj: dict):
    if len(obj) == 1 and _BYTES_TAG in obj:
        return base64.b64decode(obj[_BYTES_TAG])
    return obj


def _dump(message: dict) -> bytes:
    return json.dumps(message, default=_to_wire).encode("utf-8") + b"\n"


def _load(line: bytes) -> dict:
    return json.loads(line.decode("utf-8"), object_hook=_from_wire)


def _split_addr(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise RPCError(f"invalid address {addr!r}")
    return host, int(port)


class NetworkStation:
    """Serves one registered handler object and makes calls to other stations."""

    def __init__(self) -> None:
        self.addr = ""
        self.listening = False
        self._listener: socket.socket | None = None
        self._services: dict[str, object] = {}

    def init_rpc(self, handler, name: str) -> None:
        """Register ``handler`` so its public methods are callable as ``name.method``."""
        self._services = {name: handler}

    def run_rpc_server(self, addr: str, ready=None) -> None:
        """Listen on ``addr`` and serve calls until stopped.

        ``ready`` (anything with ``set()``) is signalled once listening has been tried.
        """
        logger.info("[RunRPCServer] Node %s starts RunRPCServer", addr)
        self.listening = True
        try:
            host, port = _split_addr(addr)
            listener = socket.create_server((host, port))
        except (OSError, RPCError) as exc:
            self.listening = False
            if ready is not None:
                ready.set()
            raise RPCError(f"listen error: {exc}") from exc
        listener.settimeout(_ACCEPT_POLL)
        self._listener = listener
        self.addr = f"{host}:{listener.getsockname()[1]}"
        if ready is not None:
            ready.set()
        try:
            while self.listening:
                try:
                    conn, _ = listener.accept()
                except TimeoutError:
                    continue
                except OSError as exc:
                    if self.listening:
                        logger.error("accept error: %s", exc)
                    return
                conn.settimeout(None)
                threading.Thread(target=self._serve_conn, args=(conn,), daemon=True).start()
        finally:
            listener.close()

    def stop_rpc_server(self) -> None:
        logger.info("[StopRPCServer] Node %s", self.addr)
        self.listening = False
        if self._listener is not None:
            self._listener.close()

    def remote_call(self, addr: str, method: str, *args):
        """Call ``method`` ("service.method") at ``addr`` and return its result."""
        host, port = _split_addr(addr)
        try:
            conn = socket.create_connection((host, port), timeout=DIAL_TIMEOUT)
        except OSError as exc:
            raise RPCError(f"dial {addr}: {exc}") from exc
        with conn:
            conn.settimeout(None)
            try:
                conn.sendall(_dump({"method": method, "args": list(args)}))
                with conn.makefile("rb") as reader:
                    line = reader.readline()
            except OSError as exc:
                raise RPCError(f"call {method} at {addr}: {exc}") from exc
        if not line:
            raise RPCError(f"call {method} at {addr}: connection closed")
        reply = _load(line)
        if reply.get("error") is not None:
            raise RPCError(reply["error"])
        return reply.get("result")

    def _lookup(self, method: str):
        service_name, _, method_name = method.partition(".")
        service = self._services.get(service_name)
        if service is None:
            raise RPCError(f"rpc: can't find service {method}")
        target = getattr(service, method_name, None) if method_name and not method_name.startswith("_") else None
        if not callable(target):
            raise RPCError(f"rpc: can't find method {method}")
        return target

    def _dispatch(self, line: bytes) -> bytes:
        try:
            request = _load(line)
            result = self._lookup(request["method"])(*request.get("args", []))
            return _dump({"result": result, "error": None})
        except Exception as exc:  # any failure is reported back to the caller
            return _dump({"result": None, "error": str(exc) or type(exc).__name__})

    def _serve_conn(self, conn: socket.socket) -> None:
        with conn:
            try:
                with conn.makefile("rb") as reader:
                    for line in reader:
                        conn.sendall(self._dispatch(line))
            except OSError:
                return