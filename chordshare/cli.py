"""Interactive command loop: login, upload, download and exit."""

from __future__ import annotations

import argparse
import sys

from .client import DEFAULT_HOST, DownloadRequest, Session, UploadRequest, new_node
from .network import RPCError

__all__ = ["main"]

DEFAULT_NODES = 101
DEFAULT_BASE_PORT = 20000

_FAILURES = (OSError, ValueError, RPCError)


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="chordshare", description="Share files over a Chord ring.")
    parser.add_argument("--nodes", type=int, default=DEFAULT_NODES, help="number of local nodes")
    parser.add_argument("--base-port", type=int, default=DEFAULT_BASE_PORT, help="port of the first node")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address the nodes listen on")
    args = parser.parse_args(argv)
    if args.nodes < 1:
        parser.error("--nodes must be at least 1")
    return args


def _start_nodes(count: int, base_port: int, host: str):
    nodes = [new_node(base_port + offset, host) for offset in range(count)]
    started = []
    try:
        for node in nodes:
            node.run()
            started.append(node)
    except RPCError:
        for node in started:
            node.force_quit()
        raise
    return nodes


def _fields(line: str) -> tuple[str, str, str, str]:
    op, username, input_name, output_name = (line.split() + [""] * 4)[:4]
    return op, username, input_name, output_name


def main(argv=None) -> int:
    args = _parse_args(argv)
    try:
        nodes = _start_nodes(args.nodes, args.base_port, args.host)
    except RPCError as exc:
        print(f"Cannot start nodes: {exc}", file=sys.stderr)
        return 1
    session = Session(nodes)

    print("Welcome to the DHT File Sharing System!")
    print("Please input your operation:")
    try:
        for line in sys.stdin:
            op, username, input_name, output_name = _fields(line)
            print()
            if op == "login":
                try:
                    session.login(username)
                except ValueError as exc:
                    print(f"Login failed: {exc}", end="")
                else:
                    print(f"User {username} successfully [login]", end="")
            elif op == "upload":
                try:
                    session.upload(UploadRequest(input_name, output_name))
                except _FAILURES as exc:
                    print(f"Because of: {exc}")
                    print("Failed to upload.Please retry later.", end="")
                else:
                    print(f"User {username} successfully [upload] {output_name}", end="")
            elif op == "download":
                try:
                    session.download(DownloadRequest(input_name, output_name))
                except _FAILURES as exc:
                    print(f"Because of: {exc}")
                    print("Failed to download.Please retry later.", end="")
                else:
                    print(f"User {username} successfully download {output_name}", end="")
            elif op == "exit":
                print("Bye. Wish u a good day.")
                break
            print()
    finally:
        for node in nodes:
            node.force_quit()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())