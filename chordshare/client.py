"""User sessions: mapping user names to ring nodes and moving files through them."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import fileops
from .node import ChordNode

__all__ = ["DEFAULT_HOST", "UploadRequest", "DownloadRequest", "Session", "new_node"]

DEFAULT_HOST = "127.0.0.1"


def new_node(port: int, host: str = DEFAULT_HOST) -> ChordNode:
    """A ring node for ``host:port``; it is not started."""
    return ChordNode(f"{host}:{port}")


@dataclass(frozen=True)
class UploadRequest:
    input_path: str
    output_path: str = ""


@dataclass(frozen=True)
class DownloadRequest:
    input_path: str
    output_path: str = ""


class Session:
    """Hands out the nodes of a pool to users as they log in.

    The node of the user who logged in last acts for every upload and download.
    """

    def __init__(self, nodes) -> None:
        self.nodes = list(nodes)
        if not self.nodes:
            raise ValueError("a session needs at least one node")
        self.addresses = [node.addr for node in self.nodes]
        self.user_num = 0
        self.boss = self.nodes[0]
        self._slots: dict[str, int] = {}

    def login(self, username: str) -> None:
        """Make ``username``'s node the active one, bringing a node online for new users."""
        if self.user_num == 0:
            self.nodes[0].create()
            self._slots[username] = 0
            self.boss = self.nodes[0]
            self.user_num += 1
            return
        if username in self._slots:
            self.user_num = self._slots[username]
            self.boss = self.nodes[self.user_num]
            return
        if self.user_num >= len(self.nodes):
            raise ValueError("no free node left for a new user")
        self.nodes[self.user_num].join(self.addresses[self.user_num])
        self._slots[username] = self.user_num
        self.boss = self.nodes[self.user_num]
        self.user_num += 1

    def upload(self, request: UploadRequest) -> str:
        """Share a file; returns the key its torrent is stored under."""
        return fileops.upload(request.input_path, request.output_path, self.boss)

    def download(self, request: DownloadRequest) -> Path:
        """Fetch the file a torrent describes; returns where it was written."""
        return fileops.download(request.input_path, request.output_path, self.boss)