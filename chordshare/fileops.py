"""Splitting files into pieces stored in the DHT, and putting them back together."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Protocol

from .torrent import HASH_LEN, PIECE_SIZE, open_torrent, piece_hash, write_torrent_file

__all__ = ["DHTNode", "put_piece", "get_piece", "upload", "download"]


class DHTNode(Protocol):
    """What file sharing needs from a node of the distributed hash table."""

    def run(self, ready=None) -> None:
        """Start serving; called once before ``create`` or ``join``."""

    def create(self) -> None:
        """Start a new network."""

    def join(self, addr: str) -> bool:
        """Join the network the node at ``addr`` belongs to."""

    def quit(self) -> None:
        """Leave the network, telling the other nodes."""

    def force_quit(self) -> None:
        """Leave the network without telling anyone."""

    def put(self, key: str, value) -> bool:
        """Store ``value`` under ``key``, replacing any earlier value."""

    def get(self, key: str) -> tuple[bool, object]:
        """Look ``key`` up: ``(found, value)``."""

    def delete(self, key: str) -> bool:
        """Remove ``key``."""


def put_piece(node: DHTNode, index: int, data: bytes) -> bytes | None:
    """Store one piece under the hex form of its digest; return the digest, or None on failure."""
    digest = piece_hash(data, index)
    if not node.put(digest.hex(), bytes(data)):
        print(f"Failed to upload piece {index} to DHT node.")
        return None
    print("Piece", index, "uploaded successfully")
    return digest


def get_piece(node: DHTNode, index: int, piece_digest: bytes) -> bytes | None:
    """Fetch the piece stored under ``piece_digest``; None if the network does not hold it."""
    found, value = node.get(bytes(piece_digest).hex())
    if not found:
        return None
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def upload(input_path, output_path, node: DHTNode) -> str:
    """Store the pieces of ``input_path`` and its torrent in the DHT.

    The torrent is written as ``<name>.torrent`` into ``output_path`` (or the
    current directory) and stored under the hex info hash, which is returned.
    """
    content = Path(input_path).read_bytes()
    size = len(content)
    pieces = [content[start:start + PIECE_SIZE] for start in range(0, size, PIECE_SIZE)]
    print("File length:", size, "Block number:", len(pieces))

    # One spare zeroed slot follows the piece digests.
    hashes = bytearray(HASH_LEN * len(pieces) + HASH_LEN)
    with ThreadPoolExecutor() as pool:
        digests = list(pool.map(partial(put_piece, node), range(len(pieces)), pieces))
    stored = 0
    for index, digest in enumerate(digests):
        if digest is not None:
            hashes[index * HASH_LEN:(index + 1) * HASH_LEN] = digest
            stored += 1
    print(f"{stored} of {len(pieces)} pieces stored, {len(hashes)} hash bytes in torrent file")

    info, torrent_bytes = write_torrent_file(input_path, output_path, bytes(hashes))
    key = info.info_hash().hex()
    node.put(key, torrent_bytes)
    print("Upload completed, torrent stored under key:", key)
    return key


def download(input_path, output_path, node: DHTNode) -> Path:
    """Rebuild the file described by the torrent at ``input_path`` from the DHT.

    The file is written under its torrent name into ``output_path`` (or the
    current directory); pieces the network does not hold stay zero-filled.
    """
    print("Downloading file from DHT node...")
    meta = open_torrent(input_path)
    buffer = bytearray(meta.length)
    with ThreadPoolExecutor() as pool:
        results = list(
            pool.map(partial(get_piece, node), range(len(meta.piece_hashes)), meta.piece_hashes)
        )
    for index, data in enumerate(results):
        if data is None:
            continue
        start = index * PIECE_SIZE
        end = start + len(data)
        if end > len(buffer):
            raise ValueError(f"piece {index} does not fit in a file of {meta.length} bytes")
        buffer[start:end] = data
    target = Path(meta.name) if not output_path else Path(output_path) / meta.name
    target.write_bytes(buffer)
    print("Download completed, file saved to:", target)
    return target