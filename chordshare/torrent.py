"""Torrent metadata: reading, writing and hashing of .torrent files."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path

from .bencode import BencodeError, decode, encode

__all__ = [
    "PIECE_SIZE",
    "HASH_LEN",
    "ANNOUNCE",
    "TorrentError",
    "TorrentInfo",
    "TorrentFile",
    "open_torrent",
    "piece_hash",
    "write_torrent_file",
]

PIECE_SIZE = 256 << 10
HASH_LEN = 20
ANNOUNCE = "Tracker"


class TorrentError(ValueError):
    """Raised for malformed torrent metadata."""


@dataclass(frozen=True)
class TorrentInfo:
    """The ``info`` dictionary of a torrent."""

    pieces: bytes
    piece_length: int
    length: int
    name: str

    def to_dict(self) -> dict:
        return {
            "pieces": self.pieces,
            "piece length": self.piece_length,
            "length": self.length,
            "name": self.name,
        }

    def info_hash(self) -> bytes:
        """SHA-1 digest of the bencoded info dictionary."""
        return hashlib.sha1(encode(self.to_dict())).digest()

    def split_piece_hashes(self) -> list[bytes]:
        """Split the concatenated piece hashes into 20-byte digests."""
        size = len(self.pieces)
        if size % HASH_LEN:
            raise TorrentError(
                f"invalid pieces length: {size}, must be a multiple of {HASH_LEN}"
            )
        return [self.pieces[start:start + HASH_LEN] for start in range(0, size, HASH_LEN)]


@dataclass(frozen=True)
class TorrentFile:
    """Metadata loaded from a .torrent file."""

    announce: str
    info_hash: bytes
    piece_hashes: list[bytes] = field(default_factory=list)
    piece_length: int = 0
    length: int = 0
    name: str = ""


def _field(mapping: dict, key: str, kind: type, default):
    value = mapping.get(key, default)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise TorrentError(f"field {key!r} has the wrong type")
    return value


def _text_field(mapping: dict, key: str) -> str:
    raw = _field(mapping, key, bytes, b"")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TorrentError(f"field {key!r} is not valid UTF-8") from exc


def open_torrent(path) -> TorrentFile:
    """Load a .torrent file and derive its info hash and piece hashes."""
    raw = Path(path).read_bytes()
    try:
        meta = decode(raw)
    except BencodeError as exc:
        raise TorrentError(f"invalid torrent file: {exc}") from exc
    if not isinstance(meta, dict):
        raise TorrentError("torrent file does not hold a dictionary")
    info_dict = _field(meta, "info", dict, {})
    info = TorrentInfo(
        pieces=_field(info_dict, "pieces", bytes, b""),
        piece_length=_field(info_dict, "piece length", int, 0),
        length=_field(info_dict, "length", int, 0),
        name=_text_field(info_dict, "name"),
    )
    return TorrentFile(
        announce=_text_field(meta, "announce"),
        info_hash=info.info_hash(),
        piece_hashes=info.split_piece_hashes(),
        piece_length=info.piece_length,
        length=info.length,
        name=info.name,
    )


def piece_hash(data: bytes, index: int) -> bytes:
    """Digest under which a piece is stored.

    Only the piece's bytes are hashed; ``index`` does not enter the digest.
    """
    return hashlib.sha1(encode({"Data": bytes(data)})).digest()


def write_torrent_file(input_path, output_path, pieces: bytes) -> tuple[TorrentInfo, bytes]:
    """Write ``<name>.torrent`` for ``input_path`` into ``output_path`` (or the cwd).

    Returns the info dictionary and the bytes written.
    """
    stat = os.stat(input_path)
    name = os.path.basename(os.fspath(input_path).rstrip("/\\")) or os.fspath(input_path)
    info = TorrentInfo(pieces=bytes(pieces), piece_length=PIECE_SIZE, length=stat.st_size, name=name)
    target_name = f"{name}.torrent"
    target = Path(target_name) if not output_path else Path(output_path) / target_name
    content = encode({"announce": ANNOUNCE, "info": info.to_dict()})
    target.write_bytes(content)
    print("Torrent file created:", target)
    return info, target.read_bytes()