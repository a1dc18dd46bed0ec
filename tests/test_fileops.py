import pytest

from chordshare.fileops import download, get_piece, put_piece, upload
from chordshare.torrent import HASH_LEN, PIECE_SIZE, open_torrent, piece_hash, write_torrent_file


class MemoryNode:
    def __init__(self, store=None, accept=True):
        self.store = {} if store is None else store
        self.accept = accept

    def put(self, key, value):
        if not self.accept:
            return False
        self.store[key] = value
        return True

    def get(self, key):
        if key in self.store:
            return True, self.store[key]
        return False, ""


class OversizedNode:
    def get(self, key):
        return True, b"x" * 10


def _sample(size):
    block = bytes(range(256))
    return (block * (size // 256 + 1))[:size]


def test_put_piece_stores_under_digest():
    node = MemoryNode()
    digest = put_piece(node, 0, b"abc")
    assert digest == piece_hash(b"abc", 0)
    assert node.store[digest.hex()] == b"abc"


def test_put_piece_reports_failure():
    node = MemoryNode(accept=False)
    assert put_piece(node, 3, b"abc") is None
    assert node.store == {}


def test_get_piece_round_trip_and_missing():
    node = MemoryNode()
    digest = put_piece(node, 1, b"payload")
    assert get_piece(node, 1, digest) == b"payload"
    assert get_piece(node, 2, bytes(HASH_LEN)) is None


def test_get_piece_encodes_text_values():
    node = MemoryNode({bytes(HASH_LEN).hex(): "text"})
    assert get_piece(node, 0, bytes(HASH_LEN)) == b"text"


def test_upload_download_round_trip(tmp_path):
    original = _sample(PIECE_SIZE * 2 + 100)
    source = tmp_path / "data.bin"
    source.write_bytes(original)
    torrents = tmp_path / "torrents"
    torrents.mkdir()
    node = MemoryNode()

    key = upload(source, torrents, node)

    torrent_path = torrents / "data.bin.torrent"
    meta = open_torrent(torrent_path)
    assert key == meta.info_hash.hex()
    assert node.store[key] == torrent_path.read_bytes()
    assert meta.length == len(original)
    assert meta.piece_length == PIECE_SIZE
    assert len(meta.piece_hashes) == 4
    assert meta.piece_hashes[-1] == bytes(HASH_LEN)

    out = tmp_path / "out"
    out.mkdir()
    target = download(torrent_path, out, node)
    assert target == out / "data.bin"
    assert target.read_bytes() == original


def test_empty_file_round_trip(tmp_path):
    source = tmp_path / "empty.txt"
    source.write_bytes(b"")
    node = MemoryNode()
    upload(source, tmp_path, node)
    meta = open_torrent(tmp_path / "empty.txt.torrent")
    assert meta.piece_hashes == [bytes(HASH_LEN)]
    out = tmp_path / "out"
    out.mkdir()
    assert download(tmp_path / "empty.txt.torrent", out, node).read_bytes() == b""


def test_default_output_is_working_directory(tmp_path, monkeypatch):
    source = tmp_path / "notes.txt"
    source.write_bytes(b"some notes")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    node = MemoryNode()
    upload(source, "", node)
    assert (work / "notes.txt.torrent").is_file()
    source.unlink()
    download(work / "notes.txt.torrent", "", node)
    assert (work / "notes.txt").read_bytes() == b"some notes"


def test_failed_pieces_leave_zero_hashes_and_zero_bytes(tmp_path):
    source = tmp_path / "lost.bin"
    source.write_bytes(b"abcdef")
    rejecting = MemoryNode(accept=False)
    upload(source, tmp_path, rejecting)
    meta = open_torrent(tmp_path / "lost.bin.torrent")
    assert meta.piece_hashes == [bytes(HASH_LEN), bytes(HASH_LEN)]
    out = tmp_path / "out"
    out.mkdir()
    assert download(tmp_path / "lost.bin.torrent", out, MemoryNode()).read_bytes() == bytes(6)


def test_download_rejects_piece_larger_than_file(tmp_path):
    source = tmp_path / "tiny.bin"
    source.write_bytes(b"abc")
    write_torrent_file(source, tmp_path, b"\x01" * HASH_LEN)
    with pytest.raises(ValueError):
        download(tmp_path / "tiny.bin.torrent", tmp_path, OversizedNode())


def test_download_missing_torrent(tmp_path):
    with pytest.raises(FileNotFoundError):
        download(tmp_path / "absent.torrent", tmp_path, MemoryNode())


def test_upload_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        upload(tmp_path / "absent.bin", tmp_path, MemoryNode())