import pytest

from chordshare.client import DownloadRequest, Session, UploadRequest, new_node
from chordshare.ring import consistent_hash
from chordshare.torrent import open_torrent


class FakeNode:
    def __init__(self, addr, store):
        self.addr = addr
        self.store = store
        self.created = 0
        self.joined = []

    def create(self):
        self.created += 1

    def join(self, addr):
        self.joined.append(addr)
        return True

    def put(self, key, value):
        self.store[key] = value
        return True

    def get(self, key):
        if key in self.store:
            return True, self.store[key]
        return False, ""


def _pool(count):
    store = {}
    return [FakeNode(f"127.0.0.1:{30000 + offset}", store) for offset in range(count)]


def test_new_node_address_and_id():
    node = new_node(20005)
    assert node.addr == "127.0.0.1:20005"
    assert node.id == consistent_hash("127.0.0.1:20005")
    assert node.online is False


def test_new_node_custom_host():
    assert new_node(4000, "localhost").addr == "localhost:4000"


def test_session_requires_nodes():
    with pytest.raises(ValueError):
        Session([])


def test_first_login_creates_ring():
    nodes = _pool(3)
    session = Session(nodes)
    session.login("alice")
    assert nodes[0].created == 1
    assert session.boss is nodes[0]
    assert session.user_num == 1


def test_second_user_joins_through_own_address():
    nodes = _pool(3)
    session = Session(nodes)
    session.login("alice")
    session.login("bob")
    assert nodes[1].joined == [nodes[1].addr]
    assert session.boss is nodes[1]
    assert session.user_num == 2
    assert nodes[0].created == 1


def test_existing_user_gets_own_node_back():
    nodes = _pool(3)
    session = Session(nodes)
    session.login("alice")
    session.login("bob")
    session.login("alice")
    assert session.boss is nodes[0]
    assert session.user_num == 0


def test_running_out_of_nodes():
    nodes = _pool(1)
    session = Session(nodes)
    session.login("alice")
    with pytest.raises(ValueError):
        session.login("bob")


def test_request_defaults():
    assert UploadRequest("a.txt").output_path == ""
    assert DownloadRequest("a.txt.torrent").input_path == "a.txt.torrent"


def test_session_upload_download_round_trip(tmp_path):
    nodes = _pool(2)
    session = Session(nodes)
    session.login("alice")
    source = tmp_path / "song.ogg"
    source.write_bytes(b"la la la" * 100)
    key = session.upload(UploadRequest(str(source), str(tmp_path)))
    torrent = tmp_path / "song.ogg.torrent"
    assert key == open_torrent(torrent).info_hash.hex()

    session.login("bob")
    out = tmp_path / "out"
    out.mkdir()
    target = session.download(DownloadRequest(str(torrent), str(out)))
    assert target.read_bytes() == source.read_bytes()