# chordshare

File sharing over a Chord distributed hash table. A file is cut into
256 KiB pieces; each piece is stored in the ring under the hex SHA-1 digest
of the bencoded dictionary `{"Data": <piece>}`. A `.torrent`-style metadata
file records those digests, so the file can be put back together from the
ring later. The torrent itself is stored in the ring too, under the hex
digest of its bencoded `info` dictionary.

Nodes talk to each other over TCP with a small line-delimited JSON RPC
protocol. Each node keeps its own data plus a backup copy of its
predecessor's data, and runs background stabilisation and finger-table
maintenance.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Interactive use

```
chordshare [--nodes N] [--base-port PORT] [--host HOST]
```

This starts `N` nodes (default 101) in the same process, listening on
`HOST` (default `127.0.0.1`) at consecutive ports from `PORT` (default
20000). It then reads commands from standard input, one per line:

```
login <username>
upload <username> <input file> [<output directory>]
download <username> <torrent file> [<output directory>]
exit
```

- `login`: the first login creates the ring on the first node. Each new
  user name after that is given the next unused node of the pool, whose
  `join` is called. Logging in again with a known name makes that user's
  node the active one again.
- `upload`: stores every piece of the input file through the active node
  and writes `<name>.torrent` into the output directory (or the current
  directory).
- `download`: reads the torrent file, fetches its pieces through the active
  node and writes the file under its torrent name into the output directory
  (or the current directory). Pieces the ring does not hold stay
  zero-filled.
- `exit`: stops every node and ends the program. End of input does the same.

The user name given to `upload` and `download` only appears in the
messages; the node of the most recent login does the work.

## Library use

```python
from chordshare.client import DownloadRequest, Session, UploadRequest, new_node

nodes = [new_node(20000 + offset) for offset in range(4)]
for node in nodes:
    node.run()

session = Session(nodes)
session.login("alice")
key = session.upload(UploadRequest("notes.txt", "out"))        # hex key of the torrent
path = session.download(DownloadRequest("out/notes.txt.torrent", "restored"))

for node in nodes:
    node.force_quit()
```

The modules:

- `chordshare.bencode`: `encode`, `decode` and `BencodeError`.
- `chordshare.torrent`: `TorrentInfo` (with `to_dict`, `info_hash`,
  `split_piece_hashes`), `TorrentFile`, `open_torrent`, `piece_hash`,
  `write_torrent_file` and `TorrentError`.
- `chordshare.ring`: `consistent_hash`, `contain` (interval `(left, right]`),
  `contain_open` (interval `(left, right)`) and `calculate` (finger start)
  on the 160-bit identifier ring.
- `chordshare.network`: `NetworkStation`, which serves one handler object
  and makes `remote_call`s to other stations, and `RPCError`.
- `chordshare.storage`: `DataStore`, the thread-safe primary and backup
  tables of a node.
- `chordshare.node`: `ChordNode`, with `run`, `create`, `join`, `put`,
  `get`, `delete`, `quit` and `force_quit`, plus the routing and
  maintenance methods its peers call.
- `chordshare.fileops`: the `DHTNode` protocol, `put_piece`, `get_piece`,
  `upload` and `download`.
- `chordshare.client`: `Session`, `UploadRequest`, `DownloadRequest` and
  `new_node`.
- `chordshare.cli`: `main`, the command loop above.

## What it does not do

- All nodes of the command run inside one process; there is no option to
  join a ring run by another machine or process.
- There is no tracker and no peer discovery: the torrent's `announce` field
  is the fixed string `Tracker`.
- Stored data lives only in memory and is gone when the nodes stop.
- Pieces are not checked against their digests after download.