[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chordshare"
version = "0.1.0"
description = "Peer-to-peer file sharing over a Chord distributed hash table, with torrent-style piece metadata"
requires-python = ">=3.10"
dependencies = []
keywords = ["chord", "dht", "p2p", "file-sharing", "torrent", "bencode"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
chordshare = "chordshare.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["chordshare"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
