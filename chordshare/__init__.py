"""File sharing over a Chord distributed hash table, with torrent-style piece metadata."""

__version__ = "0.1.0"
__all__ = ["__version__"]