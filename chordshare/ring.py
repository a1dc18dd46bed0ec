"""Identifier-ring arithmetic for the Chord overlay."""

from __future__ import annotations

import hashlib

__all__ = [
    "M",
    "SUCCESSOR_LIST_SIZE",
    "consistent_hash",
    "contain",
    "contain_open",
    "calculate",
]

M = 160
SUCCESSOR_LIST_SIZE = 10


def consistent_hash(addr: str) -> int:
    """Position of ``addr`` on the ring: its SHA-1 digest as an integer."""
    return int.from_bytes(hashlib.sha1(addr.encode("utf-8")).digest(), "big")


def contain(left: int, right: int, current: int) -> bool:
    """Whether ``current`` lies in the ring interval (left, right]."""
    if left < right:
        return left < current <= right
    if left == right:
        return True
    return current > left or current <= right


def contain_open(left: int, right: int, current: int) -> bool:
    """Whether ``current`` lies in the open ring interval (left, right)."""
    if left < right:
        return left < current < right
    if left == right:
        return current != left
    return current > left or current < right


def calculate(key: int, i: int) -> int:
    """Start of the ``i``-th finger of ``key``: (key + 2**(i-1)) mod 2**M."""
    return (key + (1 << (i - 1))) % (1 << M)