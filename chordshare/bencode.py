"""Bencoding: the serialisation format used by .torrent files."""

from __future__ import annotations

import re

__all__ = ["BencodeError", "encode", "decode"]

_INTEGER = re.compile(rb"-?(?:0|[1-9][0-9]*)")
_LENGTH = re.compile(rb"0|[1-9][0-9]*")


class BencodeError(ValueError):
    """Raised when a value cannot be bencoded or data is not valid bencode."""


def encode(value) -> bytes:
    """Bencode ``value``: an int, str, bytes, list/tuple or dict with str/bytes keys."""
    out = bytearray()
    _encode_into(value, out)
    return bytes(out)


def _key_bytes(key) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    raise BencodeError(f"dictionary keys must be str or bytes, not {type(key).__name__}")


def _encode_into(value, out: bytearray) -> None:
    if isinstance(value, int):
        out += b"i%de" % value
    elif isinstance(value, str):
        raw = value.encode("utf-8")
        out += b"%d:" % len(raw) + raw
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        out += b"%d:" % len(raw) + raw
    elif isinstance(value, (list, tuple)):
        out += b"l"
        for item in value:
            _encode_into(item, out)
        out += b"e"
    elif isinstance(value, dict):
        entries = sorted((_key_bytes(key), item) for key, item in value.items())
        out += b"d"
        for key, item in entries:
            out += b"%d:" % len(key) + key
            _encode_into(item, out)
        out += b"e"
    else:
        raise BencodeError(f"cannot bencode value of type {type(value).__name__}")


def decode(data):
    """Decode bencoded ``data``.

    Byte strings come back as ``bytes``, dictionaries as ``dict`` with ``str`` keys.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    raw = bytes(data)
    value, end = _decode_at(raw, 0)
    if end != len(raw):
        raise BencodeError(f"trailing data at offset {end}")
    return value


def _decode_at(data: bytes, pos: int):
    if pos >= len(data):
        raise BencodeError("unexpected end of data")
    lead = data[pos:pos + 1]
    if lead == b"i":
        end = data.find(b"e", pos + 1)
        if end < 0:
            raise BencodeError(f"unterminated integer at offset {pos}")
        digits = data[pos + 1:end]
        if not _INTEGER.fullmatch(digits) or digits == b"-0":
            raise BencodeError(f"invalid integer {digits!r} at offset {pos}")
        return int(digits), end + 1
    if lead == b"l":
        items = []
        pos += 1
        while True:
            if pos >= len(data):
                raise BencodeError("unterminated list")
            if data[pos:pos + 1] == b"e":
                return items, pos + 1
            item, pos = _decode_at(data, pos)
            items.append(item)
    if lead == b"d":
        mapping = {}
        pos += 1
        while True:
            if pos >= len(data):
                raise BencodeError("unterminated dictionary")
            if data[pos:pos + 1] == b"e":
                return mapping, pos + 1
            if not data[pos:pos + 1].isdigit():
                raise BencodeError(f"dictionary key at offset {pos} is not a string")
            key, pos = _decode_string(data, pos)
            try:
                name = key.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise BencodeError(f"dictionary key {key!r} is not UTF-8") from exc
            mapping[name], pos = _decode_at(data, pos)
    if lead.isdigit():
        return _decode_string(data, pos)
    raise BencodeError(f"unexpected byte {lead!r} at offset {pos}")


def _decode_string(data: bytes, pos: int):
    colon = data.find(b":", pos)
    if colon < 0:
        raise BencodeError(f"unterminated string length at offset {pos}")
    digits = data[pos:colon]
    if not _LENGTH.fullmatch(digits):
        raise BencodeError(f"invalid string length {digits!r} at offset {pos}")
    start = colon + 1
    end = start + int(digits)
    if end > len(data):
        raise BencodeError(f"string at offset {pos} runs past end of data")
    return data[start:end], end