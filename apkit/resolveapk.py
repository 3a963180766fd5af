"""Sizes and hashes of the gzip segments of an apk archive."""

from __future__ import annotations

import binascii
import hashlib
import io
import re
import tarfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO

from apkit.repository import RepositoryPackage
from apkit.util import control_value

_CHUNK = 64 * 1024
_GZIP_MAGIC = b"\x1f\x8b"
_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass
class ApkResolved:
    """Sizes and hashes of the signature, control and data segments."""

    package: RepositoryPackage | None = None
    signature_size: int = 0
    signature_hash: bytes = b""
    control_size: int = 0
    control_hash: bytes = b""
    data_size: int = 0
    data_hash: bytes = b""


class _GzipMembers:
    """Splits a byte stream into its concatenated gzip members."""

    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self._buffer = b""
        self.consumed = 0

    def _fill(self, size: int) -> bool:
        while len(self._buffer) < size:
            chunk = self._source.read(_CHUNK)
            if not chunk:
                return False
            self._buffer += chunk
        return True

    def at_end(self) -> bool:
        """Return True when the stream is exhausted; raise if what follows is not gzip."""
        if not self._fill(1):
            return False if self._buffer else True
        if not self._fill(2) or self._buffer[:2] != _GZIP_MAGIC:
            raise ValueError("creating gzip reader: invalid header")
        return False

    def next_member(self) -> tuple[bytes, bytes]:
        """Return the compressed bytes and the decompressed content of the next member."""
        decompressor = zlib.decompressobj(wbits=31)
        compressed = bytearray()
        output = bytearray()
        data, self._buffer = self._buffer, b""
        while True:
            if not data:
                data = self._source.read(_CHUNK)
                if not data:
                    raise ValueError("reading gzip stream: unexpected EOF")
            try:
                output += decompressor.decompress(data)
            except zlib.error as exc:
                raise ValueError(f"reading gzip stream: {exc}") from exc
            if decompressor.eof:
                unused = decompressor.unused_data
                compressed += data[: len(data) - len(unused)]
                self._buffer = unused
                break
            compressed += data
            data = b""
        self.consumed += len(compressed)
        return bytes(compressed), bytes(output)


def _first_member_name(payload: bytes) -> str:
    try:
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:") as archive:
            member = archive.next()
    except tarfile.TarError as exc:
        raise ValueError(f"reading first tar header: {exc}") from exc
    if member is None:
        raise ValueError("reading first tar header: empty archive")
    return member.name


def _single(mapping: dict[str, list[str]], key: str) -> str:
    values = mapping.get(key)
    if values is None:
        raise ValueError(f"reading {key} from control: missing")
    if len(values) != 1:
        raise ValueError(f"saw {len(values)} {key} values")
    return values[0]


def resolve_apk(source: BinaryIO) -> ApkResolved:
    """Read the leading segments of an apk stream and report their sizes and hashes.

    Segment sizes are counted from the start of the stream. The data size and
    hash are those recorded in the control segment's ``.PKGINFO``.
    """
    members = _GzipMembers(source)
    sizes = [0, 0, 0]
    hashes = [b"", b"", b""]
    max_streams = 2
    control_idx = 0
    signed = False
    stream_id = 0

    while not members.at_end():
        if stream_id > control_idx:
            break
        compressed, payload = members.next_member()

        if stream_id == 0:
            if _first_member_name(payload).startswith(".SIGN."):
                max_streams = 3
                control_idx = 1
                signed = True
        elif stream_id == control_idx:
            try:
                mapping = control_value(io.BytesIO(payload), "datahash", "size")
            except tarfile.TarError as exc:
                raise ValueError(f"reading datahash and size from control: {exc}") from exc

            size = _single(mapping, "size")
            if not _INTEGER.fullmatch(size):
                raise ValueError(f"parsing size from control: invalid number {size!r}")
            sizes[max_streams - 1] = int(size)

            datahash = _single(mapping, "datahash")
            try:
                hashes[max_streams - 1] = binascii.unhexlify(datahash)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"reading datahash from control: {exc}") from exc

        hashes[stream_id] = hashlib.sha1(compressed).digest()  # noqa: S324 - apk format
        sizes[stream_id] = members.consumed
        stream_id += 1

    resolved = ApkResolved(
        control_size=sizes[control_idx],
        control_hash=hashes[control_idx],
        data_size=sizes[control_idx + 1],
        data_hash=hashes[control_idx + 1],
    )
    if signed:
        resolved.signature_size = sizes[0]
        resolved.signature_hash = hashes[0]
    return resolved