"""Splitting an apk stream into its signature, control and data segments on disk."""

from __future__ import annotations

import gzip
import hashlib
import io
import os
import shutil
import tarfile
import tempfile
import threading
import zlib
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from apkit.checksum import checksum_from_header

_CHUNK = 64 * 1024
_MEG = 1 << 20
_GZIP_MAGIC = b"\x1f\x8b"
_GZIP_WBITS = 31


@dataclass
class ApkExpanded:
    """An apk expanded into files in a temporary directory.

    Call ``close`` (or use it as a context manager) to remove the files.
    """

    size: int = 0
    signed: bool = False
    temp_dir: str = ""
    signature_file: str = ""
    control_file: str = ""
    package_file: str = ""
    tar_file: str = ""
    control_hash: bytes = b""
    package_hash: bytes = b""
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)
    _control_data: bytes | None = field(default=None, init=False, repr=False, compare=False)

    def control_data(self) -> bytes:
        """Return the uncompressed control tarball, reading it once."""
        with self._lock:
            if self._control_data is None:
                with gzip.open(self.control_file, "rb") as handle:
                    self._control_data = handle.read()
            return self._control_data

    def package_data(self) -> BinaryIO:
        """Open the uncompressed data tarball, creating it from the gzip file if missing."""
        try:
            return open(self.tar_file, "rb")
        except FileNotFoundError:
            pass

        buffer_size = _MEG
        if 0 < self.size < buffer_size:
            buffer_size = self.size

        try:
            with gzip.open(self.package_file, "rb") as compressed, open(self.tar_file, "wb") as out:
                shutil.copyfileobj(compressed, out, buffer_size)
        except (OSError, EOFError, zlib.error) as exc:
            raise ValueError(f"decompressing {self.package_file!r}: {exc}") from exc
        return open(self.tar_file, "rb")

    def apk(self) -> io.RawIOBase:
        """Open the whole apk again, as the concatenation of its segment files."""
        handles: list[BinaryIO] = []
        try:
            for name in (self.signature_file, self.control_file, self.package_file):
                if name:
                    handles.append(open(name, "rb"))
        except OSError:
            for handle in handles:
                handle.close()
            raise
        return _ConcatenatedFiles(handles)

    def close(self) -> None:
        """Remove the temporary directory and everything in it."""
        if self.temp_dir:
            try:
                shutil.rmtree(self.temp_dir)
            except FileNotFoundError:
                pass

    def __enter__(self) -> ApkExpanded:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _ConcatenatedFiles(io.RawIOBase):
    """Reads several open files one after another; closing closes them all."""

    def __init__(self, handles: list[BinaryIO]) -> None:
        super().__init__()
        self._handles = handles
        self._current = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while self._current < len(self._handles):
            count = self._handles[self._current].readinto(buffer)
            if count:
                return count
            self._current += 1
        return 0

    def close(self) -> None:
        if self.closed:
            return
        failure: BaseException | None = None
        for handle in self._handles:
            try:
                handle.close()
            except OSError as exc:
                failure = failure or exc
        super().close()
        if failure is not None:
            raise failure


class _GzipSplitter:
    """Reads a byte stream one gzip member at a time."""

    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self._pending = b""

    def _fill(self, size: int) -> bool:
        while len(self._pending) < size:
            chunk = self._source.read(_CHUNK)
            if not chunk:
                return False
            self._pending += chunk
        return True

    def at_end(self) -> bool:
        """Return True when nothing is left; raise if what follows is not gzip."""
        if not self._fill(1):
            return True
        if not self._fill(2) or self._pending[:2] != _GZIP_MAGIC:
            raise ValueError("creating gzip reader: invalid header")
        return False

    def read_member(self) -> tuple[bytes, bytes]:
        """Return the compressed bytes and the content of the next gzip member."""
        decompressor = zlib.decompressobj(wbits=_GZIP_WBITS)
        compressed = bytearray()
        content = bytearray()
        data, self._pending = self._pending, b""
        while True:
            if not data:
                data = self._source.read(_CHUNK)
                if not data:
                    raise ValueError("reading gzip stream: unexpected EOF")
            try:
                content += decompressor.decompress(data)
            except zlib.error as exc:
                raise ValueError(f"reading gzip stream: {exc}") from exc
            if decompressor.eof:
                unused = decompressor.unused_data
                compressed += data[: len(data) - len(unused)]
                self._pending = unused
                return bytes(compressed), bytes(content)
            compressed += data
            data = b""

    def remainder(self) -> Iterator[bytes]:
        """Yield every byte not yet consumed, in non-empty chunks."""
        if self._pending:
            pending, self._pending = self._pending, b""
            yield pending
        while chunk := self._source.read(_CHUNK):
            yield chunk


class _MultiMemberInflater:
    """Decompresses a sequence of concatenated gzip members fed in chunks."""

    def __init__(self) -> None:
        self._decompressor = None

    def feed(self, data: bytes) -> bytes:
        out = bytearray()
        while data:
            if self._decompressor is None:
                self._decompressor = zlib.decompressobj(wbits=_GZIP_WBITS)
            try:
                out += self._decompressor.decompress(data)
            except zlib.error as exc:
                raise ValueError(f"reading gzip stream: {exc}") from exc
            if self._decompressor.eof:
                data = self._decompressor.unused_data
                self._decompressor = None
            else:
                data = b""
        return bytes(out)

    def finish(self) -> None:
        if self._decompressor is not None:
            raise ValueError("reading gzip stream: unexpected EOF")


def _first_member_name(payload: bytes) -> str:
    try:
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:") as archive:
            member = archive.next()
    except tarfile.TarError as exc:
        raise ValueError(f"reading first tar header: {exc}") from exc
    if member is None:
        raise ValueError("reading first tar header: empty archive")
    return member.name


def _index_tar(handle: BinaryIO, label: str) -> None:
    try:
        with tarfile.open(fileobj=handle, mode="r|") as archive:
            for _ in archive:
                pass
    except tarfile.TarError as exc:
        raise ValueError(f"indexing {label!r}: {exc}") from exc


def check_sums(stream: BinaryIO) -> None:
    """Verify the SHA-1 checksum of every regular file in an uncompressed tar stream.

    Files without a recorded checksum are skipped. Raises ValueError on a
    mismatch or on a malformed archive.
    """
    try:
        with tarfile.open(fileobj=stream, mode="r|") as archive:
            for member in archive:
                if not member.isreg():
                    continue
                expected = checksum_from_header(member)
                if expected is None:
                    continue
                digest = hashlib.sha1()  # noqa: S324 - the apk format uses SHA-1
                extracted = archive.extractfile(member)
                if extracted is not None:
                    while chunk := extracted.read(_CHUNK):
                        digest.update(chunk)
                actual = digest.digest()
                if actual != expected:
                    raise ValueError(
                        f"checksum mismatch: {member.name} header was "
                        f"{expected.hex()}, computed {actual.hex()}"
                    )
    except tarfile.TarError as exc:
        raise ValueError(f"reading data tar: {exc}") from exc


def _expand_final(splitter: _GzipSplitter, path: Path) -> bytes | None:
    """Write the rest of the stream as the data segment; return its SHA-256 or None if empty."""
    chunks = splitter.remainder()
    first = next(chunks, None)
    if first is None:
        path.touch()
        return None

    tar_path = path.with_suffix("")
    digest = hashlib.sha256()
    inflater = _MultiMemberInflater()
    with open(path, "wb") as compressed, open(tar_path, "wb", buffering=_MEG) as tar_out:
        for chunk in (first, *chunks) if False else _chain(first, chunks):
            compressed.write(chunk)
            digest.update(chunk)
            tar_out.write(inflater.feed(chunk))
        inflater.finish()

    with open(tar_path, "rb") as tar_in:
        try:
            check_sums(tar_in)
        except ValueError as exc:
            raise ValueError(f"checking sums: {exc}") from exc
    return digest.digest()


def _chain(first: bytes, rest: Iterator[bytes]) -> Iterator[bytes]:
    yield first
    yield from rest


def _expand(source: BinaryIO, directory: Path) -> ApkExpanded:
    splitter = _GzipSplitter(source)
    streams: list[Path] = []
    hashes: list[bytes] = []
    max_streams = 2
    stream_id = 0

    while True:
        path = directory / f"stream-{stream_id}.tar.gz"
        if stream_id + 1 >= max_streams:
            digest = _expand_final(splitter, path)
            if digest is not None:
                streams.append(path)
                hashes.append(digest)
            break
        if splitter.at_end():
            break
        compressed, payload = splitter.read_member()
        path.write_bytes(compressed)
        streams.append(path)
        hashes.append(hashlib.sha1(compressed).digest())  # noqa: S324 - apk format
        if stream_id == 0 and _first_member_name(payload).startswith(".SIGN."):
            max_streams = 3
        stream_id += 1

    if len(streams) == 3:
        signed, control_index = True, 1
    elif len(streams) == 2:
        signed, control_index = False, 0
    else:
        raise ValueError(f"invalid number of tar streams: {len(streams)}")

    package_file = str(streams[control_index + 1])
    expanded = ApkExpanded(
        size=sum(path.stat().st_size for path in streams),
        signed=signed,
        temp_dir=str(directory),
        signature_file=str(streams[0]) if signed else "",
        control_file=str(streams[control_index]),
        package_file=package_file,
        tar_file=package_file.removesuffix(".gz"),
        control_hash=hashes[control_index],
        package_hash=hashes[control_index + 1],
    )

    try:
        control = expanded.control_data()
    except (OSError, EOFError, zlib.error) as exc:
        raise ValueError(f"reading {expanded.control_file!r}: {exc}") from exc
    _index_tar(io.BytesIO(control), expanded.control_file)
    with expanded.package_data() as data:
        _index_tar(data, expanded.tar_file)
    return expanded


def expand_apk(source: BinaryIO, cache_dir: str | os.PathLike[str] | None = None) -> ApkExpanded:
    """Expand an apk stream into a new temporary directory under ``cache_dir``.

    An apk holds two gzip segments (control and data) or three when signed
    (signature, control, data). The data segment's file checksums are
    verified. The caller must close the result to remove its files.
    """
    directory = tempfile.mkdtemp(prefix="expand-apk", dir=cache_dir)
    try:
        return _expand(source, Path(directory))
    except BaseException:
        shutil.rmtree(directory, ignore_errors=True)
        raise