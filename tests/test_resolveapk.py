import gzip
import hashlib
import io
import tarfile

import pytest

from apkit.resolveapk import resolve_apk


def _tar(members):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as archive:
        for name, data in members:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


DATA = gzip.compress(_tar([("usr/bin/foo", b"hello world\n")]))
DATAHASH = hashlib.sha256(DATA).hexdigest()
CONTROL = gzip.compress(
    _tar([(".PKGINFO", f"pkgname = foo\nsize = 4096\ndatahash = {DATAHASH}\n".encode())])
)
SIGNATURE = gzip.compress(_tar([(".SIGN.RSA.key.rsa.pub", b"signature-bytes")]))


def test_signed_package():
    resolved = resolve_apk(io.BytesIO(SIGNATURE + CONTROL + DATA))
    assert resolved.signature_size == len(SIGNATURE)
    assert resolved.signature_hash == hashlib.sha1(SIGNATURE).digest()
    assert resolved.control_size == len(SIGNATURE) + len(CONTROL)
    assert resolved.control_hash == hashlib.sha1(CONTROL).digest()
    assert resolved.data_size == 4096
    assert resolved.data_hash == bytes.fromhex(DATAHASH)


def test_signed_package_without_data_segment():
    resolved = resolve_apk(io.BytesIO(SIGNATURE + CONTROL))
    assert resolved.control_hash == hashlib.sha1(CONTROL).digest()
    assert resolved.data_hash == bytes.fromhex(DATAHASH)


def test_unsigned_package_reports_only_control():
    resolved = resolve_apk(io.BytesIO(CONTROL + DATA))
    assert resolved.signature_size == 0
    assert resolved.signature_hash == b""
    assert resolved.control_size == len(CONTROL)
    assert resolved.control_hash == hashlib.sha1(CONTROL).digest()
    assert resolved.data_size == 0
    assert resolved.data_hash == b""


def test_missing_size_in_control():
    control = gzip.compress(_tar([(".PKGINFO", f"datahash = {DATAHASH}\n".encode())]))
    with pytest.raises(ValueError, match="size"):
        resolve_apk(io.BytesIO(SIGNATURE + control + DATA))


def test_bad_datahash_in_control():
    control = gzip.compress(_tar([(".PKGINFO", b"size = 1\ndatahash = zz\n")]))
    with pytest.raises(ValueError, match="datahash"):
        resolve_apk(io.BytesIO(SIGNATURE + control + DATA))


def test_not_gzip():
    with pytest.raises(ValueError):
        resolve_apk(io.BytesIO(b"not a gzip stream at all"))


def test_truncated_stream():
    with pytest.raises(ValueError):
        resolve_apk(io.BytesIO(SIGNATURE + CONTROL[: len(CONTROL) // 2]))