"""Small helpers shared by the package."""

from __future__ import annotations

import tarfile
from collections.abc import Hashable, Iterable
from typing import BinaryIO, TypeVar

T = TypeVar("T", bound=Hashable)

_PKGINFO = ".PKGINFO"


def uniqify(items: Iterable[T]) -> list[T]:
    """Return the items with duplicates removed, keeping first occurrences in order."""
    return list(dict.fromkeys(items))


def control_value(control_tar: BinaryIO, *args: str) -> dict[str, list[str]]:
    """Read the requested keys from the ``.PKGINFO`` of an uncompressed control tar.

    ``args`` are the keys wanted; each maps to every value found for it.
    """
    mapping: dict[str, list[str]] = {}
    with tarfile.open(fileobj=control_tar, mode="r|") as archive:
        for member in archive:
            if member.name != _PKGINFO:
                continue
            extracted = archive.extractfile(member)
            content = extracted.read() if extracted is not None else b""
            for line in content.decode("utf-8", errors="replace").split("\n"):
                parts = line.split("=")
                if len(parts) != 2:
                    continue
                key = parts[0].strip()
                if key not in args:
                    continue
                mapping.setdefault(key, []).append(parts[1].strip())
            break
    return mapping