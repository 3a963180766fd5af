"""Reading and writing the world and repositories files of an apk database."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

WORLD_FILE = Path("etc", "apk", "world")
REPOSITORIES_FILE = Path("etc", "apk", "repositories")


def _write_public(path: Path, data: str) -> None:
    path.write_text(data, encoding="utf-8")
    path.chmod(0o644)


def get_world(root: str | os.PathLike[str]) -> list[str]:
    """Return the packages listed in the world file under ``root``."""
    return (Path(root) / WORLD_FILE).read_text(encoding="utf-8").split()


def set_world(root: str | os.PathLike[str], packages: Iterable[str]) -> None:
    """Write the world file under ``root``, sorted, one package per line.

    The ``etc/apk`` directory must already exist.
    """
    _write_public(Path(root) / WORLD_FILE, "\n".join(sorted(packages)) + "\n")


def get_repositories(root: str | os.PathLike[str]) -> list[str]:
    """Return the lines of the repositories file under ``root``."""
    with (Path(root) / REPOSITORIES_FILE).open(encoding="utf-8", newline="\n") as handle:
        return [line.removesuffix("\n").removesuffix("\r") for line in handle]


def set_repositories(root: str | os.PathLike[str], repos: Iterable[str]) -> None:
    """Write the repositories file under ``root``, one repository per line.

    The ``etc/apk`` directory must already exist.
    """
    repos = list(repos)
    if not repos:
        raise ValueError("must provide at least one repository")
    _write_public(Path(root) / REPOSITORIES_FILE, "\n".join(repos) + "\n")