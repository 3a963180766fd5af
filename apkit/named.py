"""Named indexes, pinned packages and the errors raised while resolving."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from apkit.repository import RepositoryPackage, RepositoryWithIndex


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


@runtime_checkable
class NamedIndex(Protocol):
    """An index holding packages, with an optional name and source."""

    name: str

    def packages(self) -> list[RepositoryPackage]:
        """Return every package in the index."""

    def source(self) -> str:
        """Return where the index came from, or an empty string."""

    def count(self) -> int:
        """Return the number of packages in the index."""


@dataclass
class NamedRepositoryWithIndex:
    """A repository index carrying a name used for pinning."""

    name: str
    repo: RepositoryWithIndex | None = None

    def packages(self) -> list[RepositoryPackage]:
        """Return the packages of the repository, or none when it is absent."""
        if self.repo is None:
            return []
        return self.repo.packages()

    def source(self) -> str:
        """Return the index URI of the repository, or an empty string."""
        if self.repo is None:
            return ""
        return self.repo.index_uri()

    def count(self) -> int:
        """Return the number of packages in the repository."""
        if self.repo is None:
            return 0
        return self.repo.count()


def index_names(indexes: Iterable[NamedIndex]) -> list[str]:
    """Return the source of each index, in order."""
    return [index.source() for index in indexes]


@dataclass(eq=False)
class PinnedPackage:
    """A repository package together with the pin name of the index it came from."""

    package: RepositoryPackage
    pinned_name: str = ""

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def version(self) -> str:
        return self.package.version

    @property
    def origin(self) -> str:
        return self.package.origin

    @property
    def dependencies(self) -> list[str]:
        return self.package.dependencies

    @property
    def provides(self) -> list[str]:
        return self.package.provides

    @property
    def install_if(self) -> list[str]:
        return self.package.install_if

    @property
    def provider_priority(self) -> int:
        return self.package.provider_priority

    @property
    def installed_size(self) -> int:
        return self.package.installed_size

    @property
    def repository(self) -> RepositoryWithIndex | None:
        return self.package.repository

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return self.package.filename()

    def url(self) -> str:
        """Return the full URL of the package archive."""
        return self.package.url()


class ConstraintError(Exception):
    """A constraint could not be solved."""

    def __init__(self, constraint: str, wrapped: BaseException) -> None:
        super().__init__(constraint, wrapped)
        self.constraint = constraint
        self.wrapped = wrapped

    def __str__(self) -> str:
        return f"solving {_quote(self.constraint)} constraint: {self.wrapped}"


class DepError(Exception):
    """The dependencies of a package could not be resolved."""

    def __init__(self, package: RepositoryPackage, wrapped: BaseException) -> None:
        super().__init__(package, wrapped)
        self.package = package
        self.wrapped = wrapped

    def __str__(self) -> str:
        return f"resolving {_quote(self.package.filename())} deps:\n{self.wrapped}"


class DisqualifiedError(Exception):
    """A candidate package was ruled out, for the wrapped reason."""

    def __init__(self, package: RepositoryPackage, wrapped: BaseException) -> None:
        super().__init__(package, wrapped)
        self.package = package
        self.wrapped = wrapped

    def __str__(self) -> str:
        return f"  {self.package.filename()} disqualified because {self.wrapped}"


class _JoinedError(Exception):
    """Several errors reported together, one per line."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        super().__init__(*errors)
        self.errors = tuple(errors)

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self.errors)


def maybe_dq_error(
    constraint: str,
    pkgs: Iterable[PinnedPackage],
    dq: Mapping[RepositoryPackage, str],
) -> Exception:
    """Build the error explaining why no candidate for ``constraint`` remains.

    Lists every disqualified candidate when there are any; otherwise reports
    that the constraint was not found.
    """
    errors = [
        DisqualifiedError(pkg.package, Exception(dq[pkg.package]))
        for pkg in pkgs
        if pkg.package in dq
    ]
    if errors:
        return ConstraintError(constraint, _JoinedError(errors))
    return LookupError(f"could not find constraint {_quote(constraint)} in indexes")