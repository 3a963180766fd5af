"""Repositories, their indexes and the packages they hold."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Package:
    """A package as described by an APKINDEX entry."""

    name: str = ""
    version: str = ""
    arch: str = ""
    description: str = ""
    license: str = ""
    origin: str = ""
    maintainer: str = ""
    url: str = ""
    checksum: bytes = b""
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    install_if: list[str] = field(default_factory=list)
    size: int = 0
    installed_size: int = 0
    provider_priority: int = 0

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return f"{self.name}-{self.version}.apk"


@dataclass
class ApkIndex:
    """The parsed contents of an APKINDEX."""

    packages: list[Package] = field(default_factory=list)


@dataclass
class Repository:
    """A repository identified by its URI."""

    uri: str = ""

    def with_index(self, index: ApkIndex | None) -> RepositoryWithIndex:
        """Attach a parsed index to this repository."""
        return RepositoryWithIndex(repository=self, index=index)

    def index_uri(self) -> str:
        """Return the URI of the repository's APKINDEX."""
        return f"{self.uri}/APKINDEX.tar.gz"

    def is_remote(self) -> bool:
        """Return True when the repository must be fetched over the network."""
        return not self.uri.startswith("/")


def new_repository_from_components(base_uri: str, release: str, repo: str, arch: str) -> Repository:
    """Build a repository whose URI is made from its components."""
    return Repository(uri=f"{base_uri}/{release}/{repo}/{arch}")


@dataclass(eq=False)
class RepositoryWithIndex:
    """A repository together with its read and parsed index."""

    repository: Repository
    index: ApkIndex | None = None

    @property
    def uri(self) -> str:
        return self.repository.uri

    def index_uri(self) -> str:
        """Return the URI of the repository's APKINDEX."""
        return self.repository.index_uri()

    def is_remote(self) -> bool:
        """Return True when the repository must be fetched over the network."""
        return self.repository.is_remote()

    def packages(self) -> list[RepositoryPackage]:
        """Return a new RepositoryPackage for every package in the index."""
        if self.index is None:
            return []
        return [RepositoryPackage(package=pkg, repository=self) for pkg in self.index.packages]

    def count(self) -> int:
        """Return the number of packages in the index."""
        return 0 if self.index is None else len(self.index.packages)

    def repo_abbr(self) -> str:
        """Return the last two path components of the URI, e.g. ``main/x86_64``."""
        return "/".join(self.uri.split("/")[-2:])


@dataclass(eq=False)
class RepositoryPackage:
    """A package that belongs to a particular repository."""

    package: Package
    repository: RepositoryWithIndex | None = None

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

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return self.package.filename()

    def url(self) -> str:
        """Return the full URL of the package archive."""
        base = self.repository.uri if self.repository is not None else ""
        return f"{base}/{self.filename()}"