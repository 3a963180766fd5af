"""Filtering and ranking of candidate packages."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from functools import cmp_to_key

from apkit.named import PinnedPackage
from apkit.repository import RepositoryPackage
from apkit.version import (
    ParsedConstraint,
    Version,
    VersionDependency,
    VersionError,
    compare_versions,
    parse_version,
    resolve_package_name_version_pin,
)

Comparator = Callable[[PinnedPackage, PinnedPackage], int]


def _repo_uri(pkg: RepositoryPackage | PinnedPackage) -> str:
    repo = pkg.repository
    return "" if repo is None else repo.uri


def _cmp(a: str, b: str) -> int:
    return (a > b) - (a < b)


class PackageSelector:
    """Chooses among candidate packages, caching parsed versions and constraints."""

    def __init__(self) -> None:
        self._versions: dict[str, Version] = {}
        self._constraints: dict[str, ParsedConstraint] = {}

    def parse_version(self, version: str) -> Version:
        """Parse ``version``, reusing earlier results; raise VersionError if invalid."""
        cached = self._versions.get(version)
        if cached is not None:
            return cached
        parsed = parse_version(version)
        self._versions[version] = parsed
        return parsed

    def parse_constraint(self, pkg_name: str) -> ParsedConstraint:
        """Split ``pkg_name`` into name, version, operator and pin, reusing earlier results."""
        cached = self._constraints.get(pkg_name)
        if cached is None:
            cached = resolve_package_name_version_pin(pkg_name)
            self._constraints[pkg_name] = cached
        return cached

    def filter_packages(
        self,
        pkgs: Iterable[PinnedPackage],
        dq: Mapping[RepositoryPackage, str] | None = None,
        version: str = "",
        compare: VersionDependency = VersionDependency.ANY,
        allow_pin: str = "",
        prefer_pin: str = "",
        installed: RepositoryPackage | None = None,
    ) -> list[PinnedPackage]:
        """Return the candidates that are not disqualified, are allowed by pin and match the version.

        A candidate from a pinned index is kept only if its pin is allowed or
        preferred, or it is the package already installed. If the required
        version cannot be parsed, nothing matches.
        """
        dq = dq or {}
        installed_url = installed.url() if installed is not None else ""
        passed: list[PinnedPackage] = []
        for pkg in pkgs:
            if pkg.package in dq:
                continue
            pinned = pkg.pinned_name
            if (
                pinned
                and pinned != allow_pin
                and pinned != prefer_pin
                and (installed is None or installed_url != pkg.url())
            ):
                continue
            if compare is VersionDependency.ANY:
                passed.append(pkg)
                continue

            try:
                required = self.parse_version(version)
            except VersionError:
                return []
            try:
                actual = self.parse_version(pkg.version)
            except VersionError:
                continue

            if compare.satisfies(actual, required):
                passed.append(pkg)
                continue

            for provide in pkg.provides:
                provided = self.parse_constraint(provide).version
                if not provided:
                    continue
                try:
                    actual = self.parse_version(provided)
                except VersionError:
                    continue
                if compare.satisfies(actual, required):
                    passed.append(pkg)
                    break
        return passed

    def compare_packages(
        self,
        compare: RepositoryPackage | None = None,
        name: str = "",
        existing: Mapping[str, RepositoryPackage] | None = None,
        existing_origins: Mapping[str, bool] | None = None,
        pin: str = "",
    ) -> Comparator:
        """Return a comparison function ordering candidates from most to least preferred.

        Preference goes to the repository and origin of ``compare``, then to
        packages already installed, installed origins, the pin, provider
        priority, the version of ``name`` provided, the package version and
        finally the package name.
        """
        existing = existing or {}
        existing_origins = existing_origins or {}

        def comparator(a: PinnedPackage, b: PinnedPackage) -> int:
            a_version_str = self.dep_version_for_name(a, name)
            b_version_str = self.dep_version_for_name(b, name)

            if compare is not None:
                pkg_repo = _repo_uri(compare)
                a_repo, b_repo = _repo_uri(a), _repo_uri(b)
                if a_repo == pkg_repo and b_repo != pkg_repo:
                    return -1
                if b_repo == pkg_repo and a_repo != pkg_repo:
                    return 1
                pkg_origin = compare.origin
                if a.origin == pkg_origin and b.origin != pkg_origin:
                    return -1
                if b.origin == pkg_origin and a.origin != pkg_origin:
                    return 1

            a_installed = existing.get(a.name)
            b_installed = existing.get(b.name)
            a_matches = a_installed is not None and a_installed.version == a.version
            b_matches = b_installed is not None and b_installed.version == b.version
            if a_matches and not b_matches:
                return -1
            if b_matches and not a_matches:
                return 1

            a_origin = bool(existing_origins.get(a.origin, False))
            b_origin = bool(existing_origins.get(b.origin, False))
            if a_origin and not b_origin:
                return -1
            if b_origin and not a_origin:
                return 1

            if a.pinned_name == pin and b.pinned_name != pin:
                return -1
            if a.pinned_name != pin and b.pinned_name == pin:
                return 1

            if a.provider_priority != b.provider_priority:
                return -1 if a.provider_priority > b.provider_priority else 1

            try:
                a_version = self.parse_version(a_version_str)
            except VersionError:
                return 1
            try:
                b_version = self.parse_version(b_version_str)
            except VersionError:
                return -1
            result = compare_versions(a_version, b_version)
            if result:
                return -result

            if a_version_str != a.version or b_version_str != b.version:
                try:
                    a_version = self.parse_version(a.version)
                except VersionError:
                    return 1
                try:
                    b_version = self.parse_version(b.version)
                except VersionError:
                    return -1
                result = compare_versions(a_version, b_version)
                if result:
                    return -result

            return _cmp(a.name, b.name)

        return comparator

    def sort_packages(
        self,
        pkgs: list[PinnedPackage],
        compare: RepositoryPackage | None = None,
        name: str = "",
        existing: Mapping[str, RepositoryPackage] | None = None,
        existing_origins: Mapping[str, bool] | None = None,
        pin: str = "",
    ) -> None:
        """Sort ``pkgs`` in place, most preferred first."""
        pkgs.sort(key=cmp_to_key(self.compare_packages(compare, name, existing, existing_origins, pin)))

    def best_package(
        self,
        pkgs: Iterable[PinnedPackage],
        compare: RepositoryPackage | None = None,
        name: str = "",
        existing: Mapping[str, RepositoryPackage] | None = None,
        existing_origins: Mapping[str, bool] | None = None,
        pin: str = "",
    ) -> PinnedPackage | None:
        """Return the most preferred of ``pkgs``, or None when there are none."""
        key = cmp_to_key(self.compare_packages(compare, name, existing, existing_origins, pin))
        return min(pkgs, key=key, default=None)

    def dep_version_for_name(self, pkg: PinnedPackage | RepositoryPackage, name: str) -> str:
        """Return the version under which ``pkg`` offers ``name``.

        That is the package version when ``name`` is empty or the package's own
        name, otherwise the version of the matching provide (defaulting to the
        package version), or an empty string when nothing matches.
        """
        if not name or name == pkg.name:
            return pkg.version
        for provide in pkg.provides:
            constraint = self.parse_constraint(provide)
            if constraint.name == name:
                return constraint.version or pkg.version
        return ""