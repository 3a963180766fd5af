"""Dependency resolution across a set of named package indexes."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping

from apkit.named import (
    ConstraintError,
    DepError,
    DisqualifiedError,
    NamedIndex,
    PinnedPackage,
    maybe_dq_error,
)
from apkit.repository import RepositoryPackage
from apkit.selection import PackageSelector
from apkit.util import uniqify
from apkit.version import ParsedConstraint, VersionDependency, VersionError

Disqualified = MutableMapping[RepositoryPackage, str]

_RESOLVE_ERRORS = (LookupError, ValueError, ConstraintError, DepError, DisqualifiedError)


class PkgResolver(PackageSelector):
    """Resolves packages and their dependencies from a list of indexes.

    Dependencies are looked up in every index given. Build a new resolver
    whenever the indexes change.
    """

    def __init__(self, indexes: Iterable[NamedIndex]) -> None:
        super().__init__()
        self.indexes = list(indexes)
        name_map: dict[str, list[PinnedPackage]] = {}
        install_if_map: dict[str, list[PinnedPackage]] = {}

        for index in self.indexes:
            for pkg in index.packages():
                name_map.setdefault(pkg.name, []).append(PinnedPackage(pkg, index.name))
                for dep in pkg.install_if:
                    install_if_map.setdefault(dep, []).append(PinnedPackage(pkg, index.name))

        for versions in [list(candidates) for candidates in name_map.values()]:
            for pinned in versions:
                for provide in pinned.provides:
                    name = self.parse_constraint(provide).name
                    name_map.setdefault(name, []).append(pinned)

        self.name_map = name_map
        self.install_if_map = install_if_map

    # -- disqualification -------------------------------------------------

    @staticmethod
    def _disqualify(dq: Disqualified, pkg: RepositoryPackage, reason: str) -> None:
        dq[pkg] = reason

    def _disqualify_providers(self, constraint: str, dq: Disqualified) -> None:
        """Disqualify everything that provides ``constraint`` (for ``!foo`` constraints)."""
        parsed = self.parse_constraint(constraint)
        providers = self.name_map.get(parsed.name)
        if providers is None:
            return
        conflicting = self.filter_packages(
            providers, dq, version=parsed.version, compare=parsed.dep, prefer_pin=parsed.pin
        )
        for conflict in conflicting:
            if conflict.package in dq:
                continue
            self._disqualify(dq, conflict.package, "excluded by !" + constraint)

    def _conflicting_version(self, constraint: ParsedConstraint, conflict: PinnedPackage) -> bool:
        if constraint.version:
            return True
        if conflict.name == constraint.name:
            return conflict.version != constraint.version
        for provide in conflict.provides:
            provided = self.parse_constraint(provide)
            if provided.name != constraint.name:
                continue
            return provided.version != constraint.version
        raise RuntimeError(
            "conflicting version checked for a package that does not provide the constraint"
        )

    def _disqualify_conflicts(self, pkg: RepositoryPackage, dq: Disqualified) -> None:
        """Disqualify every other package providing something ``pkg`` provides."""
        for provide in pkg.provides:
            constraint = self.parse_constraint(provide)
            providers = self.name_map.get(constraint.name)
            if providers is None:
                continue
            for conflict in providers:
                if conflict.package is pkg or conflict.package in dq:
                    continue
                if not self._conflicting_version(constraint, conflict):
                    continue
                self._disqualify(
                    dq, conflict.package, f"{pkg.filename()} already provides {constraint.name}"
                )

    def _constrain(self, constraints: Iterable[str], dq: Disqualified) -> None:
        """Disqualify whatever conflicts with versioned or ``!`` constraints."""
        for constraint in constraints:
            if constraint.startswith("!"):
                self._disqualify_providers(constraint[1:], dq)
                continue

            parsed = self.parse_constraint(constraint)
            if parsed.dep is VersionDependency.ANY:
                continue
            providers = self.name_map.get(parsed.name)
            if providers is None:
                continue
            try:
                required = self.parse_version(parsed.version)
            except VersionError as exc:
                raise ValueError(f"parsing constraint {constraint!r}: {exc}") from exc

            for provider in providers:
                if provider.name == parsed.name:
                    try:
                        actual = self.parse_version(provider.version)
                    except VersionError as exc:
                        self._disqualify(
                            dq, provider.package, f"parsing version {provider.version!r} failed: {exc}"
                        )
                        continue
                    if not parsed.dep.satisfies(actual, required):
                        self._disqualify(
                            dq, provider.package, f"{provider.version!r} does not satisfy {constraint!r}"
                        )
                    continue

                for provide in provider.provides:
                    provided = self.parse_constraint(provide)
                    if provided.name != parsed.name:
                        continue
                    try:
                        actual = self.parse_version(provided.version)
                    except VersionError as exc:
                        dq[provider.package] = f"parsing {provided.version!r}: {exc}"
                        continue
                    if not parsed.dep.satisfies(actual, required):
                        dq[provider.package] = (
                            f"{provider.filename()!r} provides {provide!r} "
                            f"which does not satisfy {constraint!r}"
                        )

    # -- resolution -------------------------------------------------------

    def _next_package(self, packages: Iterable[str], dq: Disqualified) -> str:
        """Pick the constraint with the fewest candidate packages."""
        best = ""
        fewest = 0
        for pkg_name in packages:
            try:
                candidates = self.resolve_package(pkg_name, dq)
            except _RESOLVE_ERRORS as exc:
                raise ConstraintError(pkg_name, exc) from exc
            if not candidates:
                raise LookupError(f"could not find package {pkg_name}")
            if not best or len(candidates) < fewest:
                best, fewest = pkg_name, len(candidates)
        return best

    def get_packages_with_dependencies(
        self, packages: Iterable[str]
    ) -> tuple[list[RepositoryPackage], list[str]]:
        """Return the packages to install, in install order, and the conflicts found.

        Does not check whether anything is already installed.
        """
        packages = list(packages)
        dq: dict[RepositoryPackage, str] = {}
        constraints = list(packages)
        dependencies_map: dict[str, RepositoryPackage] = {}
        install_tracked: dict[str, RepositoryPackage] = {}
        to_install: list[RepositoryPackage] = []
        conflicts: list[str] = []

        try:
            self._constrain(constraints, dq)
        except ValueError as exc:
            raise ValueError(f"constraining initial packages: {exc}") from exc

        while constraints:
            chosen = self._next_package(constraints, dq)
            try:
                pkg = self._resolve_package(chosen, dq)
            except _RESOLVE_ERRORS as exc:
                raise ConstraintError(chosen, exc) from exc
            dependencies_map[pkg.name] = pkg
            constraints = [c for c in constraints if c != chosen]
            self._disqualify_conflicts(pkg, dq)

        for pkg_name in packages:
            try:
                pkg, deps, found = self.get_package_with_dependencies(pkg_name, dependencies_map, dq)
            except _RESOLVE_ERRORS as exc:
                raise ConstraintError(pkg_name, exc) from exc
            for dep in [*deps, pkg]:
                if dep.name not in install_tracked:
                    to_install.append(dep)
                    install_tracked[dep.name] = dep
                dependencies_map.setdefault(dep.name, dep)
            conflicts.extend(found)

        return to_install, uniqify(conflicts)

    def get_package_with_dependencies(
        self,
        pkg_name: str,
        existing: Mapping[str, RepositoryPackage] | None,
        dq: Disqualified,
    ) -> tuple[RepositoryPackage, list[RepositoryPackage], list[str]]:
        """Resolve ``pkg_name`` and return it, its dependencies and its conflicts.

        ``existing`` holds packages already chosen; it is not modified.
        """
        local_existing: dict[str, RepositoryPackage] = dict(existing or {})
        existing_origins = {
            pkg.origin: True for pkg in local_existing.values() if pkg is not None and pkg.origin
        }

        pkg = self._resolve_package(pkg_name, dq)
        pin = self.parse_constraint(pkg_name).pin
        deps, conflicts = self.get_package_dependencies(
            pkg, pin, True, {}, local_existing, existing_origins, dq
        )

        added: dict[str, RepositoryPackage] = {}
        for dep in deps:
            added.setdefault(dep.name, dep)
        dependencies = list(added.values())

        for dep_name, dep_pkg in list(added.items()):
            triggered = self.install_if_map.get(dep_name)
            if triggered is None:
                triggered = self.install_if_map.get(f"{dep_name}={dep_pkg.version}")
            if triggered is None:
                continue
            for candidate in triggered:
                matched = 0
                for sub_dep in candidate.install_if:
                    if sub_dep in added:
                        matched += 1
                        continue
                    constraint = self.parse_constraint(sub_dep)
                    found = added.get(constraint.name)
                    if found is not None and found.version == constraint.version:
                        matched += 1
                if matched == len(candidate.install_if) and candidate.name not in added:
                    dependencies.append(candidate.package)
                    added[candidate.name] = candidate.package

        return pkg, dependencies, conflicts

    def resolve_package(
        self, pkg_name: str, dq: Mapping[RepositoryPackage, str] | None = None
    ) -> list[RepositoryPackage]:
        """Return every package satisfying ``pkg_name``, best match first."""
        dq = {} if dq is None else dq
        constraint = self.parse_constraint(pkg_name)
        candidates = self.name_map.get(constraint.name)
        if candidates is None:
            raise LookupError(f"could not find package that provides {pkg_name} in indexes")
        packages = self.filter_packages(
            candidates, dq, version=constraint.version, compare=constraint.dep, prefer_pin=constraint.pin
        )
        if not packages:
            raise maybe_dq_error(pkg_name, candidates, dq)
        self.sort_packages(packages, None, constraint.name, None, None, constraint.pin)
        return [pkg.package for pkg in packages if pkg.package not in dq]

    def _resolve_package(self, pkg_name: str, dq: Disqualified) -> RepositoryPackage:
        constraint = self.parse_constraint(pkg_name)
        candidates = self.name_map.get(constraint.name)
        if candidates is None:
            raise LookupError(
                f"could not find package, alias or a package that provides {pkg_name} in indexes"
            )
        packages = self.filter_packages(
            candidates, dq, version=constraint.version, compare=constraint.dep, prefer_pin=constraint.pin
        )
        if not packages:
            raise maybe_dq_error(pkg_name, candidates, dq)
        best = self.best_package(packages, None, constraint.name, None, None, constraint.pin)
        return best.package

    def get_package_dependencies(
        self,
        pkg: RepositoryPackage,
        allow_pin: str,
        allow_self_fulfill: bool,
        parents: Mapping[str, bool] | None,
        existing: MutableMapping[str, RepositoryPackage] | None,
        existing_origins: MutableMapping[str, bool] | None,
        dq: Disqualified,
    ) -> tuple[list[RepositoryPackage], list[str]]:
        """Return the dependencies of ``pkg``, deepest first, and its conflicts.

        ``parents`` holds the names on the path to ``pkg`` and stops cycles;
        ``existing`` and ``existing_origins`` are updated as dependencies are chosen.
        """
        parents = parents or {}
        existing = {} if existing is None else existing
        existing_origins = {} if existing_origins is None else existing_origins
        if pkg.name in parents:
            return [], []

        my_provides: set[str] = set()
        for provide in pkg.provides:
            my_provides.add(provide)
            my_provides.add(self.parse_constraint(provide).name)

        constraints = list(pkg.dependencies)
        try:
            self._constrain(constraints, dq)
        except ValueError as exc:
            raise ValueError(f"constraining deps for {pkg.filename()!r}: {exc}") from exc

        dependencies: list[RepositoryPackage] = []
        conflicts: list[str] = []

        while constraints:
            options: dict[str, list[PinnedPackage]] = {}
            for dep in constraints:
                if dep.startswith("!"):
                    conflicts.append(dep[1:])
                    continue

                constraint = self.parse_constraint(dep)
                name = constraint.name
                if name in my_provides or dep in my_provides:
                    continue

                if allow_self_fulfill and pkg.name == name and self._fulfills_itself(pkg, constraint):
                    continue

                candidates = self.name_map.get(name)
                if candidates is None:
                    raise LookupError(
                        f"could not find package either named {dep} or that provides {dep} for {pkg.name}"
                    )
                pkgs = self.filter_packages(
                    candidates,
                    dq,
                    version=constraint.version,
                    compare=constraint.dep,
                    allow_pin=allow_pin,
                    installed=existing.get(name),
                )
                if not pkgs:
                    raise DepError(pkg, maybe_dq_error(dep, candidates, dq))
                options[dep] = pkgs

            if not options:
                break

            lowest = min(options, key=lambda key: (len(options[key]), key))
            constraints = [key for key in options if key != lowest]
            name = self.parse_constraint(lowest).name

            best = self.best_package(options[lowest], None, name, existing, existing_origins, "")
            if best is None:
                raise LookupError(f"could not find package for {name!r}")
            dep_pkg = best.package
            self._disqualify_conflicts(dep_pkg, dq)

            child_parents = {**parents, pkg.name: True}
            try:
                sub_deps, sub_conflicts = self.get_package_dependencies(
                    dep_pkg, allow_pin, True, child_parents, existing, existing_origins, dq
                )
            except _RESOLVE_ERRORS as exc:
                raise DepError(pkg, exc) from exc

            dependencies.extend(sub_deps)
            dependencies.append(dep_pkg)
            conflicts.extend(sub_conflicts)
            for sub in sub_deps:
                existing[sub.name] = sub
                existing_origins[sub.origin] = True

        return dependencies, conflicts

    def _fulfills_itself(self, pkg: RepositoryPackage, constraint: ParsedConstraint) -> bool:
        try:
            actual = self.parse_version(pkg.version)
            required = (
                None
                if constraint.dep is VersionDependency.ANY
                else self.parse_version(constraint.version)
            )
        except VersionError:
            return False
        return constraint.dep.satisfies(actual, required)