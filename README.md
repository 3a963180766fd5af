# apkit

Tools for working with Alpine APK packages and repositories, in plain Python
with no third-party dependencies.

## What it does

- **Versions** (`apkit.version`): `parse_version` turns an APK version string
  such as `1.2.3b_rc1_p2-r4` into a `Version`, raising `VersionError` when it
  is malformed. `compare_versions` returns `1`, `0` or `-1`; `Version` objects
  also support `<`, `>` and the like. `resolve_package_name_version_pin`
  splits a dependency string such as `name>=1.2.3@edge` into a
  `ParsedConstraint` with `name`, `version`, `dep` (a `VersionDependency`)
  and `pin`. `VersionDependency.satisfies` checks a version against an
  operator, with `~` meaning "falls within this version prefix".
- **Repositories** (`apkit.repository`): `Package`, `ApkIndex`,
  `Repository`, `RepositoryWithIndex` and `RepositoryPackage`.
  `new_repository_from_components(base_uri, release, repo, arch)` builds a
  repository URI; `RepositoryPackage.url()` gives the full URL of a package
  archive and `filename()` its `name-version.apk` name.
- **Named indexes** (`apkit.named`): `NamedRepositoryWithIndex` gives an
  index a name used for pinning (`pkg@name`). The errors raised while
  resolving, `ConstraintError` and `DepError`, live here too; when candidates
  were ruled out, the message lists each one as a `DisqualifiedError`.
- **Choosing among candidates** (`apkit.selection`): `PackageSelector`
  filters candidate packages by version, pin and what is already installed,
  and ranks them (`sort_packages`, `best_package`).
- **Resolving dependencies** (`apkit.resolver`): `PkgResolver` takes a list
  of named indexes and works out which packages to install, in install order,
  honouring version constraints, pins, provides, provider priority,
  conflicts (`!name`) and `install_if` rules.
- **Root configuration** (`apkit.world`): `get_world` / `set_world` and
  `get_repositories` / `set_repositories` read and write `etc/apk/world` and
  `etc/apk/repositories` under a root directory. The world file is written
  sorted; `set_repositories` refuses an empty list.
- **Package files**: `apkit.resolveapk.resolve_apk(stream)` reports the sizes
  and SHA-1 hashes of the signature and control gzip segments of an `.apk`,
  and the data size and hash recorded in its `.PKGINFO`.
  `apkit.expandapk.expand_apk(stream, cache_dir)` splits an `.apk` into its
  signature, control and data segments in a temporary directory, writes the
  uncompressed data tarball and verifies each file's SHA-1 against the
  checksum in its tar PAX header (`apkit.checksum.checksum_from_header`).
  Close the returned `ApkExpanded` (or use it in a `with` block) to remove
  the files.
- **Resumable downloads** (`apkit.transport`): `RangeRetryTransport` wraps a
  client — any callable taking a `Request` and returning a `Response` whose
  `body` has `read(size)` and `close()` — so that a body read that fails with
  `OSError` is resumed up to twice with an HTTP `Range` request.

## Install

```
pip install apkit
```

## Example

```python
from apkit.named import NamedRepositoryWithIndex
from apkit.repository import ApkIndex, Package, Repository
from apkit.resolver import PkgResolver

index = Repository("https://example.com/alpine/edge/main/x86_64").with_index(
    ApkIndex(packages=[
        Package(name="app", version="1.0-r0", dependencies=["libfoo>=2"]),
        Package(name="libfoo", version="2.1-r0"),
    ])
)
resolver = PkgResolver([NamedRepositoryWithIndex("", index)])
to_install, conflicts = resolver.get_packages_with_dependencies(["app"])
print([p.filename() for p in to_install])
# ['libfoo-2.1-r0.apk', 'app-1.0-r0.apk']
```

When a request cannot be solved, the resolver raises `ConstraintError` or
`DepError` from `apkit.named`, or a `LookupError` when a name is not found in
any index. Invalid versions raise `apkit.version.VersionError`.

## What it does not do

- It does not download or parse APKINDEX files: indexes are built in code
  from `Package` and `ApkIndex` objects.
- It does not verify package or index signatures; `expand_apk` only checks
  per-file checksums in the data segment.
- It does not install packages into a root, and it has no command-line tool.
- `RangeRetryTransport` makes no network connections itself; it uses the
  client callable it is given.

## Tests

```
pip install -e .[test]
pytest
```