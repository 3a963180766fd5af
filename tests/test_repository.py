from apkit.repository import (
    ApkIndex,
    Package,
    Repository,
    RepositoryPackage,
    RepositoryWithIndex,
    new_repository_from_components,
)


def test_new_repository_from_components_builds_correct_uri():
    repo = new_repository_from_components(
        "https://dl-cdn.alpinelinux.org/alpine", "edge", "main", "x86_64"
    )
    assert repo.uri == "https://dl-cdn.alpinelinux.org/alpine/edge/main/x86_64"


def test_repository_package_returns_correct_url():
    pkg = RepositoryPackage(
        package=Package(name="test-package", version="1.2.3-r0"),
        repository=RepositoryWithIndex(
            repository=Repository(uri="https://dl-cdn.alpinelinux.org/alpine/edge/main/x86_64")
        ),
    )
    assert (
        pkg.url()
        == "https://dl-cdn.alpinelinux.org/alpine/edge/main/x86_64/test-package-1.2.3-r0.apk"
    )


def test_filename():
    assert Package(name="glibc", version="2.38-r10").filename() == "glibc-2.38-r10.apk"


def test_index_uri():
    repo = Repository(uri="https://example.com/alpine/v3.16/main")
    assert repo.index_uri() == "https://example.com/alpine/v3.16/main/APKINDEX.tar.gz"
    assert repo.with_index(ApkIndex()).index_uri() == repo.index_uri()


def test_is_remote():
    assert Repository(uri="https://example.com/main").is_remote()
    assert not Repository(uri="/var/repo/main").is_remote()


def test_repo_abbr():
    repo = Repository(uri="https://example.com/alpine/edge/main/x86_64").with_index(ApkIndex())
    assert repo.repo_abbr() == "main/x86_64"


def test_packages_wrap_index_entries():
    packages = [Package(name="a", version="1"), Package(name="b", version="2")]
    repo = Repository(uri="https://example.com/main").with_index(ApkIndex(packages=packages))
    wrapped = repo.packages()
    assert repo.count() == 2
    assert [p.name for p in wrapped] == ["a", "b"]
    assert all(p.repository is repo for p in wrapped)
    assert wrapped[1].url() == "https://example.com/main/b-2.apk"


def test_repository_package_delegates_fields():
    pkg = Package(
        name="foo",
        version="1.0",
        origin="foo-src",
        provides=["cmd:foo"],
        dependencies=["bar"],
        install_if=["baz"],
        provider_priority=10,
    )
    rp = RepositoryPackage(package=pkg)
    assert (rp.name, rp.version, rp.origin) == ("foo", "1.0", "foo-src")
    assert rp.provides == ["cmd:foo"]
    assert rp.dependencies == ["bar"]
    assert rp.install_if == ["baz"]
    assert rp.provider_priority == 10


def test_empty_index_has_no_packages():
    repo = RepositoryWithIndex(repository=Repository(uri="local"))
    assert repo.packages() == []
    assert repo.count() == 0