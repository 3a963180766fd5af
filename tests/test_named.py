import pytest

from apkit.named import (
    ConstraintError,
    DepError,
    DisqualifiedError,
    NamedIndex,
    NamedRepositoryWithIndex,
    PinnedPackage,
    index_names,
    maybe_dq_error,
)
from apkit.repository import ApkIndex, Package, Repository, RepositoryPackage


def _repo():
    return Repository(uri="https://example.com/alpine/main/x86_64").with_index(
        ApkIndex(packages=[Package(name="a", version="1.0"), Package(name="b", version="2.0")])
    )


def test_named_repository_without_repo_is_empty():
    named = NamedRepositoryWithIndex("edge", None)
    assert named.count() == 0
    assert named.packages() == []
    assert named.source() == ""


def test_named_repository_delegates_to_repo():
    repo = _repo()
    named = NamedRepositoryWithIndex("edge", repo)
    assert named.name == "edge"
    assert named.count() == 2
    assert [p.name for p in named.packages()] == ["a", "b"]
    assert named.source() == repo.index_uri()
    assert named.source().endswith("/APKINDEX.tar.gz")


def test_named_repository_satisfies_protocol():
    named = NamedRepositoryWithIndex("main", _repo())
    assert isinstance(named, NamedIndex) is True
    index: NamedIndex = named
    assert index.name == "main"
    assert index.count() == 2
    assert [p.version for p in index.packages()] == ["1.0", "2.0"]


def test_index_names_lists_sources_in_order():
    repo = _repo()
    indexes = [NamedRepositoryWithIndex("x", repo), NamedRepositoryWithIndex("y", None)]
    assert index_names(indexes) == [repo.index_uri(), ""]


def test_pinned_package_delegates():
    repo = _repo()
    rp = repo.packages()[0]
    rp.package.provides = ["cmd:a"]
    pinned = PinnedPackage(rp, "edge")
    assert pinned.name == "a"
    assert pinned.version == "1.0"
    assert pinned.provides == ["cmd:a"]
    assert pinned.filename() == rp.filename()
    assert pinned.url() == rp.url()
    assert pinned.pinned_name == "edge"


def test_constraint_error_message():
    wrapped = ValueError("boom")
    err = ConstraintError("foo", wrapped)
    assert str(err) == 'solving "foo" constraint: boom'
    assert err.wrapped is wrapped
    assert err.constraint == "foo"


def test_constraint_error_escapes_quotes():
    err = ConstraintError('a"b', ValueError("x"))
    assert '"a\\"b"' in str(err)


def test_dep_error_message():
    pkg = RepositoryPackage(Package(name="glibc", version="2.38-r10"))
    err = DepError(pkg, ValueError("boom"))
    assert str(err) == f'resolving "{pkg.filename()}" deps:\nboom'
    assert err.package is pkg


def test_disqualified_error_message():
    pkg = RepositoryPackage(Package(name="musl", version="1.0"))
    err = DisqualifiedError(pkg, Exception("excluded"))
    assert str(err) == f"  {pkg.filename()} disqualified because excluded"


def test_maybe_dq_error_without_disqualified():
    pkgs = [PinnedPackage(RepositoryPackage(Package(name="foo", version="1")))]
    err = maybe_dq_error("foo", pkgs, {})
    assert isinstance(err, LookupError)
    assert "could not find constraint" in str(err)
    assert '"foo"' in str(err)


def test_maybe_dq_error_lists_disqualified():
    first = RepositoryPackage(Package(name="foo", version="1"))
    second = RepositoryPackage(Package(name="foo", version="2"))
    third = RepositoryPackage(Package(name="foo", version="3"))
    pkgs = [PinnedPackage(first), PinnedPackage(second), PinnedPackage(third)]
    dq = {first: "reason one", third: "reason three"}
    err = maybe_dq_error("foo>0", pkgs, dq)
    assert isinstance(err, ConstraintError)
    assert err.constraint == "foo>0"
    text = str(err)
    assert "reason one" in text
    assert "reason three" in text
    assert second.filename() not in text
    assert text.count("disqualified because") == 2


def test_maybe_dq_error_can_be_raised():
    pkg = RepositoryPackage(Package(name="foo", version="1"))
    with pytest.raises(ConstraintError) as excinfo:
        raise maybe_dq_error("foo", [PinnedPackage(pkg)], {pkg: "nope"})
    assert excinfo.value.constraint == "foo"
    assert "nope" in str(excinfo.value)
    assert f"{pkg.filename()} disqualified because nope" in str(excinfo.value)