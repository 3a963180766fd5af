import pytest

from apkit.world import get_repositories, get_world, set_repositories, set_world


@pytest.fixture
def root(tmp_path):
    (tmp_path / "etc" / "apk").mkdir(parents=True)
    return tmp_path


def test_get_world(root):
    packages = ["package1", "package2", "package3"]
    (root / "etc" / "apk" / "world").write_text("\n".join(packages))
    assert " ".join(get_world(root)) == " ".join(packages)


def test_set_world_sorts_and_terminates(root):
    set_world(root, ["zlib", "busybox", "musl"])
    assert (root / "etc" / "apk" / "world").read_text() == "busybox\nmusl\nzlib\n"
    assert get_world(root) == ["busybox", "musl", "zlib"]


def test_set_world_does_not_mutate_input(root):
    packages = ["b", "a"]
    set_world(root, packages)
    assert packages == ["b", "a"]


def test_set_world_needs_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        set_world(tmp_path, ["a"])


def test_get_world_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_world(tmp_path)


def test_repositories_round_trip(root):
    repos = ["https://example.com/alpine/v3.16/main", "@testing https://example.com/testing"]
    set_repositories(root, repos)
    assert get_repositories(root) == repos
    assert (root / "etc" / "apk" / "repositories").read_text().endswith("\n")


def test_get_repositories_line_handling(root):
    (root / "etc" / "apk" / "repositories").write_bytes(b"a\r\nb\n\nc")
    assert get_repositories(root) == ["a", "b", "", "c"]


def test_set_repositories_requires_one(root):
    with pytest.raises(ValueError):
        set_repositories(root, [])