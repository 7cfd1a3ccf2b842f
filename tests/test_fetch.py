"""
tests/test_fetch.py — Fetcher tests.
"""

import io
import os
import sys
import shutil
import tarfile
import tempfile
import pytest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from _fakes import FakeFetcher, git, make_tree
from mosaic.errors import FetchError
from mosaic.fetch.base import FetchedTree
from mosaic.fetch.local import (
    DEFAULT_IGNORED, LocalFetcher, compute_file_digest, compute_tree_hash,
)
from mosaic.fetch.registry import FetcherRegistry
from mosaic.graph.source import ArchiveSource, PathSource, TarballSource


def _tarball(dest: Path, files: dict[str, str], top: str | None = "lib-1.0") -> Path:
    with tarfile.open(dest, "w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{top}/{name}" if top else name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return dest


class TestFetchedTree:
    def test_out_path(self):
        assert FetchedTree(path=Path("/t")).out_path == Path("/t")
        assert FetchedTree(path=Path("/t"), subdir="a/b").out_path == Path("/t/a/b")

    def test_as_dict(self):
        tree = FetchedTree(path=Path("/t"), revision="r1", content_hash="sha256:x", subdir="s")
        assert tree.as_dict() == {
            "out_path": "/t/s", "tree": "/t", "subdir": "s",
            "rev": "r1", "hash": "sha256:x",
        }


# ─── Hashing ─────────────────────────────────────────────────

class TestTreeHash:
    def setup_method(self):
        self.tree = make_tree({"a.txt": "a", "sub/b.txt": "b"})

    def teardown_method(self):
        shutil.rmtree(self.tree)

    def test_stable(self):
        assert compute_tree_hash(self.tree) == compute_tree_hash(self.tree)
        assert compute_tree_hash(self.tree).startswith("sha256:")

    def test_content_change(self):
        before = compute_tree_hash(self.tree)
        (self.tree / "a.txt").write_text("changed")
        assert compute_tree_hash(self.tree) != before

    def test_rename_changes_hash(self):
        before = compute_tree_hash(self.tree)
        (self.tree / "a.txt").rename(self.tree / "c.txt")
        assert compute_tree_hash(self.tree) != before

    def test_ignores_state_dirs(self):
        before = compute_tree_hash(self.tree)
        (self.tree / ".git").mkdir()
        (self.tree / ".git" / "HEAD").write_text("ref")
        (self.tree / ".mosaic").mkdir()
        (self.tree / ".mosaic" / "local.json").write_text("{}")
        assert compute_tree_hash(self.tree) == before

    def test_ignores_environments_and_vendored_deps(self):
        before = compute_tree_hash(self.tree)
        for name in (".venv", "node_modules", ".direnv", ".tox"):
            (self.tree / name / "lib").mkdir(parents=True)
            (self.tree / name / "lib" / "big.bin").write_text("x")
        (self.tree / "sub" / "node_modules").mkdir()
        (self.tree / "sub" / "node_modules" / "dep.js").write_text("x")
        assert compute_tree_hash(self.tree) == before

    def test_custom_ignore(self):
        before = compute_tree_hash(self.tree)
        (self.tree / "dist").mkdir()
        (self.tree / "dist" / "pkg.whl").write_text("x")
        assert compute_tree_hash(self.tree) != before
        assert compute_tree_hash(self.tree, ignore=DEFAULT_IGNORED | {"dist"}) == before


# ─── LocalFetcher ────────────────────────────────────────────

class TestLocalFetcher:
    def setup_method(self):
        self.base = Path(tempfile.mkdtemp())
        self.cache = Path(tempfile.mkdtemp())
        (self.base / "lib").mkdir()
        (self.base / "lib" / "project.yaml").write_text("outputs: {}\n")
        self.fetcher = LocalFetcher(base_dir=self.base, cache_dir=self.cache)

    def teardown_method(self):
        shutil.rmtree(self.base)
        shutil.rmtree(self.cache)

    def test_path_relative_to_base(self):
        tree = self.fetcher.fetch(PathSource(path="lib", dir="sub"))
        assert tree.path == self.base / "lib"
        assert tree.out_path == self.base / "lib" / "sub"
        assert tree.content_hash == compute_tree_hash(self.base / "lib")
        assert tree.revision is None

    def test_path_missing(self):
        with pytest.raises(FetchError, match="Path source not found"):
            self.fetcher.fetch(PathSource(path="nope"))

    def test_tarball(self):
        archive = _tarball(self.base / "lib.tar.gz", {"project.yaml": "outputs: {}\n"})
        digest = compute_file_digest(archive)
        tree = self.fetcher.fetch(TarballSource(url=f"file://{archive}", content_hash=digest))
        assert tree.path.name == "lib-1.0"
        assert (tree.path / "project.yaml").is_file()
        assert tree.content_hash == digest
        assert self.cache in tree.path.parents

    def test_tarball_without_top_dir(self):
        _tarball(self.base / "flat.tar.gz", {"a": "1", "b": "2"}, top=None)
        tree = self.fetcher.fetch(TarballSource(url="flat.tar.gz"))
        assert sorted(p.name for p in tree.path.iterdir()) == ["a", "b"]

    def test_tarball_hash_mismatch(self):
        archive = _tarball(self.base / "lib.tar.gz", {"x": "1"})
        with pytest.raises(FetchError, match="Hash mismatch"):
            self.fetcher.fetch(TarballSource(url=str(archive), content_hash="sha256:00"))

    def test_tarball_remote(self):
        with pytest.raises(FetchError, match="Remote tarball not supported"):
            self.fetcher.fetch(TarballSource(url="https://example.com/x.tar.gz"))

    def test_tarball_missing(self):
        with pytest.raises(FetchError, match="Tarball not found"):
            self.fetcher.fetch(TarballSource(url="missing.tar.gz"))

    def test_tarball_broken_is_not_cached(self):
        archive = _tarball(self.base / "bad.tar.gz", {"pkg/a.txt": "a", "../evil.txt": "x"}, top=None)
        src = TarballSource(url=str(archive))
        for _ in range(2):
            with pytest.raises(FetchError, match="Cannot unpack"):
                self.fetcher.fetch(src)
        assert list(self.cache.iterdir()) == []

    def test_tarball_unpacked_once(self):
        archive = _tarball(self.base / "lib.tar.gz", {"project.yaml": "outputs: {}\n"})
        first = self.fetcher.fetch(TarballSource(url=str(archive)))
        (first.path / "marker").write_text("kept")
        second = self.fetcher.fetch(TarballSource(url=str(archive)))
        assert second.path == first.path
        assert (second.path / "marker").is_file()
        assert [p.name for p in self.cache.iterdir()] == [first.path.parent.name]

    def test_path_hash_uses_ignore_set(self):
        (self.base / "lib" / "build").mkdir()
        (self.base / "lib" / "build" / "out.o").write_text("1")
        fetcher = LocalFetcher(base_dir=self.base, cache_dir=self.cache, ignore={"build"})
        before = fetcher.fetch(PathSource(path="lib")).content_hash
        (self.base / "lib" / "build" / "out.o").write_text("2")
        assert fetcher.fetch(PathSource(path="lib")).content_hash == before
        assert self.fetcher.fetch(PathSource(path="lib")).content_hash != before

    def test_unsupported_kind(self):
        with pytest.raises(FetchError, match="cannot fetch 'git'"):
            self.fetcher.fetch(git("R1"))


class TestRegistry:
    def setup_method(self):
        self.base = make_tree({"lib/README": "x"})

    def teardown_method(self):
        shutil.rmtree(self.base)

    def test_default_kinds(self):
        registry = FetcherRegistry.default(base_dir=self.base, discover=False)
        assert registry.kinds() == ["path", "tarball"]

    def test_dispatch(self):
        git_trees = FakeFetcher({"R1": self.base})
        registry = FetcherRegistry.default(base_dir=self.base, discover=False)
        registry.register("git", git_trees)

        assert registry.fetch(git("R1")).revision == "R1"
        assert registry.fetch(PathSource(path="lib")).path == self.base / "lib"
        assert len(git_trees.calls) == 1

    def test_default_ignore_set(self):
        registry = FetcherRegistry.default(base_dir=self.base, discover=False, ignore={"README"})
        tree = registry.fetch(PathSource(path="lib"))
        assert tree.content_hash == compute_tree_hash(self.base / "lib", ignore={"README"})
        assert tree.content_hash != compute_tree_hash(self.base / "lib")

    def test_no_fetcher(self):
        registry = FetcherRegistry()
        with pytest.raises(FetchError, match="No fetcher registered for 'archive'") as exc:
            registry.fetch(ArchiveSource(host="github", owner="o", repo="r"))
        assert "mosaic.fetchers" in exc.value.hint

    def test_discover_without_plugins(self):
        registry = FetcherRegistry.default(base_dir=self.base)
        assert {"path", "tarball"} <= set(registry.kinds())
