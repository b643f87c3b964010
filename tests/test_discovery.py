import os
import stat
from pathlib import Path

import pytest

from dirdigest.core import PathEntry, classify, discover_files
from dirdigest.errors import TraversalError
from dirdigest.rules import FilterRules

from conftest import make_file


def _discover(root: Path, **kwargs):
    rules = FilterRules.build(kwargs.pop("output", "digest.txt"), **kwargs)
    return sorted(e.rel_path for e in discover_files(root, rules))


def _classify(root: Path, max_size_kb=100, **kwargs):
    rules = FilterRules.build(kwargs.pop("output", "digest.txt"), **kwargs)
    result = classify(discover_files(root, rules), max_size_kb)
    tree = [e.rel_path for e in result.tree_files]
    content = [e.rel_path for e in result.content_files]
    return tree, content


def test_path_entry_attributes(tmp_path: Path):
    entry = PathEntry(parts=("src", "Logo.PNG"), size=12)

    assert entry.rel_path == "src/Logo.PNG"
    assert entry.extension == ".png"
    assert entry.absolute(tmp_path) == tmp_path / "src" / "Logo.PNG"
    assert PathEntry(parts=("Makefile",), size=0).extension == ""
    assert PathEntry(parts=(".env.local",), size=0).extension == ".local"


def test_nested_files_are_relative(tmp_path: Path):
    make_file(tmp_path / "src" / "lib" / "mod.rs")
    make_file(tmp_path / "README.md")

    assert _discover(tmp_path) == ["README.md", "src/lib/mod.rs"]


def test_default_ignores(tmp_path: Path):
    make_file(tmp_path / "node_modules" / "left-pad" / "index.js")
    make_file(tmp_path / "build" / "out.js")
    make_file(tmp_path / "target" / "debug" / "app")
    make_file(tmp_path / "Cargo.lock")
    make_file(tmp_path / "LICENSE")
    make_file(tmp_path / "src" / "__pycache__" / "mod.cpython-312.pyc")
    make_file(tmp_path / "src" / "main.rs")

    assert _discover(tmp_path) == ["src/main.rs"]


def test_user_excludes(tmp_path: Path):
    make_file(tmp_path / "app.py")
    make_file(tmp_path / "debug.log")
    make_file(tmp_path / "docs" / "index.md")

    assert _discover(tmp_path, exclude=["*.log", "docs/"]) == ["app.py"]


def test_include_mode(tmp_path: Path):
    make_file(tmp_path / "a.rs")
    make_file(tmp_path / "b.txt")

    tree, content = _classify(tmp_path, include=["*.rs"])

    assert tree == ["a.rs"]
    assert content == ["a.rs"]


def test_include_reaches_nested_files(tmp_path: Path):
    make_file(tmp_path / "src" / "deep" / "x.rs")
    make_file(tmp_path / "src" / "deep" / "x.txt")

    assert _discover(tmp_path, include=["*.rs"]) == ["src/deep/x.rs"]


def test_output_file_never_listed(tmp_path: Path):
    make_file(tmp_path / "digest.txt", "old digest")
    make_file(tmp_path / "main.py")

    tree, content = _classify(tmp_path, include=["*.txt", "*.py"])

    assert "digest.txt" not in tree
    assert "digest.txt" not in content
    assert tree == ["main.py"]


def test_custom_output_name_never_listed(tmp_path: Path):
    make_file(tmp_path / "snap.md")
    make_file(tmp_path / "main.py")

    assert _discover(tmp_path, output="snap.md") == ["main.py"]


def test_hidden_files_skipped_unless_included(tmp_path: Path):
    make_file(tmp_path / ".env.example")
    make_file(tmp_path / ".config" / "settings.toml")
    make_file(tmp_path / "main.py")

    assert _discover(tmp_path) == ["main.py"]
    assert _discover(tmp_path, include=[".env.example", "*.py"]) == [".env.example", "main.py"]


def test_gitignore_respected_in_repository(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    make_file(tmp_path / ".git" / "HEAD", "ref: refs/heads/main")
    make_file(tmp_path / ".gitignore", "*.log\ngenerated/\n")
    make_file(tmp_path / "run.log")
    make_file(tmp_path / "generated" / "api.py")
    make_file(tmp_path / "src" / "app.py")

    assert _discover(tmp_path) == ["src/app.py"]


def test_include_overrides_gitignore(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    make_file(tmp_path / ".gitignore", "*.log\n")
    make_file(tmp_path / "run.log")

    assert _discover(tmp_path, include=["*.log"]) == ["run.log"]


@pytest.mark.skipif(os.name != "posix", reason="Symlinks test is POSIX-only")
def test_symlinks_not_followed(tmp_path: Path):
    real = make_file(tmp_path / "real" / "file.txt")
    (tmp_path / "link.txt").symlink_to(real)
    (tmp_path / "linkdir").symlink_to(tmp_path / "real", target_is_directory=True)

    assert _discover(tmp_path) == ["real/file.txt"]


@pytest.mark.skipif(os.name != "posix", reason="FIFO test is POSIX-only")
def test_non_regular_files_skipped(tmp_path: Path):
    os.mkfifo(tmp_path / "pipe")
    make_file(tmp_path / "a.txt")

    assert _discover(tmp_path) == ["a.txt"]


def test_excluded_extension_is_tree_only(tmp_path: Path, capsys):
    make_file(tmp_path / "logo.PNG", b"\x89PNG")
    make_file(tmp_path / "app.js", "console.log(1)")

    tree, content = _classify(tmp_path)

    assert tree == ["app.js", "logo.PNG"]
    assert content == ["app.js"]
    assert "Skipping content for excluded extension: logo.PNG" in capsys.readouterr().out


def test_file_without_extension_not_blocked(tmp_path: Path):
    make_file(tmp_path / "Makefile", "all:")

    tree, content = _classify(tmp_path)

    assert content == ["Makefile"]


def test_size_threshold_is_inclusive(tmp_path: Path, capsys):
    make_file(tmp_path / "exact.txt", "a" * 1024)
    make_file(tmp_path / "over.txt", "a" * 1025)

    tree, content = _classify(tmp_path, max_size_kb=1)

    assert tree == ["exact.txt", "over.txt"]
    assert content == ["exact.txt"]
    assert "Skipping content for large file: over.txt (>1KB)" in capsys.readouterr().out


def test_content_is_subset_of_tree(tmp_path: Path):
    make_file(tmp_path / "a.py", "x = 1")
    make_file(tmp_path / "b.zip", b"PK")
    make_file(tmp_path / "c" / "big.txt", "z" * 3000)
    make_file(tmp_path / "c" / "small.txt", "z")

    tree, content = _classify(tmp_path, max_size_kb=2)

    assert set(content) <= set(tree)
    assert tree == sorted(tree)
    assert content == ["a.py", "c/small.txt"]


def test_listings_sorted_by_string(tmp_path: Path):
    make_file(tmp_path / "a-b" / "x.txt")
    make_file(tmp_path / "a" / "b.txt")
    make_file(tmp_path / "B.txt")

    tree, _ = _classify(tmp_path)

    assert tree == ["B.txt", "a-b/x.txt", "a/b.txt"]


@pytest.mark.skipif(
    os.name != "posix" or os.geteuid() == 0,
    reason="Permission bits test needs a non-root POSIX user",
)
def test_unreadable_directory_is_fatal(tmp_path: Path):
    locked = tmp_path / "locked"
    make_file(locked / "inner.txt")
    locked.chmod(0)
    try:
        with pytest.raises(TraversalError) as info:
            _discover(tmp_path)
        assert "locked" in str(info.value)
    finally:
        locked.chmod(stat.S_IRWXU)


def test_brace_include(tmp_path: Path):
    make_file(tmp_path / "a.rs")
    make_file(tmp_path / "Cargo.toml")
    make_file(tmp_path / "b.txt")

    assert _discover(tmp_path, include=["*.{rs,toml}"]) == ["Cargo.toml", "a.rs"]


def test_root_ignore_file_beats_nested_gitignore(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    make_file(tmp_path / ".ignore", "*.md\n")
    make_file(tmp_path / "docs" / ".gitignore", "!README.md\n")
    make_file(tmp_path / "docs" / "README.md")
    make_file(tmp_path / "a.py")

    assert _discover(tmp_path) == ["a.py"]


def test_inaccessible_directory_is_traversal_error(tmp_path: Path, monkeypatch):
    locked = tmp_path / "locked"
    make_file(locked / "inner.txt")
    real_is_file = Path.is_file

    def is_file(self):
        if self.parent == locked:
            raise PermissionError(13, "Permission denied", str(self))
        return real_is_file(self)

    monkeypatch.setattr(Path, "is_file", is_file)

    with pytest.raises(TraversalError) as info:
        _discover(tmp_path)
    assert "locked" in str(info.value)
