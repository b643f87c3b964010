"""
Core logic for dirdigest: discover -> classify -> render -> write.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from colorama import Fore, Style

from .errors import ConfigError, OutputError, TraversalError
from .rules import (
    DEFAULT_EXCLUDED_EXTENSIONS,
    FilterRules,
    Match,
    StandardFilters,
    is_hidden,
)
from .tree import render_tree

SEPARATOR = "=" * 60
DEFAULT_MAX_SIZE_KB = 100
DEFAULT_OUTPUT = "digest.txt"


def _echo(msg: str, color: Optional[str] = None) -> None:
    if color:
        print(color + msg + Style.RESET_ALL)
    else:
        print(msg)


# Data model

@dataclass(frozen=True)
class PathEntry:
    """A discovered regular file, relative to the canonical root."""

    parts: Tuple[str, ...]
    size: int

    @property
    def rel_path(self) -> str:
        return "/".join(self.parts)

    @property
    def extension(self) -> str:
        return Path(self.parts[-1]).suffix.lower()

    def absolute(self, root: Path) -> Path:
        return root.joinpath(*self.parts)


@dataclass
class Classification:
    tree_files: List[PathEntry] = field(default_factory=list)
    content_files: List[PathEntry] = field(default_factory=list)


@dataclass
class Digest:
    tree: str
    blocks: List[str]

    def render(self) -> str:
        return (
            "Directory structure:\n"
            + self.tree
            + "\n"
            + "\n\nFiles Content:\n\n"
            + "".join(self.blocks)
        )


def _sort_key(entry: PathEntry) -> str:
    return entry.rel_path


# Root handling

def resolve_root(path: Union[str, Path]) -> Path:
    path = Path(path)
    try:
        root = path.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise ConfigError(f"Failed to find or access path: {path}: {e}") from e
    if not root.is_dir():
        raise ConfigError(f"Provided path '{root}' is not a directory.")
    return root


# File discovery

def _accepts(
    path: Path,
    rel: str,
    is_dir: bool,
    rules: FilterRules,
    filters: StandardFilters,
) -> bool:
    verdict = rules.match(rel, is_dir=is_dir)
    if verdict is Match.IGNORE:
        return False
    if verdict is Match.WHITELIST:
        return True
    if is_hidden(path.name):
        return False
    return not filters.is_ignored(path, is_dir)


def _walk(
    directory: Path,
    parts: Tuple[str, ...],
    rules: FilterRules,
    filters: StandardFilters,
) -> Iterator[PathEntry]:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        raise TraversalError(
            f"Failed to process a directory entry '{directory}': {e}"
        ) from e
    filters = filters.descend(directory)

    for entry in entries:
        path = Path(entry.path)
        rel_parts = parts + (entry.name,)
        try:
            if entry.is_symlink():
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = not is_dir and entry.is_file(follow_symlinks=False)
        except OSError as e:
            raise TraversalError(f"Failed to process a directory entry '{path}': {e}") from e

        if not (is_dir or is_file):
            continue
        if not _accepts(path, "/".join(rel_parts), is_dir, rules, filters):
            continue

        if is_dir:
            yield from _walk(path, rel_parts, rules, filters)
            continue

        try:
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            raise TraversalError(f"Could not read metadata of '{path}': {e}") from e
        yield PathEntry(parts=rel_parts, size=size)


def discover_files(root: Path, rules: FilterRules) -> Iterator[PathEntry]:
    """Yield every regular file under *root* that survives *rules*, unordered."""
    yield from _walk(root, (), rules, StandardFilters.for_root(root))


# Classification

def classify(
    entries: Iterable[PathEntry],
    max_size_kb: int = DEFAULT_MAX_SIZE_KB,
) -> Classification:
    result = Classification()
    max_size_bytes = max_size_kb * 1024

    for entry in entries:
        result.tree_files.append(entry)

        if entry.extension in DEFAULT_EXCLUDED_EXTENSIONS:
            _echo(
                f"  -> Skipping content for excluded extension: {entry.rel_path}",
                Fore.YELLOW,
            )
            continue
        if entry.size > max_size_bytes:
            _echo(
                f"  -> Skipping content for large file: {entry.rel_path} (>{max_size_kb}KB)",
                Fore.YELLOW,
            )
            continue
        result.content_files.append(entry)

    result.tree_files.sort(key=_sort_key)
    result.content_files.sort(key=_sort_key)
    return result


# Rendering

def render_file_block(root: Path, entry: PathEntry) -> str:
    try:
        text = entry.absolute(root).read_bytes().decode("utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        text = f"[Could not read file: {e}]"
    return f"{SEPARATOR}\nFILE: {entry.rel_path}\n{SEPARATOR}\n{text}\n\n\n"


def render_content(root: Path, entries: Sequence[PathEntry]) -> List[str]:
    return [render_file_block(root, entry) for entry in sorted(entries, key=_sort_key)]


def root_label(root: Path) -> str:
    return root.name or str(root)


# Output

def write_digest(out_path: Path, digest: Digest) -> None:
    """Create (or overwrite) *out_path* and write *digest* into it."""
    out_dir = out_path.parent
    if not out_dir.exists():
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create output directory '{out_dir}': {e}") from e

    try:
        with out_path.open("w", encoding="utf-8", newline="\n") as out_fh:
            out_fh.write(digest.render())
    except OSError as e:
        raise OutputError(f"Failed to create output file '{out_path}': {e}") from e


# Pipeline

def build_digest(
    root: Union[str, Path] = ".",
    output: str = DEFAULT_OUTPUT,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    max_size_kb: int = DEFAULT_MAX_SIZE_KB,
) -> Optional[Path]:
    """
    Run the whole pipeline and return the path of the written digest.

    Returns ``None`` when nothing under *root* survives filtering; no output
    file is created in that case.
    """
    if max_size_kb < 0:
        raise ConfigError(f"Maximum size must not be negative: {max_size_kb}")

    root = resolve_root(root)
    rules = FilterRules.build(output, include=include, exclude=exclude)

    _echo("Discovering files...")
    result = classify(discover_files(root, rules), max_size_kb)
    _echo(
        f"Found {len(result.tree_files)} files for tree, "
        f"{len(result.content_files)} files for content."
    )

    if not result.tree_files:
        _echo("No files to include based on current criteria. Exiting.")
        return None

    _echo("Generating directory tree...")
    tree = render_tree(root_label(root), (e.parts for e in result.tree_files))

    _echo(f"Reading and concatenating {len(result.content_files)} files...")
    blocks = render_content(root, result.content_files)

    _echo(f"Writing output to {output}...")
    out_path = Path(output)
    write_digest(out_path, Digest(tree=tree, blocks=blocks))

    _echo(f"All done. Digest saved to {output}", Fore.GREEN)
    return out_path
