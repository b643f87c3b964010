"""
Filter rules for dirdigest.

Two layers decide whether a path under the root is discovered:

* the override list (``FilterRules``): built-in defaults, the output file and
  the user's ``--include`` / ``--exclude`` globs, where any exclude wins;
* the standard ignore layer (``StandardFilters``): ``.ignore`` files and, inside
  a git repository, ``.gitignore``, ``.git/info/exclude`` and the global git
  ignore file.

Both use gitignore wildmatch syntax compiled by ``pathspec``.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

import pathspec
import pathspec.util

from .errors import PatternError, TraversalError

# Defaults
DEFAULT_IGNORED_DIRS: Tuple[str, ...] = (
    ".git/", ".github/", ".vscode/", ".idea/", "venv/", ".env/", "node_modules/",
    ".next/", "out/", "__pycache__/", "target/", "pkg/", "build/", "dist/", "coverage/",
)

DEFAULT_IGNORED_FILES: Tuple[str, ...] = (
    "pnpm-lock.yaml", "package-lock.json", "yarn.lock", "Cargo.lock",
    ".tsbuildinfo", ".DS_Store", "components.json", "biome.json", "next-env.d.ts",
    ".gitignore", ".prettierrc.json", "LICENSE", ".nvmrc", ".npmrc",
    ".eslintrc.json", ".prettierignore", "vercel.json",
)

DEFAULT_EXCLUDED_EXTENSIONS: FrozenSet[str] = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svg",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    ".zip", ".gz", ".tar", ".rar", ".7z", ".pack",
    ".wasm", ".dll", ".exe", ".so", ".a", ".lib", ".bin", ".o", ".pdf",
})


def _pattern_syntax() -> str:
    # pathspec 1.x renamed the gitignore wildmatch factory
    try:
        pathspec.util.lookup_pattern("gitignore")
    except KeyError:
        return "gitwildmatch"
    return "gitignore"


_SYNTAX = _pattern_syntax()


class Match(enum.Enum):
    NONE = "none"
    IGNORE = "ignore"
    WHITELIST = "whitelist"


# Glob compilation

def _class_end(glob: str, start: int) -> int:
    """Return the index just past the ``]`` closing the class at *start*, or -1."""
    # ']' directly after '[' or '[!' is a literal member of the class
    j = start + 1
    if j < len(glob) and glob[j] in "!^":
        j += 1
    if j < len(glob) and glob[j] == "]":
        j += 1
    close = glob.find("]", j)
    return -1 if close == -1 else close + 1


def _check_glob(glob: str) -> None:
    """Reject globs that are syntactically broken."""
    if not glob.strip():
        raise PatternError(f"Invalid glob pattern {glob!r}: pattern is empty")

    depth = 0
    i = 0
    while i < len(glob):
        ch = glob[i]
        if ch == "\\":
            if i + 1 == len(glob):
                raise PatternError(f"Invalid glob pattern {glob!r}: dangling '\\'")
            i += 2
            continue
        if ch == "[":
            end = _class_end(glob, i)
            if end == -1:
                raise PatternError(
                    f"Invalid glob pattern {glob!r}: unclosed character class"
                )
            i = end
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise PatternError(
                    f"Invalid glob pattern {glob!r}: unopened alternate group"
                )
        i += 1

    if depth:
        raise PatternError(f"Invalid glob pattern {glob!r}: unclosed alternate group")


def _expand_braces(glob: str) -> List[str]:
    """
    Expand ``{a,b}`` alternation, which gitignore wildmatch does not know.

    ``*.{rs,toml}`` becomes ``["*.rs", "*.toml"]``; groups may nest. The glob
    must already have passed ``_check_glob``.
    """
    i = 0
    while i < len(glob):
        ch = glob[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            i = _class_end(glob, i)
            continue
        if ch == "{":
            break
        i += 1
    else:
        return [glob]

    open_at = i
    alternatives: List[str] = []
    depth = 0
    part_start = open_at + 1
    i = open_at + 1
    while True:
        ch = glob[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            i = _class_end(glob, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                break
            depth -= 1
        elif ch == "," and depth == 0:
            alternatives.append(glob[part_start:i])
            part_start = i + 1
        i += 1
    alternatives.append(glob[part_start:i])

    prefix, suffix = glob[:open_at], glob[i + 1:]
    expanded: List[str] = []
    for alternative in alternatives:
        expanded.extend(_expand_braces(prefix + alternative + suffix))
    return expanded


def _compile(glob: str) -> pathspec.PathSpec:
    _check_glob(glob)
    try:
        return pathspec.PathSpec.from_lines(_SYNTAX, _expand_braces(glob))
    except ValueError as e:
        raise PatternError(f"Invalid glob pattern {glob!r}: {e}") from e


def _last_match(patterns: Sequence, rel: str) -> Optional[bool]:
    """
    Return the verdict of the last pattern matching *rel*.

    ``True`` means ignored, ``False`` means re-included by a ``!`` pattern,
    ``None`` means no pattern matched.
    """
    verdict = None
    for pattern in patterns:
        if pattern.include is not None and pattern.match_file(rel):
            verdict = pattern.include
    return verdict


# Override list

class FilterRules:
    """
    Compiled override list.

    *overrides* uses the ripgrep convention: ``!glob`` excludes, a bare glob
    includes. Unlike a plain last-match-wins list, an exclude always beats an
    include, and once any include exists a file has to match one of them.
    """

    def __init__(self, overrides: Iterable[str]) -> None:
        self.overrides: List[str] = list(overrides)
        self._excludes: List[pathspec.PathSpec] = []
        self._includes: List[pathspec.PathSpec] = []
        for raw in self.overrides:
            if raw.startswith("!"):
                self._excludes.append(_compile(raw[1:]))
            else:
                self._includes.append(_compile(raw))

    @classmethod
    def build(
        cls,
        output_name: str,
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
    ) -> "FilterRules":
        overrides = [f"!{p}" for p in DEFAULT_IGNORED_DIRS + DEFAULT_IGNORED_FILES]
        overrides.append(f"!{output_name}")
        overrides.extend(f"!{p}" for p in exclude)
        overrides.extend(include)
        return cls(overrides)

    @property
    def has_includes(self) -> bool:
        return bool(self._includes)

    def match(self, rel: str, is_dir: bool = False) -> Match:
        if is_dir:
            rel = rel.rstrip("/") + "/"
        if any(spec.match_file(rel) for spec in self._excludes):
            return Match.IGNORE
        if any(spec.match_file(rel) for spec in self._includes):
            return Match.WHITELIST
        if self._includes and not is_dir:
            return Match.IGNORE
        return Match.NONE


# Standard ignore layer

# Precedence between kinds of ignore file. Within one kind the deepest file
# wins, but any ``.ignore`` match beats every ``.gitignore`` match.
IGNORE_KINDS: Tuple[str, ...] = ("ignore", "gitignore", "exclude", "global")


@dataclass(frozen=True)
class IgnoreFile:
    """Patterns from one ignore file, matched relative to *base*."""

    base: Path
    source: Path
    kind: str
    patterns: Tuple

    def verdict(self, path: Path, is_dir: bool) -> Optional[bool]:
        rel = path.relative_to(self.base).as_posix()
        if is_dir:
            rel += "/"
        return _last_match(self.patterns, rel)


def _read_ignore_file(source: Path, base: Path, kind: str) -> Optional[IgnoreFile]:
    try:
        if not source.is_file():
            return None
        with source.open("r", encoding="utf-8") as fh:
            lines = [line.rstrip("\n") for line in fh]
    except (OSError, UnicodeDecodeError) as e:
        raise TraversalError(f"Could not read ignore file '{source}': {e}") from e
    spec = pathspec.PathSpec.from_lines(_SYNTAX, lines)
    return IgnoreFile(base=base, source=source, kind=kind, patterns=tuple(spec.patterns))


def find_git_top(root: Path) -> Optional[Path]:
    """Return the nearest directory at or above *root* holding ``.git``."""
    for candidate in (root, *root.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


def global_ignore_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "git" / "ignore"


def _read_global_ignore(git_top: Path) -> Optional[IgnoreFile]:
    # an unreadable global file only affects this user's preferences
    try:
        return _read_ignore_file(global_ignore_path(), git_top, "global")
    except TraversalError:
        return None


@dataclass(frozen=True)
class StandardFilters:
    """
    Ignore files in effect for one directory, shallowest first.

    ``descend`` returns a new instance for a child directory; instances are
    never mutated.
    """

    git_top: Optional[Path] = None
    files: Tuple[IgnoreFile, ...] = ()

    @classmethod
    def for_root(cls, root: Path) -> "StandardFilters":
        git_top = find_git_top(root)
        files: List[IgnoreFile] = []
        if git_top is not None:
            for found in (
                _read_global_ignore(git_top),
                _read_ignore_file(git_top / ".git" / "info" / "exclude", git_top, "exclude"),
            ):
                if found is not None:
                    files.append(found)

        filters = cls(git_top=git_top, files=tuple(files))
        for ancestor in reversed(root.parents):
            filters = filters._load(ancestor)
        return filters

    def _in_repo(self, directory: Path) -> bool:
        return self.git_top is not None and (
            directory == self.git_top or self.git_top in directory.parents
        )

    def _load(self, directory: Path) -> "StandardFilters":
        found: List[IgnoreFile] = []
        if self._in_repo(directory):
            gitignore = _read_ignore_file(directory / ".gitignore", directory, "gitignore")
            if gitignore is not None:
                found.append(gitignore)
        ignore = _read_ignore_file(directory / ".ignore", directory, "ignore")
        if ignore is not None:
            found.append(ignore)
        if not found:
            return self
        return StandardFilters(git_top=self.git_top, files=self.files + tuple(found))

    def descend(self, directory: Path) -> "StandardFilters":
        return self._load(directory)

    def is_ignored(self, path: Path, is_dir: bool) -> bool:
        for kind in IGNORE_KINDS:
            for ignore_file in reversed(self.files):
                if ignore_file.kind != kind:
                    continue
                verdict = ignore_file.verdict(path, is_dir)
                if verdict is not None:
                    return verdict
        return False


def is_hidden(name: str) -> bool:
    return name.startswith(".")
