"""
File discovery and glob filtering.

Candidate files are matched on their POSIX path relative to the project
root. Exclude patterns are checked first and win on overlap; a file is then
kept only if an include pattern matches.

Glob semantics:

- ``*`` matches any run of characters except ``/``
- ``?`` matches one character except ``/``
- ``[abc]`` / ``[!abc]`` match one character from / not from a set
- ``**`` matches any run of characters including ``/``; ``**/`` also
  matches zero directories, so ``src/**/*.rs`` matches ``src/main.rs``
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from core.extractor_config import ExtractorConfig
from extraction.config import RUST_EXTENSIONS

logger = logging.getLogger(__name__)

# Never descended into, regardless of filters
ALWAYS_SKIPPED_DIRS = {".git", ".hg", ".svn"}


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    """Translate a glob pattern into an anchored regular expression."""
    pattern = pattern.replace("\\", "/")
    if pattern.startswith("./"):
        pattern = pattern[2:]

    parts: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    # "**/" spans zero or more whole directories
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts) + r"\Z")


def glob_match(pattern: str, relative_path: str) -> bool:
    """Check whether a relative POSIX path matches a glob pattern."""
    return compile_glob(pattern).match(relative_path) is not None


def is_excluded(relative_path: str, exclude: Sequence[str]) -> bool:
    return any(glob_match(pattern, relative_path) for pattern in exclude)


def should_include_file(relative_path: str, config: ExtractorConfig) -> bool:
    """Apply the exclude-then-include policy to one relative path."""
    if is_excluded(relative_path, config.exclude):
        return False
    return any(glob_match(pattern, relative_path) for pattern in config.include)


def to_relative_posix(path: str, root: str) -> str:
    """Return ``path`` relative to ``root`` with ``/`` separators."""
    return Path(os.path.relpath(path, root)).as_posix()


class FileDiscoverer:
    """Lazily walk a project root and yield candidate Rust source files.

    The discoverer is restartable: each iteration performs a fresh walk.
    Files are yielded in a deterministic order (directories and files are
    visited sorted by name). Symlinks are not followed unless
    ``follow_symlinks`` is set.

    Example:
        >>> discoverer = FileDiscoverer("/path/to/crate", ExtractorConfig())
        >>> files = list(discoverer)
    """

    def __init__(
        self,
        root: str,
        config: ExtractorConfig,
        follow_symlinks: bool = False,
    ):
        self.root = os.path.abspath(root)
        self.config = config
        self.follow_symlinks = follow_symlinks
        self.skipped_dirs: List[str] = []

    def _on_walk_error(self, error: OSError) -> None:
        path = getattr(error, "filename", None) or "<unknown>"
        logger.warning("Skipping unreadable directory %s: %s", path, error.strerror or error)
        self.skipped_dirs.append(str(path))

    def _prune(self, dirpath: str, dirnames: List[str]) -> None:
        kept = []
        for dirname in sorted(dirnames):
            if dirname in ALWAYS_SKIPPED_DIRS:
                continue
            full = os.path.join(dirpath, dirname)
            if not self.follow_symlinks and os.path.islink(full):
                continue
            # A directory is pruned when every path below it is excluded
            rel_dir = to_relative_posix(full, self.root)
            if is_excluded(rel_dir + "/", self.config.exclude):
                logger.debug("Pruned excluded directory %s", rel_dir)
                continue
            kept.append(dirname)
        dirnames[:] = kept

    def __iter__(self) -> Iterator[str]:
        self.skipped_dirs = []
        for dirpath, dirnames, filenames in os.walk(
            self.root,
            onerror=self._on_walk_error,
            followlinks=self.follow_symlinks,
        ):
            self._prune(dirpath, dirnames)
            for filename in sorted(filenames):
                if os.path.splitext(filename)[1] not in RUST_EXTENSIONS:
                    continue
                full = os.path.join(dirpath, filename)
                if not self.follow_symlinks and os.path.islink(full):
                    continue
                if not os.path.isfile(full):
                    continue
                if should_include_file(to_relative_posix(full, self.root), self.config):
                    yield full


def discover_rust_files(root: str, config: Optional[ExtractorConfig] = None) -> List[str]:
    """Discover all candidate Rust files under ``root``.

    Returns:
        Sorted list of absolute paths.
    """
    config = config or ExtractorConfig()
    logger.info("Discovering Rust files in %s", os.path.abspath(root))
    files = sorted(FileDiscoverer(root, config))
    logger.info("Found %d Rust files", len(files))
    return files
