"""File discovery — find source files respecting exclusion patterns."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

# Default exclusion prefixes (relative to scan root).
_DEFAULT_EXCLUDES = frozenset(
    {
        ".git",
        ".github",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        "dist",
        "build",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
    }
)

_DEFAULT_IGNORE_FILES = frozenset({".DS_Store"})

# Extension → language.  Only "python" is analyzed; the rest are reported
# as skipped so a mixed directory is summarized honestly.
LANGUAGE_BY_EXTENSION = {
    ".py": "python",
    ".pyi": "python",
    ".go": "go",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".swift": "swift",
}

SUPPORTED_LANGUAGES = frozenset({"python"})


def detect_language(path: str | Path) -> str:
    """Language name for *path* by extension, ``"unknown"`` otherwise."""
    return LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower(), "unknown")


def is_test_file(path: Path) -> bool:
    name = path.name
    return name.startswith("test_") or name.endswith("_test.py") or name == "conftest.py"


@dataclass(frozen=True)
class DiscoverConfig:
    """Configuration for file discovery.

    All parameters are optional and have sensible defaults.
    """

    root: Path = field(default_factory=lambda: Path("."))
    include_exts: tuple[str, ...] = (".py",)
    ignore_dirs: frozenset[str] = _DEFAULT_EXCLUDES
    ignore_files: frozenset[str] = _DEFAULT_IGNORE_FILES
    follow_symlinks: bool = False
    max_file_bytes: int = 2_000_000  # 2 MB safety limit


def iter_source_files(cfg: DiscoverConfig) -> Iterator[Path]:
    """Yield source files under *cfg.root* in sorted order, respecting all exclusion rules."""
    root = cfg.root
    if not root.exists():
        return
    for p in sorted(root.rglob("*")):
        try:
            if p.is_symlink() and not cfg.follow_symlinks:
                continue
            if not p.is_file():
                continue
            if p.name in cfg.ignore_files:
                continue
            if p.suffix.lower() not in cfg.include_exts:
                continue
            # skip if any parent is in ignore_dirs
            if any(part in cfg.ignore_dirs for part in p.relative_to(root).parts):
                continue
            if p.stat().st_size > cfg.max_file_bytes:
                continue
            yield p.resolve()
        except OSError:
            continue


def discover_py_files(root: Path, *, exclude: list[str] | None = None, include_tests: bool = True) -> list[Path]:
    """Recursively find ``*.py`` files under *root*.

    Returns a sorted list of absolute ``Path`` objects.
    """
    cfg = DiscoverConfig(root=root, ignore_dirs=_DEFAULT_EXCLUDES | set(exclude or []))
    files = iter_source_files(cfg)
    if not include_tests:
        files = (p for p in files if not is_test_file(p))
    return sorted(set(files))


def discover_source_files(root: Path) -> list[Path]:
    """Every file with a known language extension under *root*, sorted."""
    cfg = DiscoverConfig(root=root, include_exts=tuple(LANGUAGE_BY_EXTENSION))
    return sorted(set(iter_source_files(cfg)))
