"""In-memory directory trees.

A template is read once into a ``SourceTree``; the engine produces a
``ResolvedTree`` of the same shape.  Both are ordered depth-first with the
children of every directory in lexical order, so output is deterministic.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from project_generator.errors import ManifestError

DEFAULT_EXCLUDES: frozenset[str] = frozenset({".git"})

DIR_MODE = 0o755
FILE_MODE = 0o644


@dataclass(frozen=True)
class TreeEntry:
    """A file or directory, addressed by its relative POSIX path."""

    path: str
    is_dir: bool = False
    content: bytes | None = None
    mode: int = FILE_MODE

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name


class _Tree:
    def __init__(self, entries: Iterable[TreeEntry]) -> None:
        self._entries = tuple(entries)

    def __iter__(self) -> Iterator[TreeEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[TreeEntry, ...]:
        return self._entries

    def paths(self) -> list[str]:
        return [entry.path for entry in self._entries]

    def files(self) -> list[TreeEntry]:
        return [entry for entry in self._entries if not entry.is_dir]

    def get(self, path: str) -> TreeEntry | None:
        for entry in self._entries:
            if entry.path == path:
                return entry
        return None

    def read_text(self, path: str) -> str:
        """Decoded content of the file at *path* (mostly for tests and previews)."""
        entry = self.get(path)
        if entry is None or entry.content is None:
            raise KeyError(path)
        return entry.content.decode("utf-8")


class SourceTree(_Tree):
    """Read-only snapshot of a template directory."""

    def __init__(self, entries: Iterable[TreeEntry], root: Path | None = None) -> None:
        super().__init__(entries)
        self.root = root

    @classmethod
    def from_directory(
        cls, root: str | Path, exclude: Iterable[str] = DEFAULT_EXCLUDES
    ) -> "SourceTree":
        """Snapshot *root*, skipping any entry whose name is in *exclude*.

        Raises:
            ManifestError: If the template directory cannot be read.
        """
        base = Path(root)
        skipped = frozenset(exclude)
        entries: list[TreeEntry] = []

        def _walk(directory: Path, prefix: PurePosixPath) -> None:
            for child in sorted(directory.iterdir(), key=lambda p: p.name):
                if child.name in skipped:
                    continue
                rel = str(prefix / child.name)
                mode = child.stat().st_mode & 0o777
                if child.is_dir():
                    entries.append(TreeEntry(path=rel, is_dir=True, mode=mode))
                    _walk(child, prefix / child.name)
                else:
                    entries.append(TreeEntry(path=rel, content=child.read_bytes(), mode=mode))

        try:
            _walk(base, PurePosixPath())
        except OSError as exc:
            raise ManifestError(f"Cannot read template tree {base}: {exc}") from exc
        return cls(entries, root=base)

    @classmethod
    def from_mapping(cls, files: Mapping[str, str | bytes | None]) -> "SourceTree":
        """Build a tree from ``{path: content}``; ``None`` marks a directory.

        Parent directories are implied.
        """
        nodes: dict[str, TreeEntry] = {}
        for raw_path, content in files.items():
            path = PurePosixPath(raw_path)
            for parent in reversed(path.parents[:-1]):
                nodes.setdefault(str(parent), TreeEntry(path=str(parent), is_dir=True, mode=DIR_MODE))
            if content is None:
                nodes[str(path)] = TreeEntry(path=str(path), is_dir=True, mode=DIR_MODE)
            else:
                data = content.encode("utf-8") if isinstance(content, str) else content
                nodes[str(path)] = TreeEntry(path=str(path), content=data)
        ordered = sorted(nodes.values(), key=lambda e: PurePosixPath(e.path).parts)
        return cls(ordered)


class ResolvedTree(_Tree):
    """Output of the substitution engine, ready to be written."""
