"""Writing resolved trees to disk.

The destination only ever appears complete: the tree is staged into a hidden
sibling directory and then renamed into place in one step.  If staging fails
the staging directory is removed and the destination is left as it was.
"""

from __future__ import annotations

import os
import secrets
import shutil
from pathlib import Path

from project_generator.errors import DestinationExistsError, WriteError
from project_generator.scaffolder.tree import ResolvedTree
from project_generator.utils import print_debug


def scratch_name(label: str, kind: str = "staging") -> str:
    """Process-unique hidden name, so concurrent runs never share a path."""
    return f".{label}.{kind}-{os.getpid()}-{secrets.token_hex(4)}"


def materialize(tree: ResolvedTree, root: Path) -> None:
    """Write every entry of *tree* below *root*, which must not exist yet."""
    root.mkdir(parents=False, exist_ok=False)
    directories: list[tuple[Path, int]] = []
    for entry in tree:
        target = root / entry.path
        if entry.is_dir:
            target.mkdir(parents=True, exist_ok=True)
            directories.append((target, entry.mode))
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(entry.content or b"")
        target.chmod(entry.mode)

    # Directory modes go on last, deepest first.
    for target, mode in reversed(directories):
        target.chmod(mode)


def commit_atomically(tree: ResolvedTree, destination: Path, *, force: bool = False) -> Path:
    """Stage *tree* next to *destination* and rename it into place.

    Args:
        tree: The resolved tree.
        destination: Final directory.  Its parent is created if needed.
        force: Replace an existing destination instead of failing.

    Returns:
        The destination path.

    Raises:
        DestinationExistsError: If *destination* exists and *force* is off.
        WriteError: If staging or the final rename fails.
    """
    destination = Path(destination)
    if destination.exists() and not force:
        raise DestinationExistsError(destination)

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"Cannot create {destination.parent}: {exc}") from exc

    staging = destination.parent / scratch_name(destination.name)
    print_debug(f"Staging {len(tree)} entries in {staging}")
    try:
        materialize(tree, staging)
    except BaseException as exc:
        shutil.rmtree(staging, ignore_errors=True)
        if isinstance(exc, OSError):
            raise WriteError(f"Staging into {staging} failed: {exc}") from exc
        raise

    try:
        _swap(staging, destination)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise WriteError(f"Cannot move staged tree into {destination}: {exc}") from exc
    return destination


def _swap(staging: Path, destination: Path) -> None:
    if not destination.exists():
        os.rename(staging, destination)
        return

    backup = destination.parent / scratch_name(destination.name, "previous")
    os.rename(destination, backup)
    try:
        os.rename(staging, destination)
    except OSError:
        os.rename(backup, destination)
        raise
    shutil.rmtree(backup, ignore_errors=True)
