"""
Sysroot filesystem layout fix-ups applied after all packages are unpacked.
"""

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

# (top-level directory, merged location below the root)
USR_MERGE_DIRECTORIES = [
    ("bin", "usr/bin"),
    ("sbin", "usr/sbin"),
    ("lib", "usr/lib"),
    ("include", "usr/include"),
]


def purge(path: Path) -> None:
    """Remove a directory tree if it exists."""
    if path.is_dir() and not path.is_symlink():
        logger.info(f"Purging '{path}'")
        shutil.rmtree(path)


def _move_tree(source: Path, target: Path) -> None:
    """Move the contents of ``source`` into ``target``, merging directories."""
    target.mkdir(parents=True, exist_ok=True)

    for entry in source.iterdir():
        destination = target / entry.name

        if entry.is_symlink():
            if destination.is_symlink() or destination.is_file():
                destination.unlink()
            if not destination.exists():
                destination.symlink_to(os.readlink(entry))
            continue

        if entry.is_dir():
            _move_tree(entry, destination)
            continue

        os.replace(entry, destination)


def merge_directory(root: Path, name: str, target: str) -> bool:
    """
    Fold ``root/name`` into ``root/target`` and leave a symlink behind.

    Nothing happens when ``root/target`` does not exist or ``root/name``
    already is a symlink.

    Returns:
        True if the symlink was created.
    """
    merged = root / target
    original = root / name

    if not merged.is_dir() or original.is_symlink():
        return False

    if original.is_dir():
        _move_tree(original, merged)
        shutil.rmtree(original)

    original.symlink_to(target)
    logger.debug(f"Merged '{original}' into '{merged}'")
    return True


def merge_usr(root: Path) -> list[str]:
    """
    Apply the /usr merge: ``/bin`` -> ``usr/bin`` and so on.

    ``lib64`` is only merged when the sysroot has a ``usr/lib64``.

    Returns:
        Names of the top-level directories that became symlinks.
    """
    pairs = list(USR_MERGE_DIRECTORIES)
    if (root / "usr" / "lib64").is_dir():
        pairs.append(("lib64", "usr/lib64"))

    return [name for name, target in pairs if merge_directory(root, name, target)]


def delete_bins(root: Path) -> list[Path]:
    """
    Remove every ``bin`` and ``sbin`` directory below ``root``.

    Refuses to touch the host root directory.

    Returns:
        The directories that were removed.
    """
    if root.resolve() == Path("/"):
        logger.warning("Will not remove 'bin' directories from root ('/') directory.")
        return []

    removed = []
    for current, dirnames, _filenames in os.walk(root):
        for name in [d for d in dirnames if d in ("bin", "sbin")]:
            directory = Path(current) / name
            if directory.is_symlink():
                continue
            shutil.rmtree(directory)
            removed.append(directory)
            dirnames.remove(name)

    return removed
