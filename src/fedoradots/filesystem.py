"""Filesystem helpers for fedoradots."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from .models import EntryKind


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def detect_entry_kind(path: Path) -> EntryKind:
    """Classify ``path`` without following a final symlink.

    A dangling symlink is still a ``SYMLINK``.
    """

    if path.is_symlink():
        return EntryKind.SYMLINK
    if not path.exists():
        return EntryKind.ABSENT
    if path.is_dir():
        return EntryKind.DIRECTORY
    return EntryKind.FILE


def remove_path(path: Path) -> None:
    kind = detect_entry_kind(path)
    if kind is EntryKind.DIRECTORY:
        shutil.rmtree(path)
    elif kind is not EntryKind.ABSENT:
        path.unlink()


def copy_entry(source: Path, destination: Path) -> EntryKind:
    """Copy ``source`` to ``destination``, replacing whatever is there."""

    kind = detect_entry_kind(source)
    if kind is EntryKind.ABSENT:
        raise FileNotFoundError(source)

    ensure_parent(destination)
    remove_path(destination)

    if kind is EntryKind.SYMLINK:
        destination.symlink_to(os.readlink(source))
    elif kind is EntryKind.DIRECTORY:
        shutil.copytree(source, destination, symlinks=True, copy_function=shutil.copy2)
    else:
        shutil.copy2(source, destination)

    return kind


def copy_contents(source_dir: Path, destination_dir: Path) -> list[Path]:
    """Copy every child of ``source_dir`` into ``destination_dir``.

    Existing children at the destination with the same name are replaced; other
    destination content is left alone. Returns the copied destination paths.
    """

    destination_dir.mkdir(parents=True, exist_ok=True)
    copied: list[Path] = []
    for child in sorted(source_dir.iterdir()):
        target = destination_dir / child.name
        copy_entry(child, target)
        copied.append(target)
    return copied


def ensure_symlink(link: Path, target: Path) -> bool:
    """Point ``link`` at ``target``, clearing whatever occupies ``link``.

    Refuses when ``link`` already is ``target`` through a symlinked parent
    directory, since clearing it would delete ``target``. Returns ``True``
    when the link was created.
    """

    if symlink_points_to(link, target):
        return False
    if detect_entry_kind(link) is not EntryKind.SYMLINK and link.exists() and target.exists():
        if link.samefile(target):
            raise FileExistsError(f"'{link}' is the link target '{target}' itself")

    remove_path(link)
    ensure_parent(link)
    try:
        relative = os.path.relpath(target, start=link.parent)
    except ValueError:
        link.symlink_to(target)
    else:
        link.symlink_to(relative)
    return True


def symlink_points_to(link: Path, target: Path) -> bool:
    if detect_entry_kind(link) is not EntryKind.SYMLINK:
        return False
    pointed = link.parent / os.readlink(link)
    return pointed.resolve(strict=False) == target.resolve(strict=False)


def touch_file(path: Path) -> bool:
    """Create an empty file (and parents) if nothing exists at ``path``."""

    if path.exists() or path.is_symlink():
        return False
    ensure_parent(path)
    path.touch()
    return True


def is_within(path: Path, other: Path) -> bool:
    """Return ``True`` if ``path`` equals ``other`` or lives below it."""

    resolved = path.resolve(strict=False)
    base = other.resolve(strict=False)
    return resolved == base or base in resolved.parents
