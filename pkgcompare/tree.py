"""File tree comparison between two package versions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from pkgcompare.models import FileChange, FileChangeKind, FileTreeChanges, FileTreeNode

logger = logging.getLogger(__name__)

MAX_FILES_COMPARE = 1000


class ChangeSignal(Enum):
    """Which evidence decided whether a file changed."""

    HASH_DIFFERS = "hash_differs"
    HASH_EQUAL = "hash_equal"
    SIZE_DIFFERS = "size_differs"
    SIZE_EQUAL = "size_equal"
    # Neither side offers comparable evidence; treated as unchanged
    UNKNOWN = "unknown"

    @property
    def changed(self) -> bool:
        return self in (ChangeSignal.HASH_DIFFERS, ChangeSignal.SIZE_DIFFERS)


def _walk(nodes: Iterable[FileTreeNode]) -> Iterable[FileTreeNode]:
    """Yield every node in pre-order using an explicit stack."""
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(reversed(node.children))


def flatten_tree(tree: Iterable[FileTreeNode]) -> dict[str, FileTreeNode]:
    """Flatten a file tree into a path -> node mapping."""
    return {node.path: node for node in _walk(tree)}


def count_files(tree: Iterable[FileTreeNode]) -> int:
    """Count files (not directories) in a tree."""
    return sum(1 for node in _walk(tree) if node.is_file)


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def change_signal(from_node: FileTreeNode, to_node: FileTreeNode) -> ChangeSignal:
    # Hashes win when both sides have one
    if from_node.hash and to_node.hash:
        if from_node.hash != to_node.hash:
            return ChangeSignal.HASH_DIFFERS
        return ChangeSignal.HASH_EQUAL
    if _is_number(from_node.size) and _is_number(to_node.size):
        if from_node.size != to_node.size:
            return ChangeSignal.SIZE_DIFFERS
        return ChangeSignal.SIZE_EQUAL
    return ChangeSignal.UNKNOWN


def has_changed(from_node: FileTreeNode, to_node: FileTreeNode) -> bool:
    return change_signal(from_node, to_node).changed


def compare_file_trees(
    from_tree: Iterable[FileTreeNode],
    to_tree: Iterable[FileTreeNode],
    max_files: int = MAX_FILES_COMPARE,
) -> FileTreeChanges:
    """Compare two file trees and return added, removed and modified files.

    A single running count across all three lists is capped at
    ``max_files``. Once the cap is reached scanning stops and the result is
    flagged as truncated; the remaining differences are not reported.

    Directory/file transitions are deliberately one-sided: a file replaced by
    a directory is reported only as ``removed`` and a directory replaced by a
    file only as ``added``.
    """
    from_files = flatten_tree(from_tree)
    to_files = flatten_tree(to_tree)
    changes = FileTreeChanges()

    for path, to_node in to_files.items():
        if changes.total >= max_files:
            changes.truncated = True
            break

        from_node = from_files.get(path)

        if to_node.is_directory:
            if from_node is not None and from_node.is_file:
                changes.removed.append(
                    FileChange(path, FileChangeKind.REMOVED, old_size=from_node.size)
                )
            continue

        if from_node is None or from_node.is_directory:
            changes.added.append(FileChange(path, FileChangeKind.ADDED, new_size=to_node.size))
        elif from_node.is_file and has_changed(from_node, to_node):
            changes.modified.append(
                FileChange(
                    path,
                    FileChangeKind.MODIFIED,
                    old_size=from_node.size,
                    new_size=to_node.size,
                )
            )

    if not changes.truncated:
        for path, from_node in from_files.items():
            if from_node.is_directory:
                continue

            if changes.total >= max_files:
                changes.truncated = True
                break

            if path not in to_files:
                changes.removed.append(
                    FileChange(path, FileChangeKind.REMOVED, old_size=from_node.size)
                )

    changes.added.sort(key=lambda c: c.path)
    changes.removed.sort(key=lambda c: c.path)
    changes.modified.sort(key=lambda c: c.path)

    if changes.truncated:
        logger.debug(f"File comparison truncated at {max_files} changes")
    return changes
