"""Assemble a full comparison between two package versions."""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import Any

from pkgcompare.dependencies import compare_dependencies
from pkgcompare.models import CompareResult, CompareStats, FileTreeNode
from pkgcompare.tree import MAX_FILES_COMPARE, compare_file_trees, count_files


def build_compare_result(
    package: str,
    from_version: str,
    to_version: str,
    from_tree: Sequence[FileTreeNode],
    to_tree: Sequence[FileTreeNode],
    from_manifest: Mapping[str, Any] | None,
    to_manifest: Mapping[str, Any] | None,
    compute_time_ms: int | None = None,
    max_files: int = MAX_FILES_COMPARE,
) -> CompareResult:
    """Compare file trees and dependencies and collect them into one result.

    When ``compute_time_ms`` is omitted the time spent here is measured and
    reported instead.
    """
    start_time = time.perf_counter()

    file_changes = compare_file_trees(from_tree, to_tree, max_files=max_files)
    dependency_changes = compare_dependencies(from_manifest, to_manifest)

    warnings: list[str] = []
    if file_changes.truncated:
        warnings.append(f"File list truncated to {max_files} files")

    stats = CompareStats(
        total_files_from=count_files(from_tree),
        total_files_to=count_files(to_tree),
        files_added=len(file_changes.added),
        files_removed=len(file_changes.removed),
        files_modified=len(file_changes.modified),
    )

    if compute_time_ms is None:
        compute_time_ms = int((time.perf_counter() - start_time) * 1000)

    return CompareResult(
        package=package,
        from_version=from_version,
        to_version=to_version,
        from_manifest=dict(from_manifest) if from_manifest is not None else None,
        to_manifest=dict(to_manifest) if to_manifest is not None else None,
        files=file_changes,
        dependency_changes=dependency_changes,
        stats=stats,
        warnings=warnings,
        compute_time_ms=compute_time_ms,
    )
