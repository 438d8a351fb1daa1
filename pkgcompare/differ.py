"""Diff engine for comparing two versions of a file."""

from __future__ import annotations

import difflib
import time
from collections.abc import Mapping
from typing import Any

from pkgcompare.config import ParseOptions
from pkgcompare.hunks import count_diff_stats, insert_skip_blocks
from pkgcompare.models import DiffStats, FileDiff, FileDiffKind, FileDiffResult, Hunk
from pkgcompare.parser import parse_unified_diff

CONTEXT_LINES = 3


class FileDiffer:
    """Compare old and new file content."""

    def __init__(self, options: ParseOptions | None = None) -> None:
        self.options = options or ParseOptions()

    def _resolve_options(self, overrides: ParseOptions | Mapping[str, Any] | None) -> ParseOptions:
        if isinstance(overrides, ParseOptions):
            return overrides
        return self.options.merged(overrides)

    def unified_diff(self, old_content: str, new_content: str, file_path: str) -> str:
        """Generate unified diff text for two versions of a file."""
        diff = difflib.unified_diff(
            old_content.splitlines(),
            new_content.splitlines(),
            fromfile=f"a/{file_path}",
            tofile=f"b/{file_path}",
            n=CONTEXT_LINES,
            lineterm="",
        )
        return "\n".join(diff)

    def create_diff(
        self,
        old_content: str,
        new_content: str,
        file_path: str,
        options: ParseOptions | Mapping[str, Any] | None = None,
    ) -> FileDiff | None:
        """Diff two contents and parse the result. Returns None when nothing changed."""
        diff_text = self.unified_diff(old_content, new_content, file_path)
        files = parse_unified_diff(diff_text, self._resolve_options(options))
        return files[0] if files else None

    def compute_file_diff(
        self,
        package: str,
        from_version: str,
        to_version: str,
        file_path: str,
        old_content: str | None,
        new_content: str | None,
        options: ParseOptions | Mapping[str, Any] | None = None,
    ) -> FileDiffResult:
        """Diff one file between two package versions.

        ``None`` content means the file does not exist on that side, which
        decides the reported kind. Raises FileNotFoundError when the file is
        missing from both versions.
        """
        start_time = time.perf_counter()

        if old_content is None and new_content is None:
            raise FileNotFoundError(f"File not found in either version: {file_path}")
        if old_content is None:
            kind = FileDiffKind.ADD
        elif new_content is None:
            kind = FileDiffKind.DELETE
        else:
            kind = FileDiffKind.MODIFY

        diff = self.create_diff(old_content or "", new_content or "", file_path, options)

        if diff is None:
            hunks_with_skips = []
            stats = DiffStats()
        else:
            hunk_only = [h for h in diff.hunks if isinstance(h, Hunk)]
            hunks_with_skips = insert_skip_blocks(hunk_only)
            stats = count_diff_stats(hunks_with_skips)

        return FileDiffResult(
            package=package,
            from_version=from_version,
            to_version=to_version,
            path=file_path,
            kind=kind,
            hunks=hunks_with_skips,
            stats=stats,
            compute_time_ms=int((time.perf_counter() - start_time) * 1000),
        )
