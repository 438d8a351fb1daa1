"""Hunk finalization, skip-block insertion and diff statistics."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from pkgcompare.config import ParseOptions
from pkgcompare.inline import align_words
from pkgcompare.models import (
    ChangeKind,
    DiffStats,
    Hunk,
    Line,
    LineKind,
    RawLineChange,
    Segment,
    SkipBlock,
)
from pkgcompare.similarity import is_similar_enough

_LINE_KINDS = {
    ChangeKind.INSERT: LineKind.INSERT,
    ChangeKind.DELETE: LineKind.DELETE,
    ChangeKind.CONTEXT: LineKind.NORMAL,
}


@dataclass
class RawHunk:
    """A hunk header plus the raw changes read from its body."""

    header: str
    old_start: int
    old_line_count: int
    new_start: int
    new_line_count: int
    changes: list[RawLineChange] = field(default_factory=list)


def change_to_line(change: RawLineChange) -> Line:
    """Turn a raw change into an unmerged line with a single segment."""
    return Line(
        kind=_LINE_KINDS[change.kind],
        segments=[Segment(change.text)],
        old_line_no=change.old_line_no,
        new_line_no=change.new_line_no,
        line_no=change.line_no,
    )


def merge_adjacent_lines(changes: list[RawLineChange], options: ParseOptions) -> list[Line]:
    """Fold each similar delete+insert pair into one line with inline segments."""
    out: list[Line] = []
    i = 0
    while i < len(changes):
        current = changes[i]
        nxt = changes[i + 1] if i + 1 < len(changes) else None

        if (
            nxt is not None
            and current.kind == ChangeKind.DELETE
            and nxt.kind == ChangeKind.INSERT
            and is_similar_enough(current.text, nxt.text, options.max_change_ratio)
        ):
            out.append(
                Line(
                    kind=LineKind.NORMAL,
                    segments=align_words(current.text, nxt.text),
                    old_line_no=current.old_line_no,
                    new_line_no=nxt.new_line_no,
                )
            )
            i += 2
        else:
            out.append(change_to_line(current))
            i += 1

    return out


def process_hunk(raw: RawHunk, options: ParseOptions | None = None) -> Hunk:
    """Build a finalized hunk from its raw changes."""
    options = options or ParseOptions()
    if options.merge_modified_lines:
        lines = merge_adjacent_lines(raw.changes, options)
    else:
        lines = [change_to_line(c) for c in raw.changes]

    return Hunk(
        header=raw.header,
        old_start=raw.old_start,
        old_line_count=raw.old_line_count,
        new_start=raw.new_start,
        new_line_count=raw.new_line_count,
        lines=lines,
    )


def insert_skip_blocks(hunks: Iterable[Hunk]) -> list[Hunk | SkipBlock]:
    """Insert a skip block wherever old-file lines fall between two hunks.

    Hunks must be ordered by ascending ``old_start``. Nothing is emitted
    after the last hunk since the total file length is unknown here.
    """
    result: list[Hunk | SkipBlock] = []
    last_hunk_line = 1

    for hunk in hunks:
        gap = hunk.old_start - last_hunk_line
        if gap > 0:
            result.append(SkipBlock(count=gap))

        last_hunk_line = max(hunk.old_start + hunk.old_line_count, last_hunk_line)
        result.append(hunk)

    return result


def count_diff_stats(items: Iterable[Hunk | SkipBlock]) -> DiffStats:
    """Count inserted and deleted lines, ignoring skip blocks."""
    stats = DiffStats()
    for item in items:
        if not isinstance(item, Hunk):
            continue
        for line in item.lines:
            if line.kind == LineKind.INSERT:
                stats.additions += 1
            elif line.kind == LineKind.DELETE:
                stats.deletions += 1
    return stats
