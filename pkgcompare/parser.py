"""Tolerant unified-diff parser.

The parser is a small finite-state machine fed one line at a time. Every line
is first classified into a :class:`LineEvent`; the current
:class:`ParserState` then decides what the event does. Lines that do not
match anything are skipped rather than treated as errors, so an empty or
garbled diff simply yields no files.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from enum import Enum, auto
from typing import Any

from pkgcompare.config import ParseOptions
from pkgcompare.hunks import RawHunk, process_hunk
from pkgcompare.models import (
    ChangeKind,
    FileDiff,
    FileDiffKind,
    Hunk,
    LineKind,
    RawLineChange,
)

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)")
NEW_FILE_RE = re.compile(r"^\+\+\+ (?:[ab]/)?(.*)")

_METADATA_PREFIXES = ("diff ", "index ", "\\")


class ParserState(Enum):
    # No hunk is open; the next line may start a file or a hunk
    AWAITING_OLD_HEADER = auto()
    # A "---" line was seen; waiting for the matching "+++"
    AWAITING_NEW_HEADER = auto()
    IN_HUNK = auto()


class LineEvent(Enum):
    OLD_HEADER = auto()
    NEW_HEADER = auto()
    HUNK_HEADER = auto()
    METADATA = auto()
    INSERT = auto()
    DELETE = auto()
    CONTEXT = auto()
    UNRECOGNIZED = auto()


def classify_line(line: str) -> tuple[LineEvent, re.Match[str] | None]:
    """Classify a diff line. Header forms win over hunk body forms."""
    if line.startswith("---"):
        return LineEvent.OLD_HEADER, None
    if line.startswith("+++"):
        return LineEvent.NEW_HEADER, NEW_FILE_RE.match(line)
    match = HUNK_HEADER_RE.match(line)
    if match:
        return LineEvent.HUNK_HEADER, match
    if line.startswith(_METADATA_PREFIXES):
        return LineEvent.METADATA, None
    if line.startswith("+"):
        return LineEvent.INSERT, None
    if line.startswith("-"):
        return LineEvent.DELETE, None
    if line.startswith(" ") or line == "":
        return LineEvent.CONTEXT, None
    return LineEvent.UNRECOGNIZED, None


class UnifiedDiffParser:
    """Turn unified diff text into :class:`FileDiff` objects."""

    def __init__(self, options: ParseOptions | None = None) -> None:
        self.options = options or ParseOptions()
        self.state = ParserState.AWAITING_OLD_HEADER
        self.files: list[FileDiff] = []
        self._file: FileDiff | None = None
        self._hunk: RawHunk | None = None
        self._old_line = 0
        self._new_line = 0
        self._handlers = {
            LineEvent.OLD_HEADER: self._on_old_header,
            LineEvent.NEW_HEADER: self._on_new_header,
            LineEvent.HUNK_HEADER: self._on_hunk_header,
            LineEvent.INSERT: self._on_insert,
            LineEvent.DELETE: self._on_delete,
            LineEvent.CONTEXT: self._on_context,
        }

    def parse(self, text: str) -> list[FileDiff]:
        """Parse a complete diff and return the files it describes."""
        # A trailing newline leaves an empty last element, read as an empty context line
        for line in text.split("\n"):
            self.feed(line)
        return self.finish()

    def feed(self, line: str) -> None:
        event, match = classify_line(line)
        handler = self._handlers.get(event)
        if handler is not None:
            handler(line, match)

    def finish(self) -> list[FileDiff]:
        """Close any open hunk and file, then derive each file's kind."""
        self._close_hunk()
        if self._file is not None:
            self.files.append(self._file)
            self._file = None
        self.state = ParserState.AWAITING_OLD_HEADER

        for file_diff in self.files:
            file_diff.kind = derive_file_kind(file_diff)

        logger.debug(f"Parsed {len(self.files)} file(s) from diff")
        return self.files

    def _on_old_header(self, line: str, match: re.Match[str] | None) -> None:
        self._close_hunk()
        self.state = ParserState.AWAITING_NEW_HEADER

    def _on_new_header(self, line: str, match: re.Match[str] | None) -> None:
        path = match.group(1) if match else ""

        self._close_hunk()
        if self._file is not None:
            self.files.append(self._file)

        self._file = FileDiff(old_path=path, new_path=path)
        self.state = ParserState.AWAITING_OLD_HEADER

    def _on_hunk_header(self, line: str, match: re.Match[str] | None) -> None:
        if match is None:
            return
        self._close_hunk()

        self._old_line = int(match.group(1))
        self._new_line = int(match.group(3))
        self._hunk = RawHunk(
            header=line,
            old_start=self._old_line,
            old_line_count=int(match.group(2) or 1),
            new_start=self._new_line,
            new_line_count=int(match.group(4) or 1),
        )
        self.state = ParserState.IN_HUNK

    def _on_insert(self, line: str, match: re.Match[str] | None) -> None:
        if self.state is not ParserState.IN_HUNK:
            return
        self._hunk.changes.append(
            RawLineChange(ChangeKind.INSERT, line[1:], new_line_no=self._new_line)
        )
        self._new_line += 1

    def _on_delete(self, line: str, match: re.Match[str] | None) -> None:
        if self.state is not ParserState.IN_HUNK:
            return
        self._hunk.changes.append(
            RawLineChange(ChangeKind.DELETE, line[1:], old_line_no=self._old_line)
        )
        self._old_line += 1

    def _on_context(self, line: str, match: re.Match[str] | None) -> None:
        if self.state is not ParserState.IN_HUNK:
            return
        self._hunk.changes.append(
            RawLineChange(
                ChangeKind.CONTEXT,
                line[1:],
                old_line_no=self._old_line,
                new_line_no=self._new_line,
            )
        )
        self._old_line += 1
        self._new_line += 1

    def _close_hunk(self) -> None:
        # A hunk seen before any "+++" line has no file to attach to and is dropped
        if self._hunk is not None and self._file is not None:
            self._file.hunks.append(process_hunk(self._hunk, self.options))
        self._hunk = None
        if self.state is ParserState.IN_HUNK:
            self.state = ParserState.AWAITING_OLD_HEADER


def derive_file_kind(file_diff: FileDiff) -> FileDiffKind:
    """Pure inserts make an add, pure deletes a delete, anything else a modify."""
    has_adds = False
    has_dels = False
    for hunk in file_diff.hunks:
        if not isinstance(hunk, Hunk):
            continue
        for line in hunk.lines:
            if line.kind == LineKind.INSERT:
                has_adds = True
            elif line.kind == LineKind.DELETE:
                has_dels = True

    if has_adds and not has_dels:
        return FileDiffKind.ADD
    if has_dels and not has_adds:
        return FileDiffKind.DELETE
    return FileDiffKind.MODIFY


def parse_unified_diff(
    text: str,
    options: ParseOptions | Mapping[str, Any] | None = None,
) -> list[FileDiff]:
    """Parse unified diff text with default options or partial overrides."""
    if not isinstance(options, ParseOptions):
        options = ParseOptions.from_overrides(options)
    return UnifiedDiffParser(options).parse(text)
