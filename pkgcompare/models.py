"""Data model shared by the diff and comparison engine.

Every result type exposes ``to_dict()`` which produces the JSON wire shape
consumed by rendering layers. Optional fields that are unset are omitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ChangeKind(StrEnum):
    """Kind of a raw line change coming out of the diff parser."""

    INSERT = "insert"
    DELETE = "delete"
    CONTEXT = "context"


class SegmentKind(StrEnum):
    INSERT = "insert"
    DELETE = "delete"
    NORMAL = "normal"


# Lines use the same vocabulary as segments
LineKind = SegmentKind


class FileDiffKind(StrEnum):
    ADD = "add"
    DELETE = "delete"
    MODIFY = "modify"


class FileChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class NodeType(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"


class DependencyChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"


class SemverBucket(StrEnum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class RawLineChange:
    """A single +/-/context line read from a hunk body."""

    kind: ChangeKind
    text: str
    old_line_no: int | None = None
    new_line_no: int | None = None

    @property
    def line_no(self) -> int | None:
        """Side-specific line number for inserts and deletes."""
        if self.kind == ChangeKind.INSERT:
            return self.new_line_no
        if self.kind == ChangeKind.DELETE:
            return self.old_line_no
        return None


@dataclass
class Segment:
    """A span of a line tagged for word-level highlighting."""

    text: str
    kind: SegmentKind = SegmentKind.NORMAL

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.text, "type": str(self.kind)}


@dataclass
class Line:
    """A rendered diff line."""

    kind: LineKind
    segments: list[Segment]
    old_line_no: int | None = None
    new_line_no: int | None = None
    line_no: int | None = None

    @property
    def old_text(self) -> str:
        """Old-side content (normal + delete segments)."""
        return "".join(s.text for s in self.segments if s.kind != SegmentKind.INSERT)

    @property
    def new_text(self) -> str:
        """New-side content (normal + insert segments)."""
        return "".join(s.text for s in self.segments if s.kind != SegmentKind.DELETE)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "type": str(self.kind),
                "oldLineNumber": self.old_line_no,
                "newLineNumber": self.new_line_no,
                "lineNumber": self.line_no,
                "content": [s.to_dict() for s in self.segments],
            }
        )


@dataclass
class Hunk:
    """A contiguous block of changes at a given old/new range."""

    header: str
    old_start: int
    old_line_count: int
    new_start: int
    new_line_count: int
    lines: list[Line] = field(default_factory=list)

    kind = "hunk"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "content": self.header,
            "oldStart": self.old_start,
            "oldLines": self.old_line_count,
            "newStart": self.new_start,
            "newLines": self.new_line_count,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass
class SkipBlock:
    """Collapsed run of unchanged old-file lines between two hunks."""

    count: int

    kind = "skip"

    @property
    def message(self) -> str:
        return f"{self.count} lines hidden"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "count": self.count, "content": self.message}


@dataclass
class DiffStats:
    additions: int = 0
    deletions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"additions": self.additions, "deletions": self.deletions}


@dataclass
class FileDiff:
    """Parsed diff of a single file."""

    old_path: str
    new_path: str
    kind: FileDiffKind = FileDiffKind.MODIFY
    hunks: list[Hunk | SkipBlock] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "oldPath": self.old_path,
            "newPath": self.new_path,
            "type": str(self.kind),
            "hunks": [h.to_dict() for h in self.hunks],
        }


@dataclass
class FileDiffResult:
    """Diff of one file between two package versions."""

    package: str
    from_version: str
    to_version: str
    path: str
    kind: FileDiffKind
    hunks: list[Hunk | SkipBlock]
    stats: DiffStats
    compute_time_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package,
            "from": self.from_version,
            "to": self.to_version,
            "path": self.path,
            "type": str(self.kind),
            "hunks": [h.to_dict() for h in self.hunks],
            "stats": self.stats.to_dict(),
            "meta": _drop_none({"computeTime": self.compute_time_ms}),
        }


@dataclass
class FileTreeNode:
    """A file or directory entry supplied by a file-tree provider."""

    path: str
    type: NodeType
    size: int | None = None
    hash: str | None = None
    children: list[FileTreeNode] | None = None

    @property
    def is_file(self) -> bool:
        return self.type == NodeType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type == NodeType.DIRECTORY

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileTreeNode:
        """Build a node (and its children) from a plain mapping."""
        root = cls._shallow(data)
        stack = [(root, data)]
        while stack:
            node, raw = stack.pop()
            raw_children = raw.get("children")
            if raw_children is None:
                continue
            node.children = []
            for raw_child in raw_children:
                child = cls._shallow(raw_child)
                node.children.append(child)
                stack.append((child, raw_child))
        return root

    @classmethod
    def _shallow(cls, data: dict[str, Any]) -> FileTreeNode:
        size = data.get("size")
        return cls(
            path=data["path"],
            type=NodeType(data.get("type", NodeType.FILE)),
            size=size if isinstance(size, int) and not isinstance(size, bool) else None,
            hash=data.get("hash") or None,
        )


@dataclass
class FileChange:
    path: str
    kind: FileChangeKind
    old_size: int | None = None
    new_size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "path": self.path,
                "type": str(self.kind),
                "oldSize": self.old_size,
                "newSize": self.new_size,
            }
        )


@dataclass
class FileTreeChanges:
    """Outcome of comparing two file trees."""

    added: list[FileChange] = field(default_factory=list)
    removed: list[FileChange] = field(default_factory=list)
    modified: list[FileChange] = field(default_factory=list)
    truncated: bool = False

    @property
    def total(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)


@dataclass
class DependencyChange:
    name: str
    section: str
    from_version: str | None
    to_version: str | None
    kind: DependencyChangeKind
    semver_bucket: SemverBucket | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "section": self.section,
            "from": self.from_version,
            "to": self.to_version,
            "type": str(self.kind),
            "semverDiff": str(self.semver_bucket) if self.semver_bucket else None,
        }


@dataclass
class CompareStats:
    total_files_from: int
    total_files_to: int
    files_added: int
    files_removed: int
    files_modified: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFilesFrom": self.total_files_from,
            "totalFilesTo": self.total_files_to,
            "filesAdded": self.files_added,
            "filesRemoved": self.files_removed,
            "filesModified": self.files_modified,
        }


@dataclass
class CompareResult:
    """Full comparison of two package versions."""

    package: str
    from_version: str
    to_version: str
    from_manifest: dict[str, Any] | None
    to_manifest: dict[str, Any] | None
    files: FileTreeChanges
    dependency_changes: list[DependencyChange]
    stats: CompareStats
    warnings: list[str] = field(default_factory=list)
    compute_time_ms: int | None = None

    @property
    def truncated(self) -> bool:
        return self.files.truncated

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package,
            "from": self.from_version,
            "to": self.to_version,
            "packageJson": {"from": self.from_manifest, "to": self.to_manifest},
            "files": {
                "added": [c.to_dict() for c in self.files.added],
                "removed": [c.to_dict() for c in self.files.removed],
                "modified": [c.to_dict() for c in self.files.modified],
            },
            "dependencyChanges": [c.to_dict() for c in self.dependency_changes],
            "stats": self.stats.to_dict(),
            "meta": _drop_none(
                {
                    "truncated": self.truncated,
                    "warnings": self.warnings or None,
                    "computeTime": self.compute_time_ms,
                }
            ),
        }
