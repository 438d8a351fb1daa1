"""Dependency comparison between two package manifests."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from semver import Version

from pkgcompare.models import DependencyChange, DependencyChangeKind, SemverBucket

logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

_RANGE_PREFIX_RE = re.compile(r"^[\^~>=<]+")


class SemverDelta(Enum):
    """Difference between two versions, following npm's ``semver.diff``."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PREMAJOR = "premajor"
    PREMINOR = "preminor"
    PREPATCH = "prepatch"
    PRERELEASE = "prerelease"
    # Versions are equal
    NONE = "none"
    # At least one side is not a valid semantic version
    INVALID = "invalid"


_BUCKETS = {
    SemverDelta.MAJOR: SemverBucket.MAJOR,
    SemverDelta.MINOR: SemverBucket.MINOR,
    SemverDelta.PATCH: SemverBucket.PATCH,
    SemverDelta.PRERELEASE: SemverBucket.PRERELEASE,
    SemverDelta.PREMAJOR: SemverBucket.PRERELEASE,
    SemverDelta.PREMINOR: SemverBucket.PRERELEASE,
    SemverDelta.PREPATCH: SemverBucket.PRERELEASE,
}


def strip_range_prefix(version: str) -> str:
    """Drop a leading run of range operators such as ``^``, ``~`` or ``>=``."""
    return _RANGE_PREFIX_RE.sub("", version)


def _parse_version(version: str) -> Version:
    cleaned = version.strip()
    if cleaned.startswith("v"):
        cleaned = cleaned[1:]
    return Version.parse(cleaned)


def semver_delta(from_version: str, to_version: str) -> SemverDelta:
    """Classify the change between two exact versions."""
    try:
        v1 = _parse_version(from_version)
        v2 = _parse_version(to_version)
    except (ValueError, TypeError):
        return SemverDelta.INVALID

    comparison = v1.compare(v2)
    if comparison == 0:
        return SemverDelta.NONE

    high, low = (v1, v2) if comparison > 0 else (v2, v1)
    high_has_pre = bool(high.prerelease)
    low_has_pre = bool(low.prerelease)

    if low_has_pre and not high_has_pre:
        # Going from a prerelease to a release
        if not low.patch and not low.minor:
            return SemverDelta.MAJOR
        if (low.major, low.minor, low.patch) == (high.major, high.minor, high.patch):
            if low.minor and not low.patch:
                return SemverDelta.MINOR
            return SemverDelta.PATCH

    if v1.major != v2.major:
        return SemverDelta.PREMAJOR if high_has_pre else SemverDelta.MAJOR
    if v1.minor != v2.minor:
        return SemverDelta.PREMINOR if high_has_pre else SemverDelta.MINOR
    if v1.patch != v2.patch:
        return SemverDelta.PREPATCH if high_has_pre else SemverDelta.PATCH
    return SemverDelta.PRERELEASE


def semver_bucket(from_version: str, to_version: str) -> SemverBucket | None:
    """Best-effort bucket for a version range change; None when not computable."""
    delta = semver_delta(strip_range_prefix(from_version), strip_range_prefix(to_version))
    if delta is SemverDelta.INVALID:
        logger.debug(f"Cannot classify version change {from_version!r} -> {to_version!r}")
    return _BUCKETS.get(delta)


def _section(manifest: Mapping[str, Any] | None, section: str) -> dict[str, str]:
    if not manifest:
        return {}
    deps = manifest.get(section)
    if not isinstance(deps, Mapping):
        return {}
    return {name: version for name, version in deps.items() if isinstance(version, str)}


def compare_dependencies(
    from_manifest: Mapping[str, Any] | None,
    to_manifest: Mapping[str, Any] | None,
) -> list[DependencyChange]:
    """Compare the dependency sections of two manifests.

    Results are ordered by section (in ``DEPENDENCY_SECTIONS`` order), then
    by package name.
    """
    changes: list[DependencyChange] = []

    for section in DEPENDENCY_SECTIONS:
        from_deps = _section(from_manifest, section)
        to_deps = _section(to_manifest, section)

        for name in from_deps.keys() | to_deps.keys():
            from_version = from_deps.get(name)
            to_version = to_deps.get(name)

            if from_version == to_version:
                continue

            bucket = None
            if not from_version:
                kind = DependencyChangeKind.ADDED
            elif not to_version:
                kind = DependencyChangeKind.REMOVED
            else:
                kind = DependencyChangeKind.UPDATED
                bucket = semver_bucket(from_version, to_version)

            changes.append(
                DependencyChange(
                    name=name,
                    section=section,
                    from_version=from_version,
                    to_version=to_version,
                    kind=kind,
                    semver_bucket=bucket,
                )
            )

    changes.sort(key=lambda c: (DEPENDENCY_SECTIONS.index(c.section), c.name))
    return changes
