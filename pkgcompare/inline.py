"""Word-level alignment of two similar lines."""

import re

from pkgcompare.models import Segment, SegmentKind

# How many tokens ahead to search for a sync point before giving up and
# treating the current pair as a replacement.
LOOKAHEAD_WINDOW = 3

_WHITESPACE_RUN = re.compile(r"(\s+)")


def tokenize(text: str) -> list[str]:
    """Split on whitespace runs, keeping the runs as their own tokens."""
    return _WHITESPACE_RUN.split(text)


def align_words(old_text: str, new_text: str) -> list[Segment]:
    """Align the words of two lines into insert/delete/normal segments.

    This is a greedy walk with a bounded lookahead, not an optimal alignment.
    Joining the normal and delete segments gives back ``old_text``; joining
    the normal and insert segments gives back ``new_text``. Empty tokens are
    kept, so a segment may carry an empty string.
    """
    old_words = tokenize(old_text)
    new_words = tokenize(new_text)

    segments: list[Segment] = []
    oi = 0
    ni = 0

    while oi < len(old_words) or ni < len(new_words):
        if oi >= len(old_words):
            segments.append(Segment("".join(new_words[ni:]), SegmentKind.INSERT))
            break
        if ni >= len(new_words):
            segments.append(Segment("".join(old_words[oi:]), SegmentKind.DELETE))
            break

        if old_words[oi] == new_words[ni]:
            segments.append(Segment(old_words[oi], SegmentKind.NORMAL))
            oi += 1
            ni += 1
            continue

        look = _find_sync(new_words, ni, old_words[oi])
        if look:
            segments.append(Segment("".join(new_words[ni : ni + look]), SegmentKind.INSERT))
            ni += look
            continue

        look = _find_sync(old_words, oi, new_words[ni])
        if look:
            segments.append(Segment("".join(old_words[oi : oi + look]), SegmentKind.DELETE))
            oi += look
            continue

        segments.append(Segment(old_words[oi], SegmentKind.DELETE))
        segments.append(Segment(new_words[ni], SegmentKind.INSERT))
        oi += 1
        ni += 1

    return _coalesce(segments)


def _find_sync(words: list[str], start: int, target: str) -> int:
    """Return the offset (1..LOOKAHEAD_WINDOW) of ``target`` after ``start``, or 0."""
    for look in range(1, LOOKAHEAD_WINDOW + 1):
        if start + look >= len(words):
            break
        if words[start + look] == target:
            return look
    return 0


def _coalesce(segments: list[Segment]) -> list[Segment]:
    merged: list[Segment] = []
    for seg in segments:
        if merged and merged[-1].kind == seg.kind:
            merged[-1] = Segment(merged[-1].text + seg.text, seg.kind)
        else:
            merged.append(seg)
    return merged
