"""Position-wise similarity metric used to decide whether two lines merge."""

DEFAULT_MAX_CHANGE_RATIO = 0.45


def change_ratio(a: str, b: str) -> float:
    """Return the share of characters that differ between ``a`` and ``b``.

    Characters are compared position by position up to the longer length; a
    position past the end of the shorter string counts as a mismatch. The
    length difference is then added once more, and the total is divided by
    the combined length. Two empty strings give 1.0.
    """
    total_chars = len(a) + len(b)
    if total_chars == 0:
        return 1.0

    changed_chars = 0
    for i in range(max(len(a), len(b))):
        if i >= len(a) or i >= len(b) or a[i] != b[i]:
            changed_chars += 1
    changed_chars += abs(len(a) - len(b))

    return changed_chars / total_chars


def is_similar_enough(a: str, b: str, max_ratio: float = DEFAULT_MAX_CHANGE_RATIO) -> bool:
    """Check whether two lines are close enough to show as one changed line."""
    if max_ratio <= 0:
        return a == b
    if max_ratio >= 1:
        return True
    return change_ratio(a, b) <= max_ratio
