"""Binary search over non-decreasing timestamp sequences."""

from __future__ import annotations

from collections.abc import Sequence


def find_lower_bound(
    target: int,
    timestamps: Sequence[int],
    left: int | None = None,
    right: int | None = None,
) -> int:
    """Return the index of the first element ``>= target``.

    Returns ``len(timestamps)`` when every element is smaller, and 0 for an
    empty sequence.  ``timestamps`` must be non-decreasing.  When the probe
    lands on a run of duplicates equal to ``target``, the search walks back
    to the first of them so the bound is stable.
    """
    if not timestamps:
        return 0
    if left is None:
        left = 0
    if right is None:
        right = len(timestamps) - 1

    if target <= timestamps[0]:
        return 0
    if target > timestamps[-1]:
        return len(timestamps)
    if left == right:
        return left

    middle = (right - left) // 2 + left

    if timestamps[middle] == target:
        while middle > 0 and timestamps[middle - 1] == target:
            middle -= 1
        return middle

    if target > timestamps[middle]:
        return find_lower_bound(target, timestamps, middle + 1, right)
    return find_lower_bound(target, timestamps, left, middle)


def find_range(
    timestamps: Sequence[int],
    start: int | None = None,
    end: int | None = None,
) -> tuple[int, int]:
    """Return ``(first, last)`` indices of the elements within ``[start, end]``.

    A missing bound means the corresponding end of the history.  When no
    element qualifies, ``last`` ends up below ``first``.
    """
    first = 0
    last = len(timestamps) - 1

    if start is not None:
        first = find_lower_bound(start, timestamps)

    if end is not None:
        # last element <= end is the one just before the first element > end
        last = find_lower_bound(end + 1, timestamps) - 1

    return first, last


def count_in_range(
    timestamps: Sequence[int],
    start: int | None = None,
    end: int | None = None,
) -> int:
    first, last = find_range(timestamps, start, end)
    return max(0, last - first + 1)
