"""Cartesian product of ordered sequences."""

from __future__ import annotations

from typing import Any, List, Sequence


def combinations(*sequences: Sequence[Any]) -> List[List[Any]]:
    """Return every combination picking one item from each sequence.

    Order is first-argument-major: the last sequence varies fastest, so
    ``combinations([1, 2], "ab")`` gives ``[[1, "a"], [1, "b"], [2, "a"], [2, "b"]]``.

    If any sequence is empty (or none are given) the result is ``[]``. The same
    sequence may be passed several times; every ordered tuple is produced,
    including the ones that repeat an element.
    """
    if not sequences or not all(len(seq) for seq in sequences):
        return []

    result: List[List[Any]] = [[]]
    # build from the last axis outwards so the first axis ends up slowest
    for seq in reversed(sequences):
        result = [[item] + tail for item in seq for tail in result]
    return result
