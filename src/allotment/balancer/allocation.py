"""Weighted-fair division of concurrency tokens among jobs.

Pure functions, no state: given jobs grouped by priority and the number of
tokens ("chunks") free this round, decide how many tokens each job gets.

The division is proportional to the *normalized* priority. Priorities are
first re-ranked densely to ``1..m`` (rank 1 = lowest). Every job at rank
``r`` wants ``r`` weight units. If the chunks cover all weight units, each
job gets ``r * coefficient`` and the integer remainder is divided again the
same way. If they don't, the lowest rank is excluded for the round (its
jobs get nothing) and the division is retried one level up::

    >>> assign_resources({1: ["a", "b"], 2: ["c"]}, 100)
    {'a': 25, 'b': 25, 'c': 50}
    >>> assign_resources({1: ["a"], 2: ["b"], 3: ["c", "d", "e"]}, 10)
    {'b': 1, 'c': 3, 'd': 3, 'e': 3}

When a single rank is left and there are fewer chunks than jobs, the first
jobs in listing order get one token each. The same jobs win that tie-break
round after round as long as the listing does not change.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, TypeVar

K = TypeVar("K")


class Prioritized(Protocol):
    """Anything with a priority that can be completed (i.e. a ``Job``)."""

    @property
    def priority(self) -> int: ...

    @property
    def is_complete(self) -> bool: ...


def normalize_priorities(groups: Mapping[int, Sequence[K]]) -> dict[int, list[K]]:
    """Re-rank priority groups densely to ``1..m`` preserving order.

    Empty groups are dropped before ranking.

    >>> normalize_priorities({7: [0, 2], 5: [1, 3], 10: [4]})
    {1: [1, 3], 2: [0, 2], 3: [4]}
    """
    present = sorted(p for p, members in groups.items() if members)
    return {rank: list(groups[p]) for rank, p in enumerate(present, start=1)}


def assign_resources(groups: Mapping[int, Sequence[K]], chunks: int) -> dict[K, int]:
    """Divide ``chunks`` tokens among the members of normalized rank groups.

    Args:
        groups: Dense ``rank -> members`` mapping (see ``normalize_priorities``).
        chunks: Tokens available this round.

    Returns:
        ``member -> tokens`` for every member that got at least one token.
        The values sum to ``chunks`` whenever ``chunks >= 1`` and
        ``groups`` has a non-empty rank.

    Raises:
        ValueError: If ``chunks`` is negative.
    """
    if chunks < 0:
        raise ValueError(f"chunks must be non-negative, got {chunks}")
    result: dict[K, int] = {}
    _assign(groups, result, chunks, 0)
    return result


def _assign(
    groups: Mapping[int, Sequence[K]],
    result: dict[K, int],
    chunks: int,
    level: int,
) -> None:
    ranks = sorted(r for r, members in groups.items() if members)
    # Member count and rank-weighted member count of the ranks above `level`
    population = sum(len(groups[r]) for r in ranks)
    weighted = sum(r * len(groups[r]) for r in ranks)
    lowest = 0

    while chunks > 0:
        # Ranks at or below `level` are excluded for this round
        while lowest < len(ranks) and ranks[lowest] <= level:
            size = len(groups[ranks[lowest]])
            population -= size
            weighted -= ranks[lowest] * size
            lowest += 1
        if lowest == len(ranks):
            return

        top = groups[ranks[lowest]]
        if lowest == len(ranks) - 1 and chunks < len(top):
            for member in top[:chunks]:
                result[member] = result.get(member, 0) + 1
            return

        demand = weighted - level * population
        if demand > chunks:
            # Not even one unit per weight at this floor: starve the lowest rank
            level += 1
            continue

        leftover = chunks % demand
        coefficient = (chunks - leftover) // demand
        for r in ranks[lowest:]:
            share = (r - level) * coefficient
            for member in groups[r]:
                result[member] = result.get(member, 0) + share
        chunks = leftover


def group_by_priority(jobs: Sequence[Prioritized]) -> dict[int, list[int]]:
    """Group indexes of the incomplete ``jobs`` by raw priority.

    Indexes within a group keep the order of ``jobs``.
    """
    groups: dict[int, list[int]] = {}
    for index, job in enumerate(jobs):
        if job.is_complete:
            continue
        groups.setdefault(job.priority, []).append(index)
    return groups


def divide_resources(jobs: Sequence[Prioritized], chunks: int) -> dict[int, int]:
    """Assign ``chunks`` tokens to the incomplete jobs of a round.

    Returns:
        ``index in jobs -> tokens``; jobs that get nothing are absent.
    """
    return assign_resources(normalize_priorities(group_by_priority(jobs)), chunks)


__all__ = [
    "Prioritized",
    "assign_resources",
    "divide_resources",
    "group_by_priority",
    "normalize_priorities",
]
