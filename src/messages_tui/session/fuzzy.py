"""Fuzzy name matching for the conversation search box.

Ranking, best first: prefix substring, other substring, in-order subsequence.
Subsequence matches earn extra for runs of consecutive characters and for
characters that start a word. The numbers are tuning knobs; only the
ordering they produce matters.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

PREFIX_SCORE = 1000
SUBSTRING_SCORE = 500
CHAR_SCORE = 10
CONSECUTIVE_STEP = 5
BOUNDARY_BONUS = 20
_WORD_SEPARATORS = frozenset(" -_")


def fuzzy_match(query: str, target: str) -> int:
    """Score ``target`` against ``query``; 0 means no match."""
    if not query:
        return 1
    if not target:
        return 0

    if query in target:
        base = PREFIX_SCORE if target.startswith(query) else SUBSTRING_SCORE
        return base + len(query)

    score = 0
    query_index = 0
    last_match = -1
    consecutive = 0
    for index, char in enumerate(target):
        if query_index >= len(query):
            break
        if char != query[query_index]:
            continue
        score += CHAR_SCORE
        if last_match == index - 1:
            consecutive += 1
            score += consecutive * CONSECUTIVE_STEP
        else:
            consecutive = 0
        if index == 0 or target[index - 1] in _WORD_SEPARATORS:
            score += BOUNDARY_BONUS
        last_match = index
        query_index += 1

    if query_index < len(query):
        return 0
    return score


def fuzzy_filter(query: str, items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    """Items matching ``query`` (case-insensitive), best score first.

    Equal scores keep their input order.
    """
    items = list(items)
    if not query:
        return items
    needle = query.lower()
    scored = [(fuzzy_match(needle, key(item).lower()), item) for item in items]
    ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda pair: -pair[0])
    return [item for _, item in ranked]
