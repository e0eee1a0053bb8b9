"""
Fuzzy market search.

Scoring is tuned for recall: a false positive costs the user a glance,
a false negative hides the market entirely.

Per field, quality is the fraction of the query covered by in-order
matching blocks of at least ``min_match_len`` characters (1.0 on a plain
substring hit). Multi-word queries also get a per-word score so word
order does not matter. A market matches when any field reaches the
threshold; relevance is the weight-normalised sum across fields.
"""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Iterable, NamedTuple

from ..types import Market


class SearchWeights(NamedTuple):
    title: float = 2.0
    description: float = 1.0
    threshold: float = 0.6
    min_match_len: int = 2


def _coverage(query: str, text: str, min_len: int) -> float:
    if query in text:
        return 1.0
    matcher = SequenceMatcher(None, query, text, autojunk=False)
    matched = sum(block.size for block in matcher.get_matching_blocks() if block.size >= min_len)
    return matched / len(query)


def match_quality(query: str, text: str, min_len: int = 2) -> float:
    """How much of ``query`` can be found in ``text`` (0.0 - 1.0). Case-insensitive."""
    query = query.strip().lower()
    text = text.lower()
    if len(query) < min_len or not text:
        return 0.0

    whole = _coverage(query, text, min_len)
    if whole >= 1.0:
        return whole

    words = [w for w in query.split() if len(w) >= min_len]
    if len(words) < 2:
        return whole
    per_word = sum(_coverage(w, text, min_len) for w in words) / len(words)
    return max(whole, per_word)


def score_market(query: str, market: Market, weights: SearchWeights) -> float | None:
    """Relevance of ``market`` for ``query``, or None if it does not match."""
    title = match_quality(query, market.title, weights.min_match_len)
    desc = match_quality(query, market.description, weights.min_match_len)
    if max(title, desc) < weights.threshold:
        return None
    total = weights.title + weights.description
    return (weights.title * title + weights.description * desc) / total


def fuzzy_search(
    query: str,
    markets: Iterable[Market],
    weights: SearchWeights,
    limit: int,
) -> list[Market]:
    """Best matches first; ties broken by 24h volume."""
    scored = []
    for market in markets:
        score = score_market(query, market, weights)
        if score is not None:
            scored.append((round(score, 6), market))

    scored.sort(key=lambda pair: (-pair[0], -pair[1].volume_24h))
    return [market for _, market in scored[:limit]]
