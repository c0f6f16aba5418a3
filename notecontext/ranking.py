"""
Relevance ranking for notecontext search.

Candidates are ordered against a query with explainable, deterministic rules:
exact match, then prefix match (shorter first), then a match at a word
boundary, then any other substring match by first occurrence. Remaining ties
fall back to shorter text, lexicographic order and finally input order, so
the result is always a strict total order.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .models import CandidateKind, MatchTier, RankedCandidate, SearchCandidate

_MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_DAILY_NOTE_TITLE = re.compile(
    r"^(?P<month>" + "|".join(_MONTHS) + r") (?P<day>\d{1,2})(st|nd|rd|th), (?P<year>\d{4})$"
)


def is_daily_note_title(title: str) -> bool:
    """
    Check whether a page title names a daily note, e.g. "October 18th, 2026".
    """
    match = _DAILY_NOTE_TITLE.match(title.strip())
    if not match:
        return False
    try:
        datetime(int(match.group("year")), _MONTHS.index(match.group("month")) + 1, int(match.group("day")))
    except ValueError:
        return False
    return True


def page_candidate(uid: str, title: str) -> SearchCandidate:
    """Build a page candidate, tagging daily notes by their title."""
    kind = CandidateKind.DAILY_NOTE if is_daily_note_title(title) else CandidateKind.PAGE
    return SearchCandidate(kind=kind, uid=uid, display_text=title)


def block_candidate(uid: str, text: str, parent_page_title: Optional[str] = None) -> SearchCandidate:
    """Build a block candidate."""
    return SearchCandidate(kind=CandidateKind.BLOCK, uid=uid, display_text=text,
                           parent_page_title=parent_page_title)


def classify_match(query: str, text: str) -> Tuple[MatchTier, int]:
    """
    Classify how case-folded text matches a case-folded query.

    Returns:
        The match tier and the index of the occurrence that earned it
    """
    if text == query:
        return MatchTier.EXACT, 0
    if text.startswith(query):
        return MatchTier.PREFIX, 0

    first = text.find(query)
    if first < 0:
        return MatchTier.NONE, -1

    index = first
    while index >= 0:
        if not text[index - 1].isalnum():
            return MatchTier.WORD_BOUNDARY, index
        index = text.find(query, index + 1)

    return MatchTier.SUBSTRING, first


def _text_order_key(ranked: RankedCandidate, position: int) -> tuple:
    text = ranked.candidate.display_text
    folded = text.casefold()
    # only plain substring matches are ordered by where the query occurs
    index = ranked.match_index if ranked.tier == MatchTier.SUBSTRING else 0
    return (ranked.tier, index, len(folded), folded, text, position)


def _rank_within_kind(query: str, candidates: Sequence[Tuple[int, SearchCandidate]]) -> List[Tuple[int, RankedCandidate]]:
    ranked = []
    for position, candidate in candidates:
        tier, index = classify_match(query, candidate.display_text.casefold())
        ranked.append((position, RankedCandidate(candidate=candidate, tier=tier, match_index=index)))
    ranked.sort(key=lambda item: _text_order_key(item[1], item[0]))
    return ranked


def explain_ranking(query: str, candidates: Sequence[SearchCandidate]) -> List[RankedCandidate]:
    """
    Rank candidates and report the tier each one matched in.

    Each kind is ranked on its own, then the lists are merged: exact and
    prefix matches come first whatever their kind (Page before DailyNote
    before Block within a tier), followed by everything else grouped by kind
    priority and ordered by text within each kind.

    Args:
        query: The user's search text
        candidates: Candidates in the order they were fetched

    Returns:
        Ranked candidates, best first
    """
    folded_query = query.strip().casefold()
    if not folded_query:
        return [RankedCandidate(candidate=c, tier=MatchTier.NONE) for c in candidates]

    by_kind: Dict[CandidateKind, List[Tuple[int, SearchCandidate]]] = {}
    for position, candidate in enumerate(candidates):
        by_kind.setdefault(candidate.kind, []).append((position, candidate))

    merged = []
    for kind, group in by_kind.items():
        for kind_rank, (_, ranked) in enumerate(_rank_within_kind(folded_query, group)):
            if ranked.tier <= MatchTier.PREFIX:
                key = (0, ranked.tier, kind.merge_priority, kind_rank)
            else:
                key = (1, kind.merge_priority, kind_rank)
            merged.append((key, ranked))

    merged.sort(key=lambda item: item[0])
    return [ranked for _, ranked in merged]


def rank_candidates(query: str, candidates: Sequence[SearchCandidate]) -> List[SearchCandidate]:
    """Order candidates for a query, best first. A blank query keeps the input order."""
    return [ranked.candidate for ranked in explain_ranking(query, candidates)]
