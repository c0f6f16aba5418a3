"""Data models for notecontext."""

from .content import Block, Page, ContentRef
from .sections import SectionKind, ContentSection, ContextResult
from .search import CandidateKind, MatchTier, SearchCandidate, RankedCandidate
from .cache import CacheEntry

__all__ = [
    "Block",
    "Page",
    "ContentRef",
    "SectionKind",
    "ContentSection",
    "ContextResult",
    "CandidateKind",
    "MatchTier",
    "SearchCandidate",
    "RankedCandidate",
    "CacheEntry"
]
