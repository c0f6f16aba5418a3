"""
notecontext: context aggregation and token-budgeted formatting for a
note-taking assistant.

Decides what of the user's notes survives into a size-limited language model
request, and keeps the caching and ranking behind it cheap and consistent.
"""

__version__ = "0.1.0"

# Import main components
from .models import Block, Page, ContentSection, SectionKind, SearchCandidate, CandidateKind
from .allocator import build_context, allocate_budget
from .ranking import rank_candidates
from .rendering import render
from .cache import TTLCache, ChangeNotifier
from .config import ConfigManager
from .aggregator import ContextAggregator
from .sources import ContentSource, VisibilitySource, MockContentSource, LogseqEDNContentSource

__all__ = [
    "Block",
    "Page",
    "ContentSection",
    "SectionKind",
    "SearchCandidate",
    "CandidateKind",
    "build_context",
    "allocate_budget",
    "rank_candidates",
    "render",
    "TTLCache",
    "ChangeNotifier",
    "ConfigManager",
    "ContextAggregator",
    "ContentSource",
    "VisibilitySource",
    "MockContentSource",
    "LogseqEDNContentSource"
]
