"""Content sources the engine pulls pages, blocks and search candidates from."""

from .base import ContentSource, VisibilitySource, ContentSnapshot, SearchResults
from .memory import InMemoryContentSource, page_from_outline
from .mock import MockContentSource, StaticVisibilitySource
from .logseq_edn import LogseqEDNContentSource

__all__ = [
    "ContentSource",
    "VisibilitySource",
    "ContentSnapshot",
    "SearchResults",
    "InMemoryContentSource",
    "page_from_outline",
    "MockContentSource",
    "StaticVisibilitySource",
    "LogseqEDNContentSource"
]
