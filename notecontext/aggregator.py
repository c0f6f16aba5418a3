"""
Context aggregation for notecontext.

This module ties the engine together: it pulls content from a ContentSource,
renders one section per content kind, and hands the sections to the budget
allocator. It also serves ranked search through the same source, with
recently fetched aggregates memoized in a TTLCache.
"""

import logging
from typing import Callable, List, Optional

from .allocator import allocate_budget, render_allocation
from .cache import ChangeNotifier, TTLCache, compute_checksum
from .config import ConfigManager
from .errors import ContextWarning, SourceUnavailable, record_warning
from .models import Block, ContentSection, ContextResult, Page, SearchCandidate, SectionKind
from .ranking import rank_candidates
from .rendering import current_page_text, linked_references_text, sidebar_notes_text, visible_content_text
from .sources import ContentSnapshot, ContentSource, VisibilitySource
from .tokens import context_budget, model_context_window

CURRENT_PAGE_KEY = "current_page"


class ContextAggregator:
    """
    Builds bounded context and ranked search results from a content source.
    """

    def __init__(self, source: ContentSource, config: Optional[ConfigManager] = None,
                 cache: Optional[TTLCache] = None, visibility: Optional[VisibilitySource] = None):
        """
        Initialize the aggregator.

        Args:
            source: Collaborator supplying pages, blocks and search candidates
            config: Configuration (defaults to config.yaml or built-in defaults)
            cache: Cache for fetched aggregates (created from config if omitted)
            visibility: Optional source of on-screen content references

        Raises:
            ValueError: If the configured section shares sum to more than 1.0
        """
        self.source = source
        self.config = config or ConfigManager()
        self.cache = cache or TTLCache(
            default_ttl_ms=self.config.default_ttl_ms,
            max_entries=self.config.cache_max_entries,
        )
        self.visibility = visibility

        total_share = sum(self.config.section_share(kind) for kind in SectionKind)
        if total_share > 1.0 + 1e-9:
            raise ValueError(f"Configured section shares sum to {total_share:.3f}, which exceeds 1.0")

    def _section(self, kind: SectionKind, raw_text: str, label: str = "") -> ContentSection:
        return ContentSection(
            kind=kind,
            priority=self.config.section_priority(kind),
            priority_share=self.config.section_share(kind),
            raw_text=raw_text,
            label=label,
        )

    async def fetch_snapshot(self, warnings: Optional[List[ContextWarning]] = None) -> ContentSnapshot:
        """
        Fetch all content for one request, turning failures into warnings.
        """
        snapshot = await self.source.fetch_content_sources(self.visibility, include_linked_references=False)
        for failure in snapshot.failures:
            record_warning(warnings, ContextWarning.from_error(failure))
        if snapshot.current_page is not None:
            snapshot.linked_references = await self.linked_references(snapshot.current_page, warnings)
        return snapshot

    async def linked_references(self, page: Page, warnings: Optional[List[ContextWarning]] = None) -> List[Block]:
        """
        Return a page's linked references, from cache while fresh.
        """
        key = f"linked_references:{page.uid}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            references = await self.source.fetch_linked_references(page)
        except Exception as e:
            record_warning(warnings, ContextWarning.from_error(SourceUnavailable("linked_references", e)))
            return []

        self.cache.set(key, references, checksum=compute_checksum(references))
        return references

    def build_sections(self, snapshot: ContentSnapshot) -> List[ContentSection]:
        """
        Render one section per content kind from a snapshot.

        Content already shown in a higher section is not repeated: sidebar
        notes skip current-page blocks, and visible content skips both.
        """
        page = snapshot.current_page
        shown_uids = page.block_uids() if page is not None else set()
        sidebar_text = sidebar_notes_text(snapshot.sidebar_notes, shown_uids)
        for note in snapshot.sidebar_notes:
            shown_uids |= note.block_uids()

        return [
            self._section(SectionKind.CURRENT_PAGE, current_page_text(page), page.title if page else ""),
            self._section(SectionKind.VISIBLE_CONTENT, visible_content_text(snapshot.visible_content, shown_uids)),
            self._section(SectionKind.SIDEBAR_NOTES, sidebar_text,
                          f"{len(snapshot.sidebar_notes)} open" if snapshot.sidebar_notes else ""),
            self._section(SectionKind.LINKED_REFERENCES, linked_references_text(snapshot.linked_references),
                          f"{len(snapshot.linked_references)} references" if snapshot.linked_references else ""),
        ]

    def global_budget(self, provider: Optional[str] = None, model: Optional[str] = None) -> int:
        """Derive the context budget for a model from the configured reserve fraction."""
        window = model_context_window(provider, model, self.config.default_context_window)
        return context_budget(window, self.config.reserve_fraction)

    async def build(self, global_budget: Optional[int] = None, provider: Optional[str] = None,
                    model: Optional[str] = None) -> ContextResult:
        """
        Fetch, render and allocate the context for one request.

        Args:
            global_budget: Token budget; derived from the model when omitted
            provider: Model provider, used only to derive the budget
            model: Model name, used only to derive the budget

        Returns:
            The context text with its section allocations and warnings
        """
        budget = global_budget if global_budget is not None else self.global_budget(provider, model)
        warnings: List[ContextWarning] = []

        snapshot = await self.fetch_snapshot(warnings)
        sections = allocate_budget(self.build_sections(snapshot), budget)
        text = render_allocation(sections, budget, warnings)

        logging.info(f"Built context of {len(text)} characters within a budget of {budget} tokens")
        return ContextResult(text=text, sections=sections, warnings=warnings)

    async def search(self, query: str, warnings: Optional[List[ContextWarning]] = None) -> List[SearchCandidate]:
        """
        Fetch and rank search candidates for a query.

        Results are cached per normalized query. A failed fetch yields an
        empty list and a warning.
        """
        key = f"search:{query.strip().casefold()}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            results = await self.source.fetch_search_candidates(query)
        except Exception as e:
            record_warning(warnings, ContextWarning.from_error(SourceUnavailable("search", e)))
            return []

        ranked = rank_candidates(query, results.pages + results.blocks)
        self.cache.set(key, ranked, self.config.search_ttl_ms)
        return ranked

    def watch_current_page(self, notifier: ChangeNotifier,
                           on_raw_change_signal: Optional[Callable] = None) -> str:
        """
        Keep cached aggregates in step with edits to the current page.

        The notifier recomputes the current page after each burst of host
        change signals; when its checksum moves, the page's linked references
        and all cached searches are dropped. Prime the key with
        notifier.prime_async() from async code, or notifier.prime() otherwise.

        Returns:
            The watched cache key
        """
        notifier.watch(CURRENT_PAGE_KEY, self.source.fetch_current_page)
        notifier.on_change(CURRENT_PAGE_KEY, self._on_current_page_change)
        if on_raw_change_signal is not None:
            notifier.attach(CURRENT_PAGE_KEY, on_raw_change_signal)
        return CURRENT_PAGE_KEY

    def _on_current_page_change(self, key: str, page: Optional[Page]) -> None:
        if page is not None:
            self.cache.invalidate(f"linked_references:{page.uid}")
        self.cache.invalidate_prefix("search:")
