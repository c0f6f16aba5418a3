"""
Content source interfaces for notecontext.

This module defines the abstract collaborators the engine pulls content from.
Each source converts data from a specific host (a live graph, an export on
disk, test fixtures) into Page and Block models.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import SourceUnavailable
from ..models import Block, ContentRef, Page, SearchCandidate


class SearchResults(BaseModel):
    """Raw candidates returned by a source for one query."""

    pages: List[SearchCandidate] = Field(default_factory=list)
    blocks: List[SearchCandidate] = Field(default_factory=list)


class ContentSnapshot(BaseModel):
    """
    Everything fetched for one context request.

    A section whose fetch failed is left empty and its error kept in
    ``failures`` so the caller can report it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    current_page: Optional[Page] = None
    sidebar_notes: List[Page] = Field(default_factory=list)
    visible_content: List[Block] = Field(default_factory=list)
    linked_references: List[Block] = Field(default_factory=list)
    failures: List[SourceUnavailable] = Field(default_factory=list)


class VisibilitySource(ABC):
    """
    Reports which content is currently on screen, without exposing how.
    """

    @abstractmethod
    def currently_visible(self) -> List[ContentRef]:
        """
        Return references to the content currently visible to the user.
        """
        pass


class ContentSource(ABC):
    """
    Abstract base class for all content sources.

    Fetches are asynchronous and may be slow or fail; timeouts belong to the
    source, the engine only awaits.
    """

    @abstractmethod
    async def fetch_current_page(self) -> Optional[Page]:
        """Return the page the user is looking at, if any."""
        pass

    @abstractmethod
    async def fetch_sidebar_notes(self) -> List[Page]:
        """Return the pages open in the sidebar."""
        pass

    @abstractmethod
    async def fetch_linked_references(self, page: Page) -> List[Block]:
        """Return the blocks elsewhere in the graph that reference a page."""
        pass

    @abstractmethod
    async def fetch_blocks(self, refs: List[ContentRef]) -> List[Block]:
        """Resolve content references into block trees, in reference order."""
        pass

    @abstractmethod
    async def fetch_search_candidates(self, query: str) -> SearchResults:
        """Return raw page and block candidates matching a query."""
        pass

    async def fetch_content_sources(self, visibility: Optional[VisibilitySource] = None,
                                    include_linked_references: bool = True) -> ContentSnapshot:
        """
        Fetch every section's content, isolating failures per section.

        Args:
            visibility: Optional visibility source driving the visible content
            include_linked_references: Also fetch the current page's linked references

        Returns:
            A ContentSnapshot; failed sections are empty and listed in failures
        """
        snapshot = ContentSnapshot()

        async def visible() -> List[Block]:
            if visibility is None:
                return []
            refs = visibility.currently_visible()
            return await self.fetch_blocks(refs) if refs else []

        current, sidebar, shown = await asyncio.gather(
            self.fetch_current_page(),
            self.fetch_sidebar_notes(),
            visible(),
            return_exceptions=True,
        )

        if isinstance(current, Exception):
            snapshot.failures.append(SourceUnavailable("current_page", current))
        else:
            snapshot.current_page = current
        if isinstance(sidebar, Exception):
            snapshot.failures.append(SourceUnavailable("sidebar_notes", sidebar))
        else:
            snapshot.sidebar_notes = sidebar
        if isinstance(shown, Exception):
            snapshot.failures.append(SourceUnavailable("visible_content", shown))
        else:
            snapshot.visible_content = shown

        if include_linked_references and snapshot.current_page is not None:
            try:
                snapshot.linked_references = await self.fetch_linked_references(snapshot.current_page)
            except Exception as e:
                snapshot.failures.append(SourceUnavailable("linked_references", e))

        return snapshot
