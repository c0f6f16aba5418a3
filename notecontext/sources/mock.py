"""
Mock content source for testing notecontext.

This module provides a mock graph with hardcoded notes for exercising the
engine during development, plus a fixed visibility source.
"""

from typing import List, Optional

from ..models import Block, ContentRef, Page
from .base import VisibilitySource
from .memory import InMemoryContentSource


class StaticVisibilitySource(VisibilitySource):
    """
    Visibility source reporting a fixed list of references.
    """

    def __init__(self, refs: Optional[List[ContentRef]] = None):
        self.refs = list(refs or [])

    def currently_visible(self) -> List[ContentRef]:
        return list(self.refs)


class MockContentSource(InMemoryContentSource):
    """
    Mock source that serves hardcoded test notes.

    The user is on "Project Phoenix" with "Jane Doe" open in the sidebar.
    """

    def __init__(self, current_title: str = "Project Phoenix", sidebar_titles: Optional[List[str]] = None):
        super().__init__(
            pages=self._create_test_pages(),
            current_title=current_title,
            sidebar_titles=["Jane Doe"] if sidebar_titles is None else sidebar_titles,
        )

    def _create_test_pages(self) -> List[Page]:
        """
        Create hardcoded test pages covering nesting, daily notes and references.

        Returns:
            List of test pages
        """
        pages = []

        # Page 1: project with nested goals and an empty parent bullet
        pages.append(Page(title="Project Phoenix", uid="page-phoenix", blocks=[
            Block(uid="phx-1", order=0, text="Goals for the relaunch", children=[
                Block(uid="phx-1a", order=0, text="Ship the mobile client by June."),
                Block(uid="phx-1b", order=1, text="Migrate billing to the new provider."),
            ]),
            Block(uid="phx-2", order=1, text="Team: [[Jane Doe]] leads design."),
            Block(uid="phx-3", order=2, text="", children=[
                Block(uid="phx-3a", order=0, text="Orphaned note under an empty bullet."),
            ]),
        ]))

        # Page 2: person referencing the project
        pages.append(Page(title="Jane Doe", uid="page-jane", blocks=[
            Block(uid="jane-1", order=0, text="Design lead on [[Project Phoenix]]."),
            Block(uid="jane-2", order=1, text="Birthday is on June 15th."),
        ]))

        # Page 3: daily note
        pages.append(Page(title="October 18th, 2026", uid="page-2026-10-18", blocks=[
            Block(uid="daily-1", order=0, text="Met with [[Jane Doe]] about [[Project Phoenix]] deadlines."),
            Block(uid="daily-2", order=1, text="Call the accountant."),
        ]))

        # Page 4: similarly named project for search
        pages.append(Page(title="Project Orion", uid="page-orion", blocks=[
            Block(uid="orion-1", order=0, text="Paused until [[Project Phoenix]] ships."),
        ]))

        return pages
