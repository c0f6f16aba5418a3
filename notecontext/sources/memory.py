"""
In-memory content source for notecontext.

Holds a whole graph of pages in memory and answers every collaborator query
from it. Concrete sources only need to supply the pages.
"""

import re
from typing import Dict, Iterator, List, Optional, Tuple

from ..models import Block, ContentRef, Page
from ..ranking import block_candidate, page_candidate
from .base import ContentSource, SearchResults


class InMemoryContentSource(ContentSource):
    """
    Content source over a dict of pages keyed by title.

    Linked references are the blocks of other pages containing ``[[Title]]``
    for the current page.
    """

    def __init__(self, pages: List[Page], current_title: Optional[str] = None,
                 sidebar_titles: Optional[List[str]] = None):
        """
        Initialize the source.

        Args:
            pages: Pages in the graph
            current_title: Title of the page the user is on
            sidebar_titles: Titles of the pages open in the sidebar
        """
        self.pages: Dict[str, Page] = {page.title: page for page in pages}
        self.current_title = current_title
        self.sidebar_titles = list(sidebar_titles or [])

    def _iter_blocks(self) -> Iterator[Tuple[Page, Block]]:
        for page in self.pages.values():
            for top in page.blocks:
                for _, block in top.walk():
                    yield page, block

    async def fetch_current_page(self) -> Optional[Page]:
        if self.current_title is None:
            return None
        return self.pages.get(self.current_title)

    async def fetch_sidebar_notes(self) -> List[Page]:
        return [self.pages[title] for title in self.sidebar_titles if title in self.pages]

    async def fetch_linked_references(self, page: Page) -> List[Block]:
        marker = f"[[{page.title}]]"
        return [
            block for owner, block in self._iter_blocks()
            if owner.uid != page.uid and marker in block.text
        ]

    async def fetch_blocks(self, refs: List[ContentRef]) -> List[Block]:
        index = {block.uid: block for _, block in self._iter_blocks()}
        pages_by_uid = {page.uid: page for page in self.pages.values()}

        blocks = []
        for ref in refs:
            if ref.kind == "page" and ref.uid in pages_by_uid:
                blocks.extend(pages_by_uid[ref.uid].blocks)
            elif ref.uid in index:
                blocks.append(index[ref.uid])
        return blocks

    async def fetch_search_candidates(self, query: str) -> SearchResults:
        needle = query.strip().casefold()
        results = SearchResults()
        if not needle:
            return results
        for page in self.pages.values():
            if needle in page.title.casefold():
                results.pages.append(page_candidate(page.uid, page.title))
        for page, block in self._iter_blocks():
            if needle in block.text.casefold():
                results.blocks.append(block_candidate(block.uid, block.text, page.title))
        return results


def page_from_outline(title: str, uid: str, outline: str) -> Page:
    """
    Build a page from an indented "- text" outline, two spaces per level.

    Block uids are derived from the page uid and line number.
    """
    root: List[dict] = []
    stack: List[tuple] = [(-1, root)]
    for number, line in enumerate(outline.splitlines()):
        match = re.match(r"^(\s*)- ?(.*)$", line)
        if not match:
            continue
        depth = len(match.group(1)) // 2
        while stack[-1][0] >= depth:
            stack.pop()
        node = {"uid": f"{uid}-{number}", "text": match.group(2), "order": len(stack[-1][1]), "children": []}
        stack[-1][1].append(node)
        stack.append((depth, node["children"]))
    return Page(title=title, uid=uid, blocks=[Block.model_validate(node) for node in root])
