"""
Logseq EDN content source for notecontext.

Serves content from a classic Logseq EDN export (``logseq.edn``) on disk,
converting each exported page and its block hierarchy into Page and Block
models.
"""

import collections.abc
import hashlib
import logging
from pathlib import Path
from typing import Any, List, Optional

import edn_format
from pydantic import ValidationError

from ..models import Block, Page
from .memory import InMemoryContentSource


class LogseqEDNContentSource(InMemoryContentSource):
    """
    Content source backed by a classic Logseq EDN export.
    """

    def __init__(self, logseq_db_path: str, current_title: Optional[str] = None,
                 sidebar_titles: Optional[List[str]] = None):
        """
        Initialize the source and load the export.

        Args:
            logseq_db_path: Directory containing ``logseq.edn``
            current_title: Title of the page the user is on
            sidebar_titles: Titles of the pages open in the sidebar

        Raises:
            FileNotFoundError: If the export file is missing
        """
        self.logseq_db_path = Path(logseq_db_path)
        super().__init__(self.load_pages(), current_title, sidebar_titles)
        logging.info(f"Loaded {len(self.pages)} pages from Logseq export: {self.logseq_db_path}")

    def reload(self) -> None:
        """Re-read the export from disk."""
        self.pages = {page.title: page for page in self.load_pages()}

    def load_pages(self) -> List[Page]:
        """
        Parse the export into pages.

        Returns:
            Pages in export order; pages without any content are skipped
        """
        edn_file = self.logseq_db_path / "logseq.edn"
        if not edn_file.is_file():
            raise FileNotFoundError(f"Could not find logseq.edn inside the specified directory: {self.logseq_db_path}")

        with open(edn_file, 'r', encoding='utf-8') as f:
            parsed_data = edn_format.loads(f.read())

        if not isinstance(parsed_data, collections.abc.Mapping):
            raise ValueError(f"Parsed EDN data is not a map, got {type(parsed_data).__name__}")

        blocks_data = self._get_logseq_value(parsed_data, 'blocks', [])
        if not _is_sequence(blocks_data):
            raise ValueError("Expected a list under the ':blocks' key")

        pages = []
        seen_titles = set()
        for page_block in blocks_data:
            try:
                page = self._build_page(page_block)
            except ValidationError as e:
                logging.warning(f"Skipping malformed page in export: {e}")
                continue
            if page is None:
                continue
            if page.title in seen_titles:
                logging.warning(f"Skipping duplicate page in export: {page.title}")
                continue
            seen_titles.add(page.title)
            pages.append(page)
        return pages

    def _build_page(self, page_block: Any) -> Optional[Page]:
        if not isinstance(page_block, collections.abc.Mapping):
            return None

        title = self._get_logseq_value(page_block, 'block/page-name')
        if not title:
            return None
        title = str(title)

        page_uuid = self._get_logseq_value(page_block, 'block/id')
        page_uid = str(page_uuid) if page_uuid else f"page_{hashlib.sha1(title.encode()).hexdigest()[:12]}"

        children_data = self._get_logseq_value(page_block, 'block/children', [])
        blocks = []
        if _is_sequence(children_data):
            for order, item in enumerate(children_data):
                block = self._build_block(item, page_uid, order)
                if block is not None:
                    blocks.append(block)

        return Page(title=title, uid=page_uid, blocks=blocks)

    def _build_block(self, logseq_block: Any, parent_uid: str, order: int) -> Optional[Block]:
        if not isinstance(logseq_block, collections.abc.Mapping):
            return None

        content = self._get_logseq_value(logseq_block, 'block/content', '')
        if not content:
            content = self._get_logseq_value(logseq_block, 'block/title', '')
        content = str(content or '')

        children_data = self._get_logseq_value(logseq_block, 'block/children', [])
        if not _is_sequence(children_data):
            children_data = []

        block_uuid = self._get_logseq_value(logseq_block, 'block/id')
        if block_uuid:
            uid = str(block_uuid)
        else:
            unique_str = f"{parent_uid}-{content}-{order}-{len(children_data)}"
            uid = f"block_{hashlib.sha1(unique_str.encode()).hexdigest()[:12]}"

        children = []
        for child_order, child_item in enumerate(children_data):
            child = self._build_block(child_item, uid, child_order)
            if child is not None:
                children.append(child)

        return Block(uid=uid, text=content, children=children, order=order)

    @staticmethod
    def _get_logseq_value(data: Any, key: str, default: Any = None) -> Any:
        if not isinstance(data, collections.abc.Mapping):
            return default
        return data.get(edn_format.Keyword(key), default)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, collections.abc.Sequence) and not isinstance(value, str)
