"""
Canonical text rendering for notecontext.

Turns pages and block trees into the plain-text bodies of context sections,
and projects them into stable tuples for checksumming.
"""

from typing import Any, Iterable, List, Optional, Set

from .models import Block, Page

INDENT = "  "


def render(blocks: List[Block], indent_level: int = 0, with_refs: bool = False) -> str:
    """
    Render blocks depth-first as an indented bullet list.

    A block whose trimmed text is empty is skipped together with its whole
    subtree, even when descendants carry text.

    Args:
        blocks: Blocks to render, in order
        indent_level: Depth of the first level of blocks
        with_refs: Append each block's ((uid)) reference

    Returns:
        The rendered text, one line per block, or "" for empty input
    """
    return "\n".join(_render_lines(blocks, indent_level, with_refs))


def _render_lines(blocks: Iterable[Block], level: int, with_refs: bool) -> List[str]:
    lines = []
    indent = INDENT * level
    for block in blocks:
        if not block.text.strip():
            continue
        line = f"{indent}- {block.text}"
        if with_refs:
            line += f" (({block.uid}))"
        lines.append(line)
        lines.extend(_render_lines(block.children, level + 1, with_refs))
    return lines


def _subtree_paragraphs(blocks: Iterable[Block], exclude_uids: Optional[Set[str]] = None) -> List[str]:
    # Each top-level subtree becomes one paragraph so truncation never splits it.
    paragraphs = []
    for block in blocks:
        if exclude_uids and block.uid in exclude_uids:
            continue
        rendered = render([block], 0, with_refs=True)
        if rendered:
            paragraphs.append(rendered)
    return paragraphs


def current_page_text(page: Optional[Page]) -> str:
    """Render the current page body, one paragraph per top-level block."""
    if page is None:
        return ""
    return "\n\n".join(_subtree_paragraphs(page.blocks))


def visible_content_text(blocks: List[Block], exclude_uids: Optional[Set[str]] = None) -> str:
    """Render visible blocks not already covered by another section."""
    return "\n\n".join(_subtree_paragraphs(blocks, exclude_uids))


def sidebar_notes_text(pages: List[Page], exclude_uids: Optional[Set[str]] = None) -> str:
    """
    Render the notes open in the sidebar, one paragraph per note.

    Blocks whose uid is in exclude_uids (typically the current page's blocks)
    are left out to avoid sending the same text twice.
    """
    paragraphs = []
    for page in pages:
        lines = [f'**Sidebar: "{page.title}"** [[{page.title}]]']
        body = "\n".join(_subtree_paragraphs(page.blocks, exclude_uids))
        if body:
            lines.append(body)
        paragraphs.append("\n".join(lines))
    return "\n\n".join(paragraphs)


def linked_references_text(references: List[Block]) -> str:
    """Render linked references as a flat list, one line per reference."""
    lines = []
    for block in references:
        text = " ".join(block.text.split())
        if text:
            lines.append(f"- {text} (({block.uid}))")
    return "\n".join(lines)


def content_projection(value: Any) -> Any:
    """
    Project content into plain, ordered data suitable for checksumming.

    Pages and blocks become ordered tuples of (uid, text, order, depth); lists
    and dicts are projected element-wise; other values pass through.
    """
    if isinstance(value, Page):
        return ("page", value.uid, value.title, content_projection(value.blocks))
    if isinstance(value, Block):
        return tuple((block.uid, block.text, block.order, depth) for depth, block in value.walk())
    if isinstance(value, dict):
        return {str(key): content_projection(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [content_projection(item) for item in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value
