"""
Content models for notecontext.

This module defines the immutable text tree (pages and their nested blocks)
that content sources hand to the engine. Trees are built fresh per request
and are only ever read.
"""

from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _check_unique_uids(blocks: List["Block"], where: str) -> None:
    seen = set()
    for block in blocks:
        if block.uid in seen:
            raise ValueError(f"Duplicate block uid '{block.uid}' in {where}")
        seen.add(block.uid)


class Block(BaseModel):
    """
    The smallest addressable unit of text. A block may own ordered children.
    """

    model_config = ConfigDict(frozen=True)

    uid: str = Field(
        ...,
        description="Opaque identifier of the block in the host graph"
    )

    text: str = Field(
        default="",
        description="The text content of the block"
    )

    children: List['Block'] = Field(
        default_factory=list,
        description="Child blocks, kept sorted by their order field"
    )

    order: int = Field(
        default=0,
        description="Position of the block among its siblings"
    )

    @field_validator("children")
    @classmethod
    def _sort_children(cls, children: List['Block']) -> List['Block']:
        _check_unique_uids(children, "children")
        # sorted() is stable, so equal orders keep their fetched sequence
        return sorted(children, key=lambda b: b.order)

    def walk(self, depth: int = 0):
        """Yield (depth, block) pairs for this block and its subtree, depth-first."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)


Block.model_rebuild()


class Page(BaseModel):
    """
    A named root container of blocks.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(
        ...,
        description="The page title"
    )

    uid: str = Field(
        ...,
        description="Opaque identifier of the page"
    )

    blocks: List[Block] = Field(
        default_factory=list,
        description="Top-level blocks of the page, sorted by order"
    )

    @field_validator("blocks")
    @classmethod
    def _sort_blocks(cls, blocks: List[Block]) -> List[Block]:
        all_blocks = [block for top in blocks for _, block in top.walk()]
        _check_unique_uids(all_blocks, "page")
        return sorted(blocks, key=lambda b: b.order)

    def block_uids(self) -> set:
        """Return the uids of every block in the page tree."""
        return {block.uid for top in self.blocks for _, block in top.walk()}


class ContentRef(BaseModel):
    """
    A reference to on-screen content, as reported by a visibility source.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    kind: Literal["page", "block"] = "block"
