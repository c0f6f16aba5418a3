"""
Section models for notecontext.

A section is a labelled bundle of rendered text that competes with the other
sections for a share of the global token budget.
"""

from enum import Enum
from typing import List
from pydantic import BaseModel, Field

from ..errors import ContextWarning


class SectionKind(str, Enum):
    """The content sources a section can come from."""

    CURRENT_PAGE = "current_page"
    SIDEBAR_NOTES = "sidebar_notes"
    VISIBLE_CONTENT = "visible_content"
    LINKED_REFERENCES = "linked_references"

    @property
    def title(self) -> str:
        return _SECTION_TITLES[self]

    @property
    def is_reference_list(self) -> bool:
        """Reference lists are flat, one entry per line."""
        return self is SectionKind.LINKED_REFERENCES


_SECTION_TITLES = {
    SectionKind.CURRENT_PAGE: "Current Page",
    SectionKind.SIDEBAR_NOTES: "Sidebar Notes",
    SectionKind.VISIBLE_CONTENT: "Visible Content",
    SectionKind.LINKED_REFERENCES: "Linked References",
}


class ContentSection(BaseModel):
    """
    One section of the final context, with its budget bookkeeping.
    """

    kind: SectionKind = Field(
        ...,
        description="Which content source this section renders"
    )

    priority: int = Field(
        ...,
        ge=1,
        description="Emission priority, 1 is the highest"
    )

    priority_share: float = Field(
        ...,
        gt=0.0,
        le=1.0,
        description="Fraction of the global budget initially granted to the section"
    )

    raw_text: str = Field(
        default="",
        description="Already rendered section body"
    )

    label: str = Field(
        default="",
        description="Optional detail appended to the section title (e.g. a page title)"
    )

    allocated_tokens: int = Field(
        default=0,
        description="Tokens granted by the allocator"
    )

    needed_tokens: int = Field(
        default=0,
        description="Tokens needed to emit header and body in full"
    )

    @property
    def header(self) -> str:
        # The leading blank line separates this section from the previous one,
        # so its cost is carried by the header estimate.
        title = self.kind.title
        if self.label:
            title = f"{title}: {self.label}"
        return f"\n\n=== {title} ===\n"

    @property
    def is_empty(self) -> bool:
        return not self.raw_text.strip()


class ContextResult(BaseModel):
    """
    The assembled context plus everything needed to explain it.
    """

    text: str = Field(
        default="",
        description="The bounded context blob"
    )

    sections: List[ContentSection] = Field(
        default_factory=list,
        description="Sections with their final allocations"
    )

    warnings: List[ContextWarning] = Field(
        default_factory=list,
        description="Diagnostics collected while fetching and allocating"
    )
