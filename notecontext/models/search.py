"""
Search candidate models for notecontext.
"""

from enum import Enum, IntEnum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CandidateKind(str, Enum):
    """Kinds of search candidates, listed in merge priority order."""

    PAGE = "page"
    DAILY_NOTE = "daily_note"
    BLOCK = "block"

    @property
    def merge_priority(self) -> int:
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {
    CandidateKind.PAGE: 0,
    CandidateKind.DAILY_NOTE: 1,
    CandidateKind.BLOCK: 2,
}


class MatchTier(IntEnum):
    """How a candidate's text matched the query, best first."""

    EXACT = 0
    PREFIX = 1
    WORD_BOUNDARY = 2
    SUBSTRING = 3
    NONE = 4


class SearchCandidate(BaseModel):
    """
    A page, daily note or block offered as a search result.
    """

    model_config = ConfigDict(frozen=True)

    kind: CandidateKind = Field(
        ...,
        description="What the candidate points at"
    )

    uid: str = Field(
        ...,
        description="Identifier of the page or block"
    )

    display_text: str = Field(
        ...,
        description="Text shown to the user and matched against the query"
    )

    parent_page_title: Optional[str] = Field(
        None,
        description="Title of the page containing a block candidate"
    )


class RankedCandidate(BaseModel):
    """
    A candidate together with the reason it landed where it did.
    """

    candidate: SearchCandidate
    tier: MatchTier
    match_index: int = Field(
        default=-1,
        description="Index of the first relevant occurrence of the query, -1 if none"
    )
