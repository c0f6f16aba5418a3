"""
Error taxonomy for notecontext.

Failures local to one section or one candidate source are never raised out of
the engine. They are converted into ContextWarning records that travel beside
the result, and only genuine programming errors propagate as exceptions.
"""

import logging
from enum import Enum
from pydantic import BaseModel, Field


class NoteContextError(Exception):
    """Base class for notecontext errors."""


class SourceUnavailable(NoteContextError):
    """A content collaborator failed or timed out."""

    def __init__(self, source: str, cause: Exception):
        super().__init__(f"Content source '{source}' unavailable: {cause}")
        self.source = source
        self.cause = cause


class CacheComputeFailure(NoteContextError):
    """A cache recompute function raised."""

    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Recomputing cache key '{key}' failed: {cause}")
        self.key = key
        self.cause = cause


class WarningKind(str, Enum):
    SOURCE_UNAVAILABLE = "source_unavailable"
    CACHE_COMPUTE_FAILURE = "cache_compute_failure"
    SECTION_TRUNCATED = "section_truncated"
    SECTION_OMITTED = "section_omitted"


class ContextWarning(BaseModel):
    """
    A diagnostic surfaced through the warnings side channel.
    """

    kind: WarningKind = Field(
        ...,
        description="What went wrong"
    )

    source: str = Field(
        ...,
        description="The section, cache key or candidate source concerned"
    )

    message: str = Field(
        default="",
        description="Human-readable detail"
    )

    @classmethod
    def from_error(cls, error: NoteContextError) -> "ContextWarning":
        if isinstance(error, SourceUnavailable):
            return cls(kind=WarningKind.SOURCE_UNAVAILABLE, source=error.source, message=str(error))
        if isinstance(error, CacheComputeFailure):
            return cls(kind=WarningKind.CACHE_COMPUTE_FAILURE, source=error.key, message=str(error))
        raise TypeError(f"No warning kind for {type(error).__name__}")


def record_warning(warnings, warning: ContextWarning) -> ContextWarning:
    """
    Log a warning and append it to a warnings list when one is given.

    Args:
        warnings: Optional list collecting warnings for the caller
        warning: The warning to record

    Returns:
        The recorded warning
    """
    logging.warning(f"[{warning.kind.value}] {warning.source}: {warning.message}")
    if warnings is not None:
        warnings.append(warning)
    return warning
