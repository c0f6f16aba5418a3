"""
Token-budgeted context assembly for notecontext.

Treat the prompt context as a resource with a budget. Every section starts
with a fixed share of the global budget; sections that need less hand the
difference back, and the pooled surplus goes to the highest-priority sections
that need more. Sections are then emitted in priority order, and a section
that still does not fit is truncated with a strategy matching its shape.

The allocator is a pure function of (sections, budget): no clock, no cache,
no shared state.
"""

import logging
import math
import re
from typing import List, Optional, Tuple

from .errors import ContextWarning, WarningKind, record_warning
from .models import ContentSection
from .tokens import estimate_tokens

PARAGRAPH_FILL_RATIO = 0.9
SHARE_TOLERANCE = 1e-9

_BLANK_LINE = re.compile(r"\n[ \t]*\n")


def _priority_order(sections: List[ContentSection]) -> List[int]:
    return sorted(range(len(sections)), key=lambda i: (sections[i].priority, i))


def allocate_budget(sections: List[ContentSection], global_budget: int) -> List[ContentSection]:
    """
    Compute per-section token allocations.

    Args:
        sections: Sections with priority, share and rendered text
        global_budget: Total tokens available for the context

    Returns:
        Copies of the sections, in input order, with allocated_tokens and
        needed_tokens filled in

    Raises:
        ValueError: If the shares add up to more than 1.0
    """
    total_share = sum(s.priority_share for s in sections)
    if total_share > 1.0 + SHARE_TOLERANCE:
        raise ValueError(f"Section shares sum to {total_share:.3f}, which exceeds 1.0")

    budget = max(global_budget, 0)

    # Pass 1: initial allocation
    allocated = [math.floor(budget * s.priority_share) for s in sections]
    needed = [
        0 if s.is_empty else estimate_tokens(s.header) + estimate_tokens(s.raw_text)
        for s in sections
    ]

    # Pass 2: collect what sections do not need
    surplus = 0
    for i in range(len(sections)):
        if needed[i] < allocated[i]:
            surplus += allocated[i] - needed[i]
            allocated[i] = needed[i]

    # Pass 3: hand the surplus to the neediest sections, highest priority first
    for i in _priority_order(sections):
        if surplus <= 0:
            break
        if needed[i] > allocated[i]:
            grant = min(needed[i] - allocated[i], surplus)
            allocated[i] += grant
            surplus -= grant

    return [
        s.model_copy(update={"allocated_tokens": allocated[i], "needed_tokens": needed[i]})
        for i, s in enumerate(sections)
    ]


def truncate_paragraphs(text: str, header: str, allocation: int) -> Tuple[str, int]:
    """
    Keep whole paragraphs of hierarchical content within an allocation.

    Paragraphs are appended while the running total (header included) stays
    under 90% of the allocation; the rest is replaced by a notice. If the
    notice itself does not fit, more paragraphs are dropped.

    Args:
        text: Section body, paragraphs separated by blank lines
        header: Section header
        allocation: Tokens granted to the section

    Returns:
        The truncated body and the number of omitted paragraphs. The body is
        empty when not even one paragraph fits.
    """
    paragraphs = [p for p in _BLANK_LINE.split(text.strip()) if p.strip()]
    limit = math.floor(allocation * PARAGRAPH_FILL_RATIO)

    kept = 0
    running = estimate_tokens(header)
    for paragraph in paragraphs:
        cost = estimate_tokens(paragraph + "\n\n")
        if running + cost > limit:
            break
        running += cost
        kept += 1

    while kept > 0:
        omitted = len(paragraphs) - kept
        body = "\n\n".join(paragraphs[:kept])
        if omitted:
            body += f"\n\n... ({omitted} more sections truncated for brevity)"
        if estimate_tokens(header + body) <= allocation:
            return body, omitted
        kept -= 1

    return "", len(paragraphs)


def truncate_reference_list(text: str, header: str, allocation: int) -> Tuple[str, int]:
    """
    Keep the first entries of a flat, one-line-per-entry list.

    The number of entries kept is floor(allocation / averageLineTokens),
    reduced further if the list plus its "...and K more" notice overflows.

    Returns:
        The truncated body and the number of omitted entries
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return "", 0

    average_line_tokens = max(1, math.ceil(sum(estimate_tokens(line + "\n") for line in lines) / len(lines)))
    kept = min(len(lines), allocation // average_line_tokens)

    while kept > 0:
        omitted = len(lines) - kept
        body = "\n".join(lines[:kept])
        if omitted:
            body += f"\n...and {omitted} more"
        if estimate_tokens(header + body) <= allocation:
            return body, omitted
        kept -= 1

    return "", len(lines)


def _fit_section(section: ContentSection) -> Tuple[Optional[str], int]:
    # Returns the emitted piece (None when omitted) and the omitted entry count.
    header = section.header
    allocation = section.allocated_tokens
    if estimate_tokens(header) >= allocation:
        return None, 0

    body = section.raw_text.strip()
    if estimate_tokens(header + body) <= allocation:
        return header + body, 0

    if section.kind.is_reference_list:
        body, omitted = truncate_reference_list(body, header, allocation)
    else:
        body, omitted = truncate_paragraphs(body, header, allocation)
    if not body:
        return None, omitted
    return header + body, omitted


def build_context(sections: List[ContentSection], global_budget: int,
                  warnings: Optional[List[ContextWarning]] = None) -> str:
    """
    Assemble sections into one text blob whose estimated size fits the budget.

    Args:
        sections: Labelled sections with shares, priorities and rendered text
        global_budget: Total tokens available for the context
        warnings: Optional list collecting truncation and omission warnings

    Returns:
        The context text; "" when the budget is not positive or every
        section is empty
    """
    return render_allocation(allocate_budget(sections, global_budget), global_budget, warnings)


def render_allocation(allocated: List[ContentSection], global_budget: int,
                      warnings: Optional[List[ContextWarning]] = None) -> str:
    """
    Emit sections that already carry their allocations (see allocate_budget).
    """
    if global_budget <= 0 or all(s.is_empty for s in allocated):
        return ""

    output = ""
    for i in _priority_order(allocated):
        section = allocated[i]
        if section.is_empty:
            continue

        piece, omitted = _fit_section(section)
        name = section.kind.value
        if piece is None:
            record_warning(warnings, ContextWarning(
                kind=WarningKind.SECTION_OMITTED,
                source=name,
                message=f"needed {section.needed_tokens} tokens, allocated {section.allocated_tokens}",
            ))
            continue

        candidate = output + piece
        if estimate_tokens(candidate.strip()) > global_budget:
            logging.info(f"Context budget of {global_budget} tokens reached before section {name}")
            break

        output = candidate
        if omitted:
            record_warning(warnings, ContextWarning(
                kind=WarningKind.SECTION_TRUNCATED,
                source=name,
                message=f"{omitted} entries omitted to fit {section.allocated_tokens} tokens",
            ))

    return output.strip()
