"""
Tests for the token budget allocator.

Covers the four allocation passes, both truncation strategies, and the
guarantees the allocator makes about budget, determinism and verbatim output.
"""

import unittest

from notecontext.allocator import (
    allocate_budget,
    build_context,
    truncate_paragraphs,
    truncate_reference_list,
)
from notecontext.errors import WarningKind
from notecontext.models import ContentSection, SectionKind
from notecontext.tokens import estimate_tokens


def paragraph_body(tokens: int, unit: int = 10) -> str:
    """
    Build a body estimated at exactly `tokens` tokens, split into paragraphs.

    Every paragraph plus its blank-line separator costs `unit` tokens.
    """
    remaining = 4 * tokens
    paragraphs = []
    while remaining > 4 * unit:
        paragraphs.append("p" * (4 * unit - 2))
        remaining -= 4 * unit
    paragraphs.append("q" * remaining)
    return "\n\n".join(paragraphs)


def make_section(kind: SectionKind, priority: int, share: float, needed: int, unit: int = 10) -> ContentSection:
    """Build a section whose header plus body needs exactly `needed` tokens."""
    section = ContentSection(kind=kind, priority=priority, priority_share=share)
    body = paragraph_body(needed - estimate_tokens(section.header), unit)
    return section.model_copy(update={"raw_text": body})


class TestAllocationPasses(unittest.TestCase):
    """Test the allocation arithmetic."""

    def setUp(self):
        self.sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.5, 100),
            make_section(SectionKind.SIDEBAR_NOTES, 2, 0.3, 10),
            make_section(SectionKind.VISIBLE_CONTENT, 3, 0.2, 200, unit=5),
        ]

    def test_needed_tokens(self):
        """Test needed tokens count header and body."""
        allocated = allocate_budget(self.sections, 120)

        self.assertEqual([s.needed_tokens for s in allocated], [100, 10, 200])

    def test_end_to_end_allocation(self):
        """Test surplus from a small section flows to the top-priority section."""
        allocated = allocate_budget(self.sections, 120)

        # initial [60, 36, 24]; section 2 frees 26 which section 1 takes
        self.assertEqual([s.allocated_tokens for s in allocated], [86, 10, 24])
        self.assertEqual(sum(s.allocated_tokens for s in allocated), 120)

    def test_end_to_end_output(self):
        """Test sections 1 and 3 are truncated with notices and section 2 is verbatim."""
        warnings = []
        output = build_context(self.sections, 120, warnings)

        self.assertLessEqual(estimate_tokens(output), 120)
        self.assertIn("=== Current Page ===", output)
        self.assertIn(self.sections[1].raw_text, output)
        self.assertIn("=== Visible Content ===", output)
        self.assertEqual(output.count("more sections truncated for brevity"), 2)
        truncated = [w.source for w in warnings if w.kind == WarningKind.SECTION_TRUNCATED]
        self.assertEqual(truncated, ["current_page", "visible_content"])

    def test_sections_emitted_in_priority_order(self):
        """Test emission follows priority, not input order."""
        reordered = [self.sections[2], self.sections[0], self.sections[1]]

        output = build_context(reordered, 120)

        self.assertLess(output.index("Current Page"), output.index("Sidebar Notes"))
        self.assertLess(output.index("Sidebar Notes"), output.index("Visible Content"))

    def test_allocation_never_exceeds_budget(self):
        """Test allocations sum to at most the budget for many budgets."""
        for budget in range(0, 400, 7):
            allocated = allocate_budget(self.sections, budget)
            self.assertLessEqual(sum(s.allocated_tokens for s in allocated), max(budget, 0))

    def test_shares_over_one_rejected(self):
        """Test shares summing past 1.0 are a programming error."""
        sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.7, 10),
            make_section(SectionKind.SIDEBAR_NOTES, 2, 0.4, 10),
        ]

        with self.assertRaises(ValueError):
            allocate_budget(sections, 100)

    def test_redistribution_monotonicity(self):
        """Test shrinking one section never shrinks a lower-priority section's allocation."""
        for smaller_need in range(10, 100, 9):
            baseline = [
                make_section(SectionKind.CURRENT_PAGE, 1, 0.4, 100),
                make_section(SectionKind.VISIBLE_CONTENT, 2, 0.3, 100),
                make_section(SectionKind.SIDEBAR_NOTES, 3, 0.3, 100),
            ]
            reduced = list(baseline)
            reduced[0] = make_section(SectionKind.CURRENT_PAGE, 1, 0.4, smaller_need)

            before = allocate_budget(baseline, 150)
            after = allocate_budget(reduced, 150)

            for i in (1, 2):
                self.assertGreaterEqual(after[i].allocated_tokens, before[i].allocated_tokens)


class TestBuildContext(unittest.TestCase):
    """Test the assembled output."""

    def test_non_positive_budget_returns_empty(self):
        """Test a zero or negative budget yields an empty string."""
        sections = [make_section(SectionKind.CURRENT_PAGE, 1, 0.5, 50)]

        self.assertEqual(build_context(sections, 0), "")
        self.assertEqual(build_context(sections, -10), "")

    def test_all_empty_sections_return_empty(self):
        """Test blank sections produce no output."""
        sections = [
            ContentSection(kind=SectionKind.CURRENT_PAGE, priority=1, priority_share=0.5, raw_text=""),
            ContentSection(kind=SectionKind.SIDEBAR_NOTES, priority=2, priority_share=0.5, raw_text="  \n "),
        ]

        self.assertEqual(build_context(sections, 1000), "")
        self.assertEqual(build_context([], 1000), "")

    def test_no_truncation_when_shares_suffice(self):
        """Test every section appears verbatim when each fits its share."""
        sections = [
            ContentSection(kind=SectionKind.CURRENT_PAGE, priority=1, priority_share=0.5,
                           raw_text="- Alpha ((a))\n  - Beta ((b))", label="Home"),
            ContentSection(kind=SectionKind.SIDEBAR_NOTES, priority=3, priority_share=0.2,
                           raw_text='**Sidebar: "Side"** [[Side]]\n- Gamma ((c))'),
            ContentSection(kind=SectionKind.LINKED_REFERENCES, priority=4, priority_share=0.3,
                           raw_text="- ref one ((r1))\n- ref two ((r2))"),
        ]
        budget = 200
        for section in sections:
            needed = estimate_tokens(section.header) + estimate_tokens(section.raw_text)
            self.assertLessEqual(needed, section.priority_share * budget)

        output = build_context(sections, budget)

        for section in sections:
            self.assertIn(section.raw_text, output)
        self.assertNotIn("truncated", output)
        self.assertNotIn("more", output)
        self.assertTrue(output.startswith("=== Current Page: Home ==="))

    def test_output_fits_budget_when_shares_exactly_used(self):
        """Test separators never push the output past the budget."""
        sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.5, 50),
            make_section(SectionKind.VISIBLE_CONTENT, 2, 0.5, 50),
        ]

        output = build_context(sections, 100)

        self.assertLessEqual(estimate_tokens(output), 100)
        self.assertNotIn("truncated", output)

    def test_budget_respected_across_budgets(self):
        """Test the estimated output size never exceeds the budget."""
        sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.4, 300),
            make_section(SectionKind.VISIBLE_CONTENT, 2, 0.2, 120, unit=6),
            make_section(SectionKind.SIDEBAR_NOTES, 3, 0.2, 40),
            ContentSection(kind=SectionKind.LINKED_REFERENCES, priority=4, priority_share=0.2,
                           raw_text="\n".join(f"- reference number {i} ((r{i}))" for i in range(60))),
        ]

        for budget in range(1, 800, 13):
            output = build_context(sections, budget)
            self.assertLessEqual(estimate_tokens(output), budget)

    def test_determinism(self):
        """Test identical inputs give byte-identical output."""
        sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.5, 120),
            make_section(SectionKind.SIDEBAR_NOTES, 2, 0.3, 15),
            ContentSection(kind=SectionKind.LINKED_REFERENCES, priority=3, priority_share=0.2,
                           raw_text="\n".join(f"- ref {i} ((r{i}))" for i in range(40))),
        ]

        first = build_context(sections, 150)
        for _ in range(5):
            self.assertEqual(build_context(sections, 150), first)

    def test_header_larger_than_allocation_omits_section(self):
        """Test a section that cannot fit its header is left out entirely."""
        sections = [
            make_section(SectionKind.CURRENT_PAGE, 1, 0.9, 200),
            make_section(SectionKind.LINKED_REFERENCES, 2, 0.1, 60),
        ]
        warnings = []

        output = build_context(sections, 40, warnings)

        self.assertNotIn("Linked References", output)
        omitted = [w.source for w in warnings if w.kind == WarningKind.SECTION_OMITTED]
        self.assertEqual(omitted, ["linked_references"])

    def test_reference_list_truncation_in_context(self):
        """Test linked references are cut by whole lines with a count notice."""
        refs = "\n".join(f"- reference {i:02d} ((r{i:02d}))" for i in range(30))
        sections = [
            ContentSection(kind=SectionKind.LINKED_REFERENCES, priority=1, priority_share=1.0, raw_text=refs),
        ]

        output = build_context(sections, 60)

        self.assertIn("- reference 00 ((r00))", output)
        self.assertRegex(output, r"\.\.\.and \d+ more$")
        self.assertLessEqual(estimate_tokens(output), 60)


class TestTruncationStrategies(unittest.TestCase):
    """Test the per-kind truncation helpers."""

    def test_paragraphs_never_split(self):
        """Test paragraph truncation keeps whole paragraphs only."""
        paragraphs = [f"- item {i} ((u{i}))\n  - detail {i} ((d{i}))" for i in range(10)]
        text = "\n\n".join(paragraphs)

        body, omitted = truncate_paragraphs(text, "\n\n=== Current Page ===\n", 40)

        kept = body.split("\n\n")[:-1]
        self.assertTrue(all(p in paragraphs for p in kept))
        self.assertEqual(len(kept) + omitted, 10)
        self.assertTrue(body.endswith(f"... ({omitted} more sections truncated for brevity)"))

    def test_paragraphs_fill_under_ninety_percent(self):
        """Test paragraphs are added while the running total stays within 90%."""
        header = "\n\n=== Current Page ===\n"
        text = paragraph_body(200, unit=10)

        body, omitted = truncate_paragraphs(text, header, 100)

        kept_tokens = estimate_tokens(header) + sum(
            estimate_tokens(p + "\n\n") for p in body.split("\n\n")[:-1]
        )
        self.assertLessEqual(kept_tokens, 90)
        self.assertGreater(omitted, 0)
        self.assertLessEqual(estimate_tokens(header + body), 100)

    def test_paragraph_that_cannot_fit_yields_nothing(self):
        """Test no body is produced when even one paragraph is too large."""
        body, omitted = truncate_paragraphs("x" * 400, "\n\n=== Current Page ===\n", 20)

        self.assertEqual(body, "")
        self.assertEqual(omitted, 1)

    def test_reference_list_keeps_prefix(self):
        """Test the first entries are kept and the rest counted."""
        lines = [f"- entry {i:02d} ((e{i:02d}))" for i in range(20)]
        header = "\n\n=== Linked References ===\n"

        body, omitted = truncate_reference_list("\n".join(lines), header, 50)

        kept = body.splitlines()[:-1]
        self.assertEqual(kept, lines[:len(kept)])
        self.assertEqual(body.splitlines()[-1], f"...and {omitted} more")
        self.assertEqual(len(kept) + omitted, 20)
        self.assertLessEqual(estimate_tokens(header + body), 50)

    def test_reference_list_empty(self):
        """Test an empty list truncates to nothing."""
        self.assertEqual(truncate_reference_list("", "h", 10), ("", 0))


if __name__ == "__main__":
    unittest.main()
