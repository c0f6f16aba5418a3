"""
Unit tests for core notecontext components.

Tests configuration management, data models, rendering and token estimation.
"""

import os
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from notecontext.config import ConfigManager
from notecontext.models import Block, Page, ContentSection, SectionKind, CacheEntry
from notecontext.rendering import (
    render,
    current_page_text,
    sidebar_notes_text,
    linked_references_text,
    content_projection,
)
from notecontext.sources import page_from_outline
from notecontext.tokens import estimate_tokens, context_budget, model_context_window


class TestConfigManager(unittest.TestCase):
    """Test configuration management functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "test_config.yaml"

    def tearDown(self):
        """Clean up test fixtures."""
        if self.config_path.exists():
            self.config_path.unlink()
        os.rmdir(self.temp_dir)

    def test_config_creation_with_defaults(self):
        """Test config manager falls back to defaults when file missing."""
        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.reserve_fraction, 0.7)
        self.assertEqual(config.debounce_ms, 300)
        self.assertEqual(config.default_context_window, 6000)
        self.assertEqual(config.section_share(SectionKind.CURRENT_PAGE), 0.5)
        self.assertEqual(config.section_priority(SectionKind.LINKED_REFERENCES), 4)

    def test_config_loading_from_file(self):
        """Test loading configuration from YAML file merges over defaults."""
        test_config = """
context:
  reserve_fraction: 0.6
  section_shares:
    current_page: 0.4

cache:
  debounce_ms: 150
"""
        with open(self.config_path, 'w') as f:
            f.write(test_config)

        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.reserve_fraction, 0.6)
        self.assertEqual(config.debounce_ms, 150)
        self.assertEqual(config.section_share(SectionKind.CURRENT_PAGE), 0.4)
        # Untouched defaults survive the merge
        self.assertEqual(config.section_share(SectionKind.SIDEBAR_NOTES), 0.2)
        self.assertEqual(config.default_ttl_ms, 30000)

    def test_overrides_apply_last(self):
        """Test constructor overrides win over file and defaults."""
        config = ConfigManager(str(self.config_path), overrides={"cache": {"max_entries": 5}})

        self.assertEqual(config.cache_max_entries, 5)
        self.assertEqual(config.debounce_ms, 300)

    def test_dot_notation_access(self):
        """Test accessing config values with dot notation."""
        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.get("cache.debounce_ms"), 300)
        self.assertEqual(config.get("context.section_shares.visible_content"), 0.2)
        self.assertEqual(config.get("nonexistent.key", "default"), "default")

    def test_config_reload(self):
        """Test configuration reloading."""
        with open(self.config_path, 'w') as f:
            f.write("search:\n  ttl_ms: 1000")

        config = ConfigManager(str(self.config_path))
        self.assertEqual(config.search_ttl_ms, 1000)

        with open(self.config_path, 'w') as f:
            f.write("search:\n  ttl_ms: 2000")

        config.reload()
        self.assertEqual(config.search_ttl_ms, 2000)

    def test_independent_instances(self):
        """Test two managers do not share state."""
        first = ConfigManager(str(self.config_path), overrides={"context": {"reserve_fraction": 0.5}})
        second = ConfigManager(str(self.config_path))

        self.assertEqual(first.reserve_fraction, 0.5)
        self.assertEqual(second.reserve_fraction, 0.7)


class TestDataModels(unittest.TestCase):
    """Test data model validation and functionality."""

    def test_block_children_sorted_by_order(self):
        """Test children are kept sorted by order, stable for ties."""
        block = Block(uid="parent", text="Parent", children=[
            Block(uid="c", text="third", order=2),
            Block(uid="a", text="first", order=0),
            Block(uid="b1", text="second", order=1),
            Block(uid="b2", text="second too", order=1),
        ])

        self.assertEqual([c.uid for c in block.children], ["a", "b1", "b2", "c"])

    def test_duplicate_child_uid_rejected(self):
        """Test sibling blocks may not share a uid."""
        with self.assertRaises(ValidationError):
            Block(uid="parent", text="Parent", children=[
                Block(uid="dup", text="one"),
                Block(uid="dup", text="two", order=1),
            ])

    def test_duplicate_uid_across_page_rejected(self):
        """Test a uid may appear only once in a page tree."""
        with self.assertRaises(ValidationError):
            Page(title="P", uid="p", blocks=[
                Block(uid="x", text="top", children=[Block(uid="y", text="child")]),
                Block(uid="y", text="clash", order=1),
            ])

    def test_block_is_immutable(self):
        """Test blocks cannot be modified after construction."""
        block = Block(uid="b", text="text")

        with self.assertRaises(ValidationError):
            block.text = "changed"

    def test_page_block_uids(self):
        """Test collecting every uid in a page tree."""
        page = Page(title="P", uid="p", blocks=[
            Block(uid="x", text="top", children=[Block(uid="y", text="child")]),
        ])

        self.assertEqual(page.block_uids(), {"x", "y"})

    def test_section_share_bounds(self):
        """Test priority shares must lie in (0, 1]."""
        with self.assertRaises(ValidationError):
            ContentSection(kind=SectionKind.CURRENT_PAGE, priority=1, priority_share=0.0)
        with self.assertRaises(ValidationError):
            ContentSection(kind=SectionKind.CURRENT_PAGE, priority=1, priority_share=1.5)

    def test_section_header(self):
        """Test headers are derived from kind and label."""
        section = ContentSection(kind=SectionKind.CURRENT_PAGE, priority=1, priority_share=0.5, label="Inbox")

        self.assertEqual(section.header, "\n\n=== Current Page: Inbox ===\n")

    def test_cache_entry_validity(self):
        """Test an entry is valid strictly before its TTL elapses."""
        entry = CacheEntry(value=1, computed_at=100.0, ttl_ms=500)

        self.assertTrue(entry.is_valid(100.499))
        self.assertFalse(entry.is_valid(100.5))


class TestRendering(unittest.TestCase):
    """Test canonical rendering of block trees."""

    def test_render_nested_blocks(self):
        """Test depth-first rendering with two-space indentation."""
        blocks = [
            Block(uid="a", text="Alpha", children=[
                Block(uid="a1", text="Alpha one", children=[Block(uid="a1x", text="Deep")]),
            ]),
            Block(uid="b", text="Beta", order=1),
        ]

        self.assertEqual(render(blocks), "- Alpha\n  - Alpha one\n    - Deep\n- Beta")

    def test_render_with_indent_level(self):
        """Test a starting indent level shifts every line."""
        self.assertEqual(render([Block(uid="a", text="Alpha")], 2), "    - Alpha")

    def test_render_empty_input(self):
        """Test empty input renders as an empty string."""
        self.assertEqual(render([]), "")

    def test_empty_block_drops_subtree(self):
        """Test a blank block hides its children even if they have text."""
        blocks = [Block(uid="empty", text="   ", children=[Block(uid="child", text="Visible?")])]

        self.assertEqual(render(blocks), "")

    def test_render_with_refs(self):
        """Test block references are appended on request."""
        self.assertEqual(render([Block(uid="u1", text="Alpha")], with_refs=True), "- Alpha ((u1))")

    def test_current_page_text_paragraph_per_subtree(self):
        """Test each top-level subtree becomes its own paragraph."""
        page = page_from_outline("P", "p", "- One\n  - One child\n- Two\n-  \n  - hidden")

        self.assertEqual(
            current_page_text(page),
            "- One ((p-0))\n  - One child ((p-1))\n\n- Two ((p-2))",
        )

    def test_sidebar_notes_skip_excluded_blocks(self):
        """Test sidebar notes leave out blocks already shown elsewhere."""
        note = Page(title="Side", uid="s", blocks=[
            Block(uid="shared", text="Already on the page"),
            Block(uid="own", text="Only here", order=1),
        ])

        text = sidebar_notes_text([note], exclude_uids={"shared"})

        self.assertIn('**Sidebar: "Side"**', text)
        self.assertIn("Only here", text)
        self.assertNotIn("Already on the page", text)

    def test_linked_references_one_line_each(self):
        """Test references are flattened to one line per entry."""
        refs = [
            Block(uid="r1", text="First\nwith a break"),
            Block(uid="r2", text="  "),
            Block(uid="r3", text="Third"),
        ]

        self.assertEqual(linked_references_text(refs), "- First with a break ((r1))\n- Third ((r3))")

    def test_content_projection_is_ordered(self):
        """Test the projection lists (uid, text, order, depth) depth-first."""
        page = Page(title="P", uid="p", blocks=[
            Block(uid="x", text="top", children=[Block(uid="y", text="child")]),
        ])

        self.assertEqual(
            content_projection(page),
            ("page", "p", "P", [(("x", "top", 0, 0), ("y", "child", 0, 1))]),
        )


class TestTokens(unittest.TestCase):
    """Test token estimation and budget derivation."""

    def test_estimate_tokens(self):
        """Test the chars/4 heuristic rounds up."""
        self.assertEqual(estimate_tokens(""), 0)
        self.assertEqual(estimate_tokens("abc"), 1)
        self.assertEqual(estimate_tokens("abcd"), 1)
        self.assertEqual(estimate_tokens("abcde"), 2)

    def test_context_budget(self):
        """Test the budget keeps the reserve fraction of the window."""
        self.assertEqual(context_budget(6000), 4200)
        self.assertEqual(context_budget(1001, 0.5), 500)

    def test_model_context_window(self):
        """Test known models, Ollama heuristics and fallbacks."""
        self.assertEqual(model_context_window("openai", "gpt-4"), 6000)
        self.assertEqual(model_context_window("anthropic", "claude-3-haiku-20240307"), 180000)
        self.assertEqual(model_context_window("ollama", "llama3.1:70b"), 24000)
        self.assertEqual(model_context_window("ollama", "qwen2.5:7b"), 12000)
        self.assertEqual(model_context_window("ollama", "phi"), 8000)
        self.assertEqual(model_context_window("unknown", "model"), 6000)
        self.assertEqual(model_context_window(None, None, default=1234), 1234)


if __name__ == "__main__":
    unittest.main()
