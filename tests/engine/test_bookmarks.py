"""
Tests for section anchors and TOC references.
"""

import pytest

from audit_report.engine.bookmarks import BookmarkResolver, anchor_for
from audit_report.exceptions import LayoutError
from audit_report.models.document_tree import PageReference


class TestBookmarkResolver:
    """Test cases for BookmarkResolver."""

    def test_numbers_follow_registration_order(self):
        """Test that headings are numbered without gaps."""
        resolver = BookmarkResolver()
        first = resolver.register("highlights", "Major Highlights")
        second = resolver.register("power_parameters", "Power Parameters")

        assert first.heading == "1.0 Major Highlights"
        assert second.heading == "2.0 Power Parameters"
        assert [b.anchor for b in resolver.bookmarks] == ["section_highlights", "section_power_parameters"]
        assert len(resolver) == 2

    def test_bookmark_ids_are_unique(self):
        """Test id assignment from the configured start."""
        resolver = BookmarkResolver(first_bookmark_id=10)
        ids = [resolver.register(key, key.title()).bookmark_id for key in ("a", "b", "c")]

        assert ids == [10, 11, 12]

    def test_duplicate_section(self):
        """Test that a section can only be registered once."""
        resolver = BookmarkResolver()
        resolver.register("conclusions", "Conclusions")

        with pytest.raises(LayoutError):
            resolver.register("conclusions", "Conclusions")

    def test_page_reference(self):
        """Test forward references to registered anchors."""
        resolver = BookmarkResolver()
        resolver.register("snapshots", "Snapshots")

        reference = resolver.page_reference(anchor_for("snapshots"))

        assert isinstance(reference, PageReference)
        assert reference.anchor == "section_snapshots"
        assert reference.placeholder == "-"
        assert "section_snapshots" in resolver

    def test_unknown_anchor(self):
        """Test that references to unregistered sections fail."""
        resolver = BookmarkResolver()

        with pytest.raises(LayoutError):
            resolver.page_reference("section_missing")
        with pytest.raises(LayoutError):
            resolver.get("section_missing")
