"""
Section anchors and table-of-contents cross references.

Each rendered section gets a stable anchor (``section_<key>``) wrapped
around its heading. TOC rows point at the same anchor through a
``PageReference``; the page number itself is left to the consumer (a
PAGEREF field in DOCX, the stamping pass in PDF).
"""

from __future__ import annotations

import logging
from typing import Dict, List

from ..exceptions import LayoutError
from ..models.document_tree import Bookmark, PageReference

logger = logging.getLogger(__name__)

ANCHOR_PREFIX = "section_"


def anchor_for(section_key: str) -> str:
    return f"{ANCHOR_PREFIX}{section_key}"


class BookmarkResolver:
    """Assigns anchors, heading numbers and bookmark ids for one document."""

    def __init__(self, first_bookmark_id: int = 1):
        self._bookmarks: Dict[str, Bookmark] = {}
        self._next_id = first_bookmark_id

    def register(self, section_key: str, title: str) -> Bookmark:
        """
        Register a rendered section.

        Numbers are assigned in registration order, so skipped sections
        leave no gaps ("1.0", "2.0", ...).

        Raises:
            LayoutError: If the section was already registered
        """
        anchor = anchor_for(section_key)
        if anchor in self._bookmarks:
            raise LayoutError("Duplicate section anchor", anchor)

        bookmark = Bookmark(
            anchor=anchor,
            title=title,
            number=len(self._bookmarks) + 1,
            bookmark_id=self._next_id,
        )
        self._next_id += 1
        self._bookmarks[anchor] = bookmark
        logger.debug(f"Registered bookmark {anchor} as {bookmark.heading!r}")
        return bookmark

    def get(self, anchor: str) -> Bookmark:
        try:
            return self._bookmarks[anchor]
        except KeyError:
            raise LayoutError("Unknown section anchor", anchor) from None

    def page_reference(self, anchor: str) -> PageReference:
        """Forward reference to the page holding ``anchor``."""
        self.get(anchor)
        return PageReference(anchor=anchor)

    @property
    def bookmarks(self) -> List[Bookmark]:
        return list(self._bookmarks.values())

    def __contains__(self, anchor: str) -> bool:
        return anchor in self._bookmarks

    def __len__(self) -> int:
        return len(self._bookmarks)
