"""
Paginated PDF layout: positioned blocks grouped by page.

Frames use top-down coordinates in points (``top`` measured from the top
page edge); the compiler converts to the canvas's bottom-up space.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# draw order within a page
LAYER_FILL = 0
LAYER_CONTENT = 1
LAYER_BORDER = 2


@dataclass(slots=True)
class Frame:
    x: float
    top: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(slots=True)
class LayoutBlock:
    """
    One drawable item.

    kind:
        text      - content: TextLine, alignment in ``style``
        image     - content: FetchedImage
        fill      - content: hex fill color
        border    - content: hex stroke color
        page_ref  - content: anchor; resolved to a page number when drawn
        link      - content: anchor of the link target
        bookmark  - content: (anchor, title)
    """

    kind: str
    frame: Frame
    content: Any = None
    style: Dict[str, Any] = field(default_factory=dict)
    layer: int = LAYER_CONTENT


@dataclass(slots=True)
class LayoutPage:
    number: int
    blocks: List[LayoutBlock] = field(default_factory=list)

    def add(self, block: LayoutBlock) -> LayoutBlock:
        self.blocks.append(block)
        return block

    def ordered_blocks(self) -> List[LayoutBlock]:
        return sorted(self.blocks, key=lambda block: block.layer)


@dataclass(slots=True)
class PDFLayout:
    pages: List[LayoutPage] = field(default_factory=list)
    anchors: Dict[str, int] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page_of(self, anchor: str) -> Optional[int]:
        return self.anchors.get(anchor)
