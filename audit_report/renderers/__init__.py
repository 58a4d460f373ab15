"""PDF rendering of the report document tree."""

from .pdf_renderer import PDFLayoutEngine, PDFRenderer, render_pdf_document

__all__ = ["PDFLayoutEngine", "PDFRenderer", "render_pdf_document"]
