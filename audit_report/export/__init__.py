"""DOCX export of the report document tree."""

from .docx_exporter import DOCXExporter, export_docx

__all__ = ["DOCXExporter", "export_docx"]
