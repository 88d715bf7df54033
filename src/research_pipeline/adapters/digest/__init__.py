"""Report rendering adapters."""

from research_pipeline.adapters.digest.markdown_report import MarkdownReportGenerator

__all__ = ["MarkdownReportGenerator"]
