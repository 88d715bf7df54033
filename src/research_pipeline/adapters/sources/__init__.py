"""Source adapters for producing raw items."""

from research_pipeline.adapters.sources.file_source import FileSource

__all__ = ["FileSource"]
