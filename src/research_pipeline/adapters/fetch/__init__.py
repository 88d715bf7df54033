"""Fetch stage adapters."""

from research_pipeline.adapters.fetch.fetcher import Fetcher, rebuild_inverted_abstract

__all__ = ["Fetcher", "rebuild_inverted_abstract"]
