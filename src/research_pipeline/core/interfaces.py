"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from research_pipeline.core.entities import RawItem
from research_pipeline.core.options import SearchOpts

if TYPE_CHECKING:
    from research_pipeline.use_cases import PipelineResult


class SearchSource(ABC):
    """Interface for producing raw items from an external source."""

    name: str = "source"

    @abstractmethod
    async def search(self, query: str, opts: SearchOpts) -> list[RawItem]:
        """Return candidate items for the query."""
        pass


class ReportGenerator(ABC):
    """Interface for rendering pipeline results."""

    @abstractmethod
    def generate(self, result: "PipelineResult") -> str:
        """Render the result as text."""
        pass
