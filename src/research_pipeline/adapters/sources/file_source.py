"""Search source backed by a YAML or JSON file of raw items."""

from pathlib import Path
from typing import Any

import yaml

from research_pipeline.core import RawItem, SearchOpts, SearchSource
from research_pipeline.logging import get_logger

logger = get_logger(__name__)


class FileSource(SearchSource):
    """Load raw items exported by a search adapter.

    The file holds either a list of items or a mapping with an ``items``
    list. JSON is accepted as well, since it is a subset of YAML.
    """

    name = "file"

    def __init__(self, path: Path) -> None:
        self.path = path

    async def search(self, query: str, opts: SearchOpts) -> list[RawItem]:
        """Return the stored items, honouring ``max_results``."""
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or []

        entries: Any = data.get("items", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ValueError(f"{self.path}: expected a list of items")

        items: list[RawItem] = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                logger.warning("file_source_entry_skipped", path=str(self.path), position=position)
                continue
            try:
                items.append(RawItem.from_dict(entry))
            except ValueError as e:
                logger.warning("file_source_entry_invalid", path=str(self.path), position=position, error=str(e))

        if opts.max_results > 0:
            items = items[:opts.max_results]
        logger.info("file_source_loaded", path=str(self.path), items=len(items))
        return items
