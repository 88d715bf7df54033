"""Factories shared by the pipeline tests."""

import shlex
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from research_pipeline.core import (
    FetchedItem,
    ItemType,
    RawItem,
    Synthesis,
    SynthesizedItem,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_raw(
    item_id: str = "item-1",
    item_type: ItemType = ItemType.GITHUB_REPO,
    title: str = "Test Repo",
    url: str = "https://github.com/test/repo",
    metadata: Optional[dict[str, Any]] = None,
    collected_at: datetime = NOW,
) -> RawItem:
    return RawItem(
        id=item_id,
        type=item_type,
        title=title,
        url=url,
        metadata=metadata or {},
        collected_at=collected_at,
    )


def make_fetched(raw: Optional[RawItem] = None, content: str = "", success: bool = True) -> FetchedItem:
    return FetchedItem(
        raw=raw or make_raw(),
        content=content,
        content_type="readme" if content else "",
        fetch_success=success,
    )


def make_synthesized(
    raw: Optional[RawItem] = None,
    content: str = "",
    confidence: float = 0.0,
    fetch_success: bool = True,
) -> SynthesizedItem:
    return SynthesizedItem(
        fetched=make_fetched(raw, content, fetch_success),
        synthesis=Synthesis(summary="summary", confidence=confidence),
    )


def python_agent(script: str) -> str:
    """Agent command running ``script`` with the current interpreter."""
    return shlex.join([sys.executable, "-c", script])
