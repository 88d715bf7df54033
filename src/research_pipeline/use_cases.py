"""Business logic use cases."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from research_pipeline.adapters.agent import Synthesizer
from research_pipeline.adapters.fetch import Fetcher
from research_pipeline.core import (
    FetchOpts,
    ItemError,
    Mode,
    QualityLevel,
    RawItem,
    ReportGenerator,
    ScoredItem,
    ScoreOpts,
    Scorer,
    SearchOpts,
    SearchSource,
    SynthesizeOpts,
)
from research_pipeline.core.entities import utc_now
from research_pipeline.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one Search → Fetch → Synthesize → Score run.

    ``items`` keeps search order; use ``ranked()`` for presentation.
    """

    query: str
    mode: Mode
    items: list[ScoredItem]
    errors: list[ItemError] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime = field(default_factory=utc_now)

    def ranked(self) -> list[ScoredItem]:
        """Items by descending score; ties keep their search order."""
        return sorted(self.items, key=lambda item: item.score.value, reverse=True)

    def by_level(self) -> dict[QualityLevel, int]:
        counts = {level: 0 for level in QualityLevel}
        for item in self.items:
            counts[item.score.level] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "mode": self.mode.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "counts": {level.value: count for level, count in self.by_level().items()},
            "errors": [
                {"index": e.index, "item_id": e.item_id, "stage": e.stage, "message": e.message}
                for e in self.errors
            ],
            "items": [item.to_dict() for item in self.ranked()],
        }


class ResearchPipeline:
    """Run the four pipeline stages over the items of all sources."""

    def __init__(
        self,
        sources: list[SearchSource],
        fetcher: Fetcher,
        synthesizer: Synthesizer,
        scorer: Optional[Scorer] = None,
    ) -> None:
        self.sources = sources
        self.fetcher = fetcher
        self.synthesizer = synthesizer
        self.scorer = scorer or Scorer()

    async def search(self, query: str, opts: Optional[SearchOpts] = None) -> list[RawItem]:
        """Collect items from every source; a failing source contributes nothing."""
        opts = opts or SearchOpts()
        items: list[RawItem] = []
        seen_ids: set[str] = set()

        for source in self.sources:
            name = getattr(source, "name", source.__class__.__name__)
            try:
                found = await source.search(query, opts)
            except Exception as e:
                logger.error("search_source_failed", source=name, error=str(e))
                continue

            added = 0
            for item in found:
                if item.id in seen_ids:
                    continue
                seen_ids.add(item.id)
                items.append(item)
                added += 1
            logger.info("search_source_completed", source=name, found=len(found), added=added)

        return items

    async def run(
        self,
        query: str,
        mode: Mode = Mode.BALANCED,
        search_opts: Optional[SearchOpts] = None,
        fetch_opts: Optional[FetchOpts] = None,
        synthesize_opts: Optional[SynthesizeOpts] = None,
        score_opts: Optional[ScoreOpts] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PipelineResult:
        """Search, fetch, synthesize and score.

        Stage options default to the given ``mode``; item-local failures end
        up in ``PipelineResult.errors`` and never abort the run.
        """
        started_at = utc_now()
        errors: list[ItemError] = []

        raw_items = await self.search(query, search_opts)
        fetched = await self.fetcher.fetch_batch(
            raw_items, fetch_opts or FetchOpts(mode=mode), cancel_event, errors
        )
        synthesized = await self.synthesizer.synthesize_batch(
            fetched, query, synthesize_opts or SynthesizeOpts(mode=mode), cancel_event, errors
        )
        scored = self.scorer.score_batch(synthesized, score_opts, query=query)

        result = PipelineResult(
            query=query,
            mode=mode,
            items=scored,
            errors=errors,
            started_at=started_at,
            finished_at=utc_now(),
        )
        logger.info(
            "pipeline_completed",
            query=query,
            mode=mode.value,
            items=len(scored),
            errors=len(errors),
        )
        return result


class ReportService:
    """Render and persist pipeline results."""

    def __init__(self, report_generator: ReportGenerator) -> None:
        self.report_generator = report_generator

    def render(self, result: PipelineResult) -> str:
        return self.report_generator.generate(result)

    def save_report(self, result: PipelineResult, output_path: Path) -> Path:
        """Save the rendered report."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.render(result), encoding="utf-8")
        logger.info("report_saved", path=str(output_path))
        return output_path

    def save_result(self, result: PipelineResult, output_path: Path) -> Path:
        """Save the full result as YAML."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(result.to_dict(), f, allow_unicode=True, default_flow_style=False, sort_keys=False)
        logger.info("result_saved", path=str(output_path))
        return output_path
