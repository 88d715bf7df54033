"""CLI entry point for the research pipeline."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from research_pipeline.adapters.digest import MarkdownReportGenerator
from research_pipeline.adapters.sources import FileSource
from research_pipeline.config import Settings, get_settings
from research_pipeline.core import Mode, QualityLevel, SearchOpts
from research_pipeline.errors import ConfigError
from research_pipeline.logging import configure_logging
from research_pipeline.use_cases import PipelineResult, ReportService, ResearchPipeline

LEVEL_MARKS = {
    QualityLevel.HIGH: "★",
    QualityLevel.MEDIUM: "•",
    QualityLevel.LOW: "·",
}


def main(
    items_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML/JSON file with raw items"),
    query: str = typer.Option("", "--query", "-q", help="Research question the items are scored against"),
    mode: Optional[Mode] = typer.Option(None, "--mode", "-m", help="quick, balanced or deep"),
    agent: Optional[str] = typer.Option(None, "--agent", help="Agent command, e.g. 'claude'"),
    config: Path = typer.Option(Path("config.yaml"), "--config", help="Settings file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Markdown report path"),
    max_results: int = typer.Option(50, "--max-results", help="Maximum items to process"),
    no_report: bool = typer.Option(False, "--no-report", help="Only print the ranking"),
) -> None:
    """Fetch, synthesize and score research items, then rank them."""
    try:
        settings = get_settings(config)
    except ConfigError as e:
        print(f"✗ {e.message}")
        raise typer.Exit(code=2)

    if agent is not None:
        settings.agent.command = agent
    if mode is not None:
        settings.mode = mode

    configure_logging(settings.log_level)
    result = asyncio.run(async_run(settings, items_file, query, max_results))
    print_summary(result)

    if no_report:
        return

    report_service = ReportService(MarkdownReportGenerator())
    if output is None:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        output = settings.paths.output_dir / f"{timestamp}_report.md"
    report_service.save_report(result, output)
    result_path = report_service.save_result(result, output.with_suffix(".yaml"))

    print(f"\n📄 Report saved: {output}")
    print(f"🗂  Result saved: {result_path}")


def app() -> None:
    """CLI entry point."""
    typer.run(main)


async def async_run(settings: Settings, items_file: Path, query: str, max_results: int) -> PipelineResult:
    """Async implementation of the run command."""
    print("\n" + "=" * 70)
    print("🔬 RESEARCH PIPELINE")
    print("=" * 70)
    print(f"  • Query: {query or '(none)'}")
    print(f"  • Mode: {settings.mode.value}")
    if settings.agent.command:
        print(f"  ✓ Agent: {settings.agent.command}")
    else:
        print("  ⚠️  Agent: not configured (synthesis skipped)")
    if not settings.github_token:
        print("  ⚠️  GITHUB_TOKEN: not found (limited rate limit)")

    pipeline = ResearchPipeline(
        sources=[FileSource(items_file)],
        fetcher=settings.build_fetcher(),
        synthesizer=settings.build_synthesizer(),
    )

    return await pipeline.run(
        query,
        mode=settings.mode,
        search_opts=SearchOpts(max_results=max_results),
        fetch_opts=settings.fetch_opts(),
        synthesize_opts=settings.synthesize_opts(),
        score_opts=settings.score_opts(),
    )


def print_summary(result: PipelineResult) -> None:
    counts = result.by_level()
    print("\n" + "=" * 70)
    print(f"📊 RESULTS: {len(result.items)} items")
    print("=" * 70)
    print(
        f"  high: {counts[QualityLevel.HIGH]} | medium: {counts[QualityLevel.MEDIUM]} | "
        f"low: {counts[QualityLevel.LOW]} | errors: {len(result.errors)}"
    )

    for position, item in enumerate(result.ranked(), 1):
        mark = LEVEL_MARKS[item.score.level]
        print(f"\n  {position:>2}. {mark} [{item.score.value:.0%}] {item.raw.title[:70]}")
        print(f"      └─ {item.raw.url}")
        summary = item.synthesized.synthesis.summary
        if summary:
            print(f"      └─ {summary[:100]}")


if __name__ == "__main__":
    app()
