"""Tests for use cases."""

import base64
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
import yaml

from research_pipeline.adapters.agent import Synthesizer
from research_pipeline.adapters.agent.synthesizer import SKIPPED_NO_AGENT, SKIPPED_QUICK_MODE
from research_pipeline.adapters.fetch import Fetcher
from research_pipeline.core import ItemType, Mode, QualityLevel, SearchOpts
from research_pipeline.use_cases import PipelineResult, ReportService, ResearchPipeline

from factories import make_raw


def github_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/repos/test/missing/readme":
        return httpx.Response(404)
    content = base64.b64encode(b"Speech synthesis toolkit").decode()
    return httpx.Response(200, json={"encoding": "base64", "content": content})


def make_source(items, name: str = "mock"):
    source = AsyncMock()
    source.name = name
    source.search.return_value = items
    return source


def make_pipeline(sources) -> ResearchPipeline:
    return ResearchPipeline(
        sources=sources,
        fetcher=Fetcher(transport=httpx.MockTransport(github_handler)),
        synthesizer=Synthesizer(agent_command=""),
    )


@pytest.mark.asyncio
async def test_pipeline_runs_all_stages() -> None:
    """Test the pipeline fetches, synthesizes and scores every item."""
    items = [
        make_raw(item_id="repo", metadata={"stars": 5000}),
        make_raw(item_id="missing", url="https://github.com/test/missing"),
        make_raw(
            item_id="hn-1",
            item_type=ItemType.HN_STORY,
            title="Speech synthesis on the edge",
            url="https://news.ycombinator.com/item?id=1",
            metadata={"points": 300, "story_text": "details"},
        ),
    ]
    pipeline = make_pipeline([make_source(items)])

    result = await pipeline.run("speech synthesis", mode=Mode.DEEP)

    assert isinstance(result, PipelineResult)
    assert [item.raw.id for item in result.items] == ["repo", "missing", "hn-1"]
    assert result.items[0].synthesized.fetched.content == "Speech synthesis toolkit"
    assert all(item.synthesized.synthesis.summary == SKIPPED_NO_AGENT for item in result.items)

    assert len(result.errors) == 1
    assert result.errors[0].item_id == "missing"
    assert result.errors[0].stage == "fetch"
    assert result.finished_at >= result.started_at


@pytest.mark.asyncio
async def test_quick_mode_skips_fetch_and_synthesis() -> None:
    synthesizer = Synthesizer(agent_command="claude")
    pipeline = ResearchPipeline(
        sources=[make_source([make_raw()])],
        fetcher=Fetcher(transport=httpx.MockTransport(Mock(side_effect=AssertionError("no requests")))),
        synthesizer=synthesizer,
    )

    result = await pipeline.run("q", mode=Mode.QUICK)

    assert result.items[0].synthesized.fetched.fetch_success
    assert result.items[0].synthesized.synthesis.summary == SKIPPED_QUICK_MODE
    assert result.errors == []


@pytest.mark.asyncio
async def test_search_deduplicates_and_skips_failing_sources() -> None:
    failing = make_source([], name="broken")
    failing.search.side_effect = RuntimeError("API down")
    first = make_source([make_raw(item_id="a"), make_raw(item_id="b")])
    second = make_source([make_raw(item_id="b"), make_raw(item_id="c")])
    pipeline = make_pipeline([failing, first, second])

    items = await pipeline.search("q", SearchOpts(max_results=10))

    assert [item.id for item in items] == ["a", "b", "c"]
    first.search.assert_awaited_once()


@pytest.mark.asyncio
async def test_ranked_orders_by_score() -> None:
    items = [
        make_raw(item_id="low", metadata={"stars": 1}),
        make_raw(item_id="high", metadata={"stars": 9000}),
    ]
    result = await make_pipeline([make_source(items)]).run("q", mode=Mode.QUICK)

    assert [item.raw.id for item in result.ranked()] == ["high", "low"]
    assert sum(result.by_level().values()) == 2


@pytest.mark.asyncio
async def test_report_service_saves_report_and_result(tmp_path) -> None:
    """Test report service renders and persists results."""
    result = await make_pipeline([make_source([make_raw()])]).run("q", mode=Mode.QUICK)
    generator = Mock()
    generator.generate.return_value = "# Report"
    service = ReportService(generator)

    report_path = service.save_report(result, tmp_path / "out" / "report.md")
    result_path = service.save_result(result, tmp_path / "out" / "report.yaml")

    assert report_path.read_text(encoding="utf-8") == "# Report"
    generator.generate.assert_called_once_with(result)

    data = yaml.safe_load(result_path.read_text(encoding="utf-8"))
    assert data["query"] == "q"
    assert data["mode"] == "quick"
    assert data["items"][0]["synthesized"]["fetched"]["raw"]["id"] == "item-1"
    assert set(data["counts"]) == {level.value for level in QualityLevel}
