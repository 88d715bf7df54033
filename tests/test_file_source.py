"""Tests for the file-backed search source."""

import json
from pathlib import Path

import pytest

from research_pipeline.adapters.sources import FileSource
from research_pipeline.core import ItemType, SearchOpts


@pytest.mark.asyncio
async def test_loads_yaml_items(tmp_path: Path) -> None:
    path = tmp_path / "items.yaml"
    path.write_text("""
items:
  - id: gh-1
    type: github_repo
    title: Repo
    url: https://github.com/a/b
    metadata:
      stars: 10
  - type: hn_story
    title: Story
    url: https://news.ycombinator.com/item?id=2
""", encoding="utf-8")

    items = await FileSource(path).search("q", SearchOpts())

    assert [item.id for item in items] == ["gh-1", "https://news.ycombinator.com/item?id=2"]
    assert items[0].type is ItemType.GITHUB_REPO
    assert items[0].metadata["stars"] == 10
    assert items[1].type is ItemType.HN_STORY


@pytest.mark.asyncio
async def test_loads_json_list_and_honours_max_results(tmp_path: Path) -> None:
    path = tmp_path / "items.json"
    entries = [{"id": f"x-{i}", "type": "other", "title": str(i), "url": ""} for i in range(5)]
    path.write_text(json.dumps(entries), encoding="utf-8")

    items = await FileSource(path).search("q", SearchOpts(max_results=3))

    assert [item.id for item in items] == ["x-0", "x-1", "x-2"]


@pytest.mark.asyncio
async def test_invalid_entries_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "items.yaml"
    path.write_text("""
- just a string
- type: github_repo
  title: no id or url
- id: ok
  type: github_repo
  title: Valid
  url: https://github.com/a/b
""", encoding="utf-8")

    items = await FileSource(path).search("q", SearchOpts())

    assert [item.id for item in items] == ["ok"]


@pytest.mark.asyncio
async def test_non_list_content_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "items.yaml"
    path.write_text("items: 42\n", encoding="utf-8")

    with pytest.raises(ValueError, match="expected a list"):
        await FileSource(path).search("q", SearchOpts())
