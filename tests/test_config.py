"""Tests for settings loading."""

from datetime import timedelta
from pathlib import Path

import pytest

from research_pipeline.config import Settings, get_settings, load_config
from research_pipeline.core import Mode
from research_pipeline.errors import ConfigError

ENV_VARS = (
    "GITHUB_TOKEN",
    "RESEARCH_AGENT_CMD",
    "RESEARCH_PIPELINE_MODE",
    "RESEARCH_PIPELINE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path) -> None:
    settings = get_settings(tmp_path / "missing.yaml")

    assert settings.mode is Mode.BALANCED
    assert settings.agent.command == ""
    assert settings.fetch.parallelism == 5
    assert settings.agent.parallelism == 3
    assert settings.agent.timeout == 120.0
    assert settings.paths.output_dir == Path("reports")


def test_yaml_values_are_applied(tmp_path: Path) -> None:
    path = write_config(tmp_path, """
mode: deep
log_level: debug
agent:
  command: claude
  timeout: 60
fetch:
  fetch_docs: true
scoring:
  weights:
    engagement: 0.5
  half_lives_days:
    trends: 3
paths:
  output_dir: out
""")

    settings = get_settings(path)

    assert settings.mode is Mode.DEEP
    assert settings.log_level == "DEBUG"
    assert settings.agent.command == "claude"
    assert settings.synthesize_opts().timeout == 60
    assert settings.fetch_opts().fetch_docs is True
    assert settings.paths.output_dir == Path("out")

    score_opts = settings.score_opts()
    assert score_opts.weights.engagement == 0.5
    assert score_opts.weights.recency == 0.25
    assert score_opts.half_lives.trends == timedelta(days=3)
    assert score_opts.half_lives.research == timedelta(days=365)


def test_environment_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = write_config(tmp_path, "mode: deep\nagent:\n  command: claude\n")
    monkeypatch.setenv("RESEARCH_AGENT_CMD", "codex exec")
    monkeypatch.setenv("RESEARCH_PIPELINE_MODE", "QUICK")
    monkeypatch.setenv("GITHUB_TOKEN", "token")

    settings = get_settings(path)

    assert settings.agent.command == "codex exec"
    assert settings.mode is Mode.QUICK
    assert settings.github_token == "token"
    assert settings.build_fetcher().github_token == "token"
    assert settings.build_synthesizer().agent_command == "codex exec"


def test_invalid_mode_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Invalid mode"):
        get_settings(write_config(tmp_path, "mode: thorough\n"))


def test_unknown_setting_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="agent.model"):
        get_settings(write_config(tmp_path, "agent:\n  model: opus\n"))


def test_invalid_yaml_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(write_config(tmp_path, "agent: [unclosed\n"))


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="mapping"):
        load_config(write_config(tmp_path, "- a\n- b\n"))


def test_invalid_thresholds_are_rejected(tmp_path: Path) -> None:
    path = write_config(tmp_path, "scoring:\n  thresholds:\n    high: 0.3\n    medium: 0.6\n")

    with pytest.raises(ConfigError, match="Invalid scoring configuration"):
        get_settings(path)


def test_unknown_weight_is_rejected() -> None:
    settings = Settings()
    settings.scoring.weights = {**settings.scoring.weights, "novelty": 0.1}

    with pytest.raises(ConfigError):
        settings.score_opts()


def test_mode_override_for_stage_options() -> None:
    settings = Settings(mode=Mode.DEEP)

    assert settings.fetch_opts().mode is Mode.DEEP
    assert settings.synthesize_opts(Mode.QUICK).mode is Mode.QUICK
