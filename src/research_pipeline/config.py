"""Configuration management."""

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import yaml

from research_pipeline.adapters.agent import Synthesizer
from research_pipeline.adapters.fetch import Fetcher
from research_pipeline.core import (
    FetchOpts,
    HalfLives,
    Mode,
    ScoreOpts,
    ScoreThresholds,
    ScoreWeights,
    SynthesizeOpts,
)
from research_pipeline.errors import ConfigError


@dataclass
class AgentConfig:
    """Reasoning agent settings."""
    command: str = ""
    parallelism: int = 3
    timeout: float = 120.0
    balanced_limit: int = 10


@dataclass
class FetchConfig:
    """Fetch stage settings."""
    parallelism: int = 5
    fetch_readme: bool = True
    fetch_docs: bool = False
    timeout: float = 30.0


@dataclass
class ScoringConfig:
    """Scoring weights, half-lives (days) and level thresholds."""
    weights: dict = field(default_factory=lambda: {
        "engagement": 0.25,
        "citations": 0.20,
        "recency": 0.25,
        "query_match": 0.15,
        "synthesis": 0.15,
    })
    half_lives_days: dict = field(default_factory=lambda: {
        "trends": 7,
        "repos": 90,
        "research": 365,
    })
    thresholds: dict = field(default_factory=lambda: {
        "high": 0.7,
        "medium": 0.4,
    })


@dataclass
class PathsConfig:
    """Path settings."""
    output_dir: Path = Path("reports")


@dataclass
class Settings:
    """Application settings."""

    # From environment only
    github_token: Optional[str] = None

    mode: Mode = Mode.BALANCED
    log_level: str = "INFO"

    # Config sections
    agent: AgentConfig = field(default_factory=AgentConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    def fetch_opts(self, mode: Optional[Mode] = None) -> FetchOpts:
        return FetchOpts(
            mode=mode or self.mode,
            fetch_readme=self.fetch.fetch_readme,
            fetch_docs=self.fetch.fetch_docs,
            timeout=self.fetch.timeout,
        )

    def synthesize_opts(self, mode: Optional[Mode] = None) -> SynthesizeOpts:
        return SynthesizeOpts(
            mode=mode or self.mode,
            limit=self.agent.balanced_limit,
            parallelism=self.agent.parallelism,
            timeout=self.agent.timeout,
        )

    def score_opts(self) -> ScoreOpts:
        try:
            return ScoreOpts(
                weights=ScoreWeights(**self.scoring.weights),
                half_lives=HalfLives(**{
                    category: timedelta(days=days)
                    for category, days in self.scoring.half_lives_days.items()
                }),
                thresholds=ScoreThresholds(**self.scoring.thresholds),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid scoring configuration: {e}") from e

    def build_fetcher(self) -> Fetcher:
        return Fetcher(parallelism=self.fetch.parallelism, github_token=self.github_token)

    def build_synthesizer(self) -> Synthesizer:
        return Synthesizer(
            agent_command=self.agent.command,
            parallelism=self.agent.parallelism,
            timeout=self.agent.timeout,
            balanced_limit=self.agent.balanced_limit,
        )


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return data


def _apply_section(target: Any, values: Any, section: str) -> None:
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{section}.{key}'")
        setattr(target, key, value)


def _parse_mode(value: str) -> Mode:
    try:
        return Mode(value.lower())
    except ValueError as e:
        choices = ", ".join(m.value for m in Mode)
        raise ConfigError(f"Invalid mode '{value}' (expected one of: {choices})") from e


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    # Load YAML config
    config = load_config(config_path)

    settings = Settings(github_token=os.getenv("GITHUB_TOKEN"))

    # Apply YAML config
    if "mode" in config:
        settings.mode = _parse_mode(str(config["mode"]))
    if "log_level" in config:
        settings.log_level = str(config["log_level"]).upper()

    if "agent" in config:
        _apply_section(settings.agent, config["agent"], "agent")
    if "fetch" in config:
        _apply_section(settings.fetch, config["fetch"], "fetch")
    if "scoring" in config:
        scoring = config["scoring"]
        _apply_section(settings.scoring, scoring, "scoring")
        # Partial sections override individual defaults
        defaults = ScoringConfig()
        settings.scoring.weights = {**defaults.weights, **(scoring.get("weights") or {})}
        settings.scoring.half_lives_days = {**defaults.half_lives_days, **(scoring.get("half_lives_days") or {})}
        settings.scoring.thresholds = {**defaults.thresholds, **(scoring.get("thresholds") or {})}
    if "paths" in config:
        _apply_section(settings.paths, config["paths"], "paths")
        settings.paths.output_dir = Path(settings.paths.output_dir)

    # Environment overrides
    agent_command = os.getenv("RESEARCH_AGENT_CMD")
    if agent_command is not None:
        settings.agent.command = agent_command
    mode = os.getenv("RESEARCH_PIPELINE_MODE")
    if mode:
        settings.mode = _parse_mode(mode)
    log_level = os.getenv("RESEARCH_PIPELINE_LOG_LEVEL")
    if log_level:
        settings.log_level = log_level.upper()

    # Validate eagerly so bad scoring values fail at startup
    settings.score_opts()

    return settings
