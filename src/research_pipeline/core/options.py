"""Per-call option objects for the pipeline stages.

All options are immutable and carry their documented defaults, so a stage
call never depends on process-wide mutable state.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from research_pipeline.core.entities import ContentCategory, Mode

DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True)
class SearchOpts:
    """Search stage settings."""
    max_results: int = 50
    min_stars: int = 0
    min_points: int = 0
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class FetchOpts:
    """Fetch stage settings.

    ``timeout`` is the per-request HTTP timeout in seconds.
    """
    mode: Mode = Mode.BALANCED
    fetch_readme: bool = True
    fetch_docs: bool = False
    timeout: float = DEFAULT_HTTP_TIMEOUT


@dataclass(frozen=True)
class SynthesizeOpts:
    """Synthesize stage settings.

    Zero values fall back to the synthesizer's configured defaults.
    ``limit`` caps how many items are synthesized in balanced mode.
    """
    mode: Mode = Mode.BALANCED
    limit: int = 0
    parallelism: int = 0
    timeout: float = 0.0


@dataclass(frozen=True)
class ScoreWeights:
    """Relative importance of the scoring factors."""
    engagement: float = 0.25
    citations: float = 0.20
    recency: float = 0.25
    query_match: float = 0.15
    synthesis: float = 0.15

    def as_dict(self) -> dict[str, float]:
        return {
            "engagement": self.engagement,
            "citations": self.citations,
            "recency": self.recency,
            "query_match": self.query_match,
            "synthesis": self.synthesis,
        }

    def normalized(self) -> dict[str, float]:
        """Weights scaled to sum to one (all zeros if the total is zero)."""
        weights = self.as_dict()
        total = sum(weights.values())
        if total <= 0:
            return {name: 0.0 for name in weights}
        return {name: value / total for name, value in weights.items()}


@dataclass(frozen=True)
class HalfLives:
    """Recency half-life per content category."""
    trends: timedelta = timedelta(days=7)
    repos: timedelta = timedelta(days=90)
    research: timedelta = timedelta(days=365)

    def for_category(self, category: ContentCategory) -> timedelta:
        return getattr(self, category.value)


@dataclass(frozen=True)
class ScoreThresholds:
    """Lower bounds of the high and medium quality levels."""
    high: float = 0.7
    medium: float = 0.4

    def __post_init__(self) -> None:
        if self.medium > self.high:
            raise ValueError("Medium threshold cannot exceed high threshold")


@dataclass(frozen=True)
class ScoreOpts:
    """Score stage settings."""
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    half_lives: HalfLives = field(default_factory=HalfLives)
    thresholds: ScoreThresholds = field(default_factory=ScoreThresholds)
