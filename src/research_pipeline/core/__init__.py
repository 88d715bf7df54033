"""Core domain layer."""

from research_pipeline.core.entities import (
    ContentCategory,
    FetchedItem,
    ItemError,
    ItemType,
    Mode,
    QualityLevel,
    QualityScore,
    RawItem,
    ScoredItem,
    Synthesis,
    SynthesizedItem,
)
from research_pipeline.core.interfaces import ReportGenerator, SearchSource
from research_pipeline.core.options import (
    FetchOpts,
    HalfLives,
    ScoreOpts,
    ScoreThresholds,
    ScoreWeights,
    SearchOpts,
    SynthesizeOpts,
)
from research_pipeline.core.pool import WorkerPool
from research_pipeline.core.scoring import Scorer

__all__ = [
    "ContentCategory",
    "FetchedItem",
    "ItemError",
    "ItemType",
    "Mode",
    "QualityLevel",
    "QualityScore",
    "RawItem",
    "ScoredItem",
    "Synthesis",
    "SynthesizedItem",
    "ReportGenerator",
    "SearchSource",
    "FetchOpts",
    "HalfLives",
    "ScoreOpts",
    "ScoreThresholds",
    "ScoreWeights",
    "SearchOpts",
    "SynthesizeOpts",
    "WorkerPool",
    "Scorer",
]
