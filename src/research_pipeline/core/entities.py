"""Core domain entities shared by every pipeline stage."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Mode(str, Enum):
    """How much enrichment and synthesis work a run performs."""

    QUICK = "quick"
    BALANCED = "balanced"
    DEEP = "deep"


class ContentCategory(str, Enum):
    """Category that selects the recency half-life of an item."""

    TRENDS = "trends"
    REPOS = "repos"
    RESEARCH = "research"


class ItemType(str, Enum):
    """Type of a collected item.

    Unrecognised type tags coerce to ``OTHER`` so that items from new
    sources still flow through every stage.
    """

    GITHUB_REPO = "github_repo"
    HN_STORY = "hn_story"
    ARXIV_PAPER = "arxiv_paper"
    OPENALEX_WORK = "openalex_work"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> "ItemType":
        return cls.OTHER

    @property
    def category(self) -> ContentCategory:
        if self is ItemType.GITHUB_REPO:
            return ContentCategory.REPOS
        if self in (ItemType.ARXIV_PAPER, ItemType.OPENALEX_WORK):
            return ContentCategory.RESEARCH
        return ContentCategory.TRENDS

    @property
    def is_academic(self) -> bool:
        return self.category is ContentCategory.RESEARCH


class QualityLevel(str, Enum):
    """Quality label derived from the score value."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class RawItem:
    """Unenriched search result as produced by a search source."""

    id: str
    type: ItemType
    title: str
    url: str
    metadata: dict[str, Any] = field(default_factory=dict)
    collected_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.type, ItemType):
            object.__setattr__(self, "type", ItemType(self.type))
        if not self.id:
            raise ValueError("ID cannot be empty")
        if self.collected_at.tzinfo is None:
            object.__setattr__(self, "collected_at", self.collected_at.replace(tzinfo=timezone.utc))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawItem":
        """Build an item from its serialized form.

        ``collected_at`` accepts ISO-8601 strings (a trailing ``Z`` included)
        or datetime objects; naive timestamps are treated as UTC.
        """
        collected_at = data.get("collected_at")
        if isinstance(collected_at, str):
            collected_at = datetime.fromisoformat(collected_at.replace("Z", "+00:00"))
        if collected_at is None:
            collected_at = utc_now()

        url = data.get("url", "")
        return cls(
            id=str(data.get("id") or url),
            type=ItemType(data.get("type", ItemType.OTHER.value)),
            title=data.get("title", ""),
            url=url,
            metadata=dict(data.get("metadata") or {}),
            collected_at=collected_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "url": self.url,
            "metadata": self.metadata,
            "collected_at": self.collected_at.isoformat(),
        }


@dataclass
class FetchedItem:
    """Raw item plus content retrieved in the fetch stage."""

    raw: RawItem
    content: str = ""
    content_type: str = ""
    extra_data: dict[str, Any] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=utc_now)
    fetch_success: bool = False
    fetch_error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "raw": self.raw.to_dict(),
            "content_type": self.content_type,
            "content_length": len(self.content),
            "fetched_at": self.fetched_at.isoformat(),
            "fetch_success": self.fetch_success,
        }
        if self.extra_data:
            data["extra_data"] = self.extra_data
        if self.fetch_error:
            data["fetch_error"] = self.fetch_error
        return data


@dataclass
class Synthesis:
    """Agent-generated analysis of one item."""

    summary: str = ""
    key_features: list[str] = field(default_factory=list)
    relevance_rationale: str = ""
    recommendations: list[str] = field(default_factory=list)
    confidence: float = 0.0
    agent_used: str = ""
    synthesized_at: Optional[datetime] = None
    failure_reason: str = ""

    @classmethod
    def placeholder(cls, summary: str, failure_reason: str = "", agent_used: str = "") -> "Synthesis":
        """Zero-confidence synthesis used when no agent verdict is available."""
        return cls(
            summary=summary,
            confidence=0.0,
            agent_used=agent_used,
            synthesized_at=utc_now(),
            failure_reason=failure_reason,
        )

    @property
    def succeeded(self) -> bool:
        return self.confidence > 0 and not self.failure_reason

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "key_features": list(self.key_features),
            "relevance_rationale": self.relevance_rationale,
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
        }
        if self.agent_used:
            data["agent_used"] = self.agent_used
        if self.synthesized_at:
            data["synthesized_at"] = self.synthesized_at.isoformat()
        if self.failure_reason:
            data["failure_reason"] = self.failure_reason
        return data


@dataclass
class SynthesizedItem:
    """Fetched item plus its synthesis."""

    fetched: FetchedItem
    synthesis: Synthesis

    @property
    def raw(self) -> RawItem:
        return self.fetched.raw

    def to_dict(self) -> dict[str, Any]:
        return {"fetched": self.fetched.to_dict(), "synthesis": self.synthesis.to_dict()}


@dataclass
class QualityScore:
    """Final quality assessment with per-factor contributions."""

    value: float
    level: QualityLevel
    factors: dict[str, float]
    confidence: float
    scored_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": round(self.value, 4),
            "level": self.level.value,
            "factors": {name: round(value, 4) for name, value in self.factors.items()},
            "confidence": round(self.confidence, 4),
            "scored_at": self.scored_at.isoformat(),
        }


@dataclass
class ScoredItem:
    """Synthesized item plus its quality score."""

    synthesized: SynthesizedItem
    score: QualityScore

    @property
    def raw(self) -> RawItem:
        return self.synthesized.fetched.raw

    def to_dict(self) -> dict[str, Any]:
        return {"synthesized": self.synthesized.to_dict(), "score": self.score.to_dict()}


@dataclass
class ItemError:
    """Item-local failure collected for observability."""

    index: int
    item_id: str
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.stage} item {self.index} ({self.item_id}): {self.message}"
