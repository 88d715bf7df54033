"""Multi-factor quality scoring with temporal decay.

Each factor is normalised to [0, 1], multiplied by its (normalised) weight
and stored in ``QualityScore.factors``; the score value is the sum of those
contributions, so every score can be explained factor by factor.

Popularity counts are normalised with ``log1p(x) / log1p(cap)`` so that a
handful of very popular items cannot flatten everybody else.
"""

import math
import re
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Sequence

from research_pipeline.core.entities import (
    ItemType,
    QualityLevel,
    QualityScore,
    ScoredItem,
    SynthesizedItem,
    utc_now,
)
from research_pipeline.core.options import ScoreOpts, ScoreThresholds
from research_pipeline.logging import get_logger

logger = get_logger(__name__)

# Metadata key -> count at which the factor saturates.
ENGAGEMENT_CAPS = {
    "stars": 10_000,
    "points": 1_000,
    "upvotes": 1_000,
}
CITATION_CAPS = {
    "citations": 1_000,
    "cited_by_count": 1_000,
}

TIMESTAMP_KEYS = (
    "published_at",
    "published",
    "publication_date",
    "created_at",
    "created_at_i",
    "updated_at",
)

# Epoch values above this are taken to be milliseconds.
EPOCH_MILLIS_THRESHOLD = 1e11

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "how",
    "in", "into", "is", "it", "of", "on", "or", "the", "to", "what", "with",
})

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9+#.-]*")


def saturate(value: float, cap: float) -> float:
    """Map a non-negative count onto [0, 1] logarithmically."""
    if value <= 0 or cap <= 0:
        return 0.0
    return min(1.0, math.log1p(value) / math.log1p(cap))


def recency_decay(age_seconds: float, half_life_seconds: float) -> float:
    """``exp(-ln 2 * age / half_life)``; future timestamps count as age zero."""
    if half_life_seconds <= 0:
        return 0.0
    age_seconds = max(0.0, age_seconds)
    return math.exp(-math.log(2) * age_seconds / half_life_seconds)


def tokenize(text: str) -> set[str]:
    tokens = {token.strip(".-") for token in _TOKEN_RE.findall(text.lower())}
    return {token for token in tokens if len(token) > 1 and token not in STOP_WORDS}


def query_match(query: str, text: str) -> float:
    """Share of distinct query terms that occur in ``text``."""
    terms = tokenize(query)
    if not terms:
        return 0.0
    return len(terms & tokenize(text)) / len(terms)


def level_for(value: float, thresholds: ScoreThresholds) -> QualityLevel:
    if value >= thresholds.high:
        return QualityLevel.HIGH
    if value >= thresholds.medium:
        return QualityLevel.MEDIUM
    return QualityLevel.LOW


def as_number(value: Any) -> Optional[float]:
    """Read a count from heterogeneous metadata (ints, floats, numeric strings)."""
    if isinstance(value, bool) or value is None:
        return None
    number: Optional[float] = None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.replace(",", "").strip())
        except ValueError:
            return None
    if number is None or not math.isfinite(number):
        return None
    return number


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601, RFC 2822, epoch seconds, date or datetime values."""
    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if abs(value) > EPOCH_MILLIS_THRESHOLD else value
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Scorer:
    """Combine engagement, citations, recency, query match and synthesis."""

    def score_batch(
        self,
        items: Sequence[SynthesizedItem],
        opts: Optional[ScoreOpts] = None,
        query: str = "",
        now: Optional[datetime] = None,
    ) -> list[ScoredItem]:
        """Score every item; the output is index-aligned with the input."""
        if not items:
            return []
        opts = opts or ScoreOpts()
        now = now or utc_now()

        scored = [self.score_one(item, opts, query, now) for item in items]
        logger.info(
            "score_batch_completed",
            items=len(scored),
            high=sum(1 for s in scored if s.score.level is QualityLevel.HIGH),
            medium=sum(1 for s in scored if s.score.level is QualityLevel.MEDIUM),
        )
        return scored

    def score_one(
        self,
        item: SynthesizedItem,
        opts: ScoreOpts,
        query: str = "",
        now: Optional[datetime] = None,
    ) -> ScoredItem:
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        raw = item.fetched.raw
        weights = opts.weights.normalized()

        engagement = self._engagement(raw.metadata)
        citations = self._citations(raw.type, raw.metadata)
        published_at = self._published_at(raw.metadata)
        reference_time = published_at or raw.collected_at
        half_life = opts.half_lives.for_category(raw.type.category)
        recency = recency_decay(
            (now - reference_time).total_seconds(), half_life.total_seconds()
        )
        match = query_match(query, self._match_text(item))
        synthesis = min(1.0, max(0.0, item.synthesis.confidence))

        normalized = {
            "engagement": engagement if engagement is not None else 0.0,
            "citations": citations if citations is not None else 0.0,
            "recency": recency,
            "query_match": match,
            "synthesis": synthesis,
        }
        factors = {name: value * weights[name] for name, value in normalized.items()}
        value = min(1.0, max(0.0, sum(factors.values())))

        popularity = citations if raw.type.is_academic else engagement
        signals = [
            popularity is not None,
            published_at is not None,
            item.fetched.fetch_success and bool(item.fetched.content),
            item.synthesis.succeeded,
            bool(tokenize(query)),
        ]
        confidence = sum(signals) / len(signals)

        score = QualityScore(
            value=value,
            level=level_for(value, opts.thresholds),
            factors=factors,
            confidence=confidence,
            scored_at=now,
        )
        return ScoredItem(synthesized=item, score=score)

    @staticmethod
    def _engagement(metadata: dict[str, Any]) -> Optional[float]:
        values = [
            saturate(count, cap)
            for key, cap in ENGAGEMENT_CAPS.items()
            if (count := as_number(metadata.get(key))) is not None
        ]
        return max(values) if values else None

    @staticmethod
    def _citations(item_type: ItemType, metadata: dict[str, Any]) -> Optional[float]:
        if not item_type.is_academic:
            return None
        values = [
            saturate(count, cap)
            for key, cap in CITATION_CAPS.items()
            if (count := as_number(metadata.get(key))) is not None
        ]
        return max(values) if values else None

    @staticmethod
    def _published_at(metadata: dict[str, Any]) -> Optional[datetime]:
        for key in TIMESTAMP_KEYS:
            parsed = parse_timestamp(metadata.get(key))
            if parsed is not None:
                return parsed
        return None

    @staticmethod
    def _match_text(item: SynthesizedItem) -> str:
        raw = item.fetched.raw
        description = str(raw.metadata.get("description") or "")
        return f"{raw.title} {description} {item.fetched.content}"
