"""Markdown report generator."""

from typing import TYPE_CHECKING

from research_pipeline.core import QualityLevel, ReportGenerator, ScoredItem

if TYPE_CHECKING:
    from research_pipeline.use_cases import PipelineResult

LEVEL_TITLES = {
    QualityLevel.HIGH: "## High quality",
    QualityLevel.MEDIUM: "## Medium quality",
    QualityLevel.LOW: "## Low quality",
}


class MarkdownReportGenerator(ReportGenerator):
    """Generate a ranked markdown report with per-factor explanations."""

    def generate(self, result: "PipelineResult") -> str:
        """Generate markdown report."""
        title = f"# Research report: {result.query}" if result.query else "# Research report"
        if not result.items:
            return f"{title}\n\nNo items found."

        counts = result.by_level()
        lines = [
            title,
            "",
            f"Mode: {result.mode.value} | Items: {len(result.items)} | "
            f"High: {counts[QualityLevel.HIGH]} | Medium: {counts[QualityLevel.MEDIUM]} | "
            f"Low: {counts[QualityLevel.LOW]}",
            "",
        ]

        ranked = result.ranked()
        for level in QualityLevel:
            entries = [item for item in ranked if item.score.level is level]
            if not entries:
                continue
            lines.extend([LEVEL_TITLES[level], ""])
            for entry in entries:
                lines.extend(self._format_entry(entry))

        if result.errors:
            lines.extend(["## Item errors", ""])
            for error in result.errors:
                lines.append(f"- {error}")
            lines.append("")

        return "\n".join(lines)

    def _format_entry(self, entry: ScoredItem) -> list[str]:
        """Format single report entry."""
        raw = entry.raw
        fetched = entry.synthesized.fetched
        synthesis = entry.synthesized.synthesis
        score = entry.score

        lines = [
            f"### [{raw.title}]({raw.url})",
            "",
            f"**Score:** {score.value:.1%} ({score.level.value}, confidence {score.confidence:.0%}) | "
            f"*{raw.type.value}*",
            "",
        ]

        if synthesis.summary:
            lines.extend([synthesis.summary, ""])
        if synthesis.relevance_rationale:
            lines.extend([f"**Why it matters:** {synthesis.relevance_rationale}", ""])

        if synthesis.key_features:
            lines.extend(["**Key features:**", ""])
            for feature in synthesis.key_features:
                lines.append(f"- {feature}")
            lines.append("")

        if synthesis.recommendations:
            lines.extend(["**Recommendations:**", ""])
            for recommendation in synthesis.recommendations:
                lines.append(f"- {recommendation}")
            lines.append("")

        factor_parts = [f"{name}: {value:.3f}" for name, value in score.factors.items()]
        lines.append(f"*Factors: {' | '.join(factor_parts)}*")
        lines.append("")

        if not fetched.fetch_success:
            lines.append(f"*Fetch failed: {fetched.fetch_error}*")
            lines.append("")

        lines.append("---")
        lines.append("")

        return lines
