"""Synthesize stage: ask an external agent to interpret each item."""

import asyncio
from typing import Any, Optional, Sequence

from research_pipeline.adapters.agent.parsing import parse_synthesis
from research_pipeline.adapters.agent.process import AgentProcess
from research_pipeline.core import (
    FetchedItem,
    ItemError,
    Mode,
    Synthesis,
    SynthesizedItem,
    SynthesizeOpts,
    WorkerPool,
)
from research_pipeline.core.entities import utc_now
from research_pipeline.errors import (
    AgentError,
    AgentTimeoutError,
    BatchCancelledError,
    ResponseParseError,
)
from research_pipeline.logging import get_logger

logger = get_logger(__name__)

SKIPPED_NO_AGENT = "Synthesis skipped - no agent configured"
SKIPPED_QUICK_MODE = "Synthesis skipped - quick mode"
SKIPPED_OVER_LIMIT = "Synthesis skipped - outside synthesis limit"
PARSE_FAILED = "Failed to parse agent response"
TIMED_OUT = "Synthesis timed out"
FAILED = "Synthesis failed"
CANCELLED = "Synthesis cancelled"

MAX_CONTENT_CHARS = 2000

PROMPT_TEMPLATE = """Analyze this {item_type} for relevance to: "{query}"

{content}
Respond with ONLY valid JSON (no markdown, no explanation):
{{"summary": "...", "key_features": ["...", "..."], "relevance_rationale": "...", "recommendations": ["...", "..."], "confidence": 0.0-1.0}}"""


class Synthesizer:
    """Spawn the user's coding agent once per item and collect its verdicts.

    The pipeline orchestrates; it does not embed a model. Without an agent
    command every item receives a zero-confidence placeholder.
    """

    def __init__(
        self,
        agent_command: str = "",
        parallelism: int = 3,
        timeout: float = 120.0,
        balanced_limit: int = 10,
    ) -> None:
        self.agent_command = agent_command.strip()
        self.parallelism = parallelism if parallelism > 0 else 3
        self.timeout = timeout if timeout > 0 else 120.0
        self.balanced_limit = balanced_limit if balanced_limit > 0 else 10

    async def synthesize_batch(
        self,
        items: Sequence[FetchedItem],
        query: str,
        opts: Optional[SynthesizeOpts] = None,
        cancel_event: Optional[asyncio.Event] = None,
        errors: Optional[list[ItemError]] = None,
    ) -> list[SynthesizedItem]:
        """Synthesize items with bounded parallelism.

        Returns one ``SynthesizedItem`` per input item, in input order. Agent
        failures degrade only the affected item to a zero-confidence
        placeholder; they are appended to ``errors`` when it is given.
        """
        if not items:
            return []
        opts = opts or SynthesizeOpts()

        if not self.agent_command:
            return [self._skipped(item, SKIPPED_NO_AGENT) for item in items]
        if opts.mode is Mode.QUICK:
            return [self._skipped(item, SKIPPED_QUICK_MODE) for item in items]

        selected = len(items)
        if opts.mode is Mode.BALANCED:
            selected = min(selected, opts.limit or self.balanced_limit)

        parallelism = opts.parallelism or self.parallelism
        timeout = opts.timeout or self.timeout
        pool = WorkerPool(parallelism)

        logger.info(
            "synthesize_batch_started",
            items=len(items),
            selected=selected,
            mode=opts.mode.value,
            parallelism=parallelism,
            timeout=timeout,
        )

        async def work(item: FetchedItem) -> Synthesis:
            return await self._synthesize_or_placeholder(item, query, timeout)

        def cancelled(item: FetchedItem, error: BatchCancelledError) -> Synthesis:
            return Synthesis.placeholder(CANCELLED, failure_reason=error.message)

        syntheses = await pool.map(items[:selected], work, cancelled, cancel_event)
        syntheses.extend(Synthesis.placeholder(SKIPPED_OVER_LIMIT) for _ in items[selected:])

        failed = 0
        for index, synthesis in enumerate(syntheses[:selected]):
            if not synthesis.failure_reason:
                continue
            failed += 1
            item_id = items[index].raw.id
            logger.warning("synthesize_item_failed", index=index, item_id=item_id, reason=synthesis.failure_reason)
            if errors is not None:
                errors.append(ItemError(index, item_id, "synthesize", synthesis.failure_reason))

        logger.info("synthesize_batch_completed", items=len(items), synthesized=selected - failed, failed=failed)
        return [
            SynthesizedItem(fetched=item, synthesis=synthesis)
            for item, synthesis in zip(items, syntheses)
        ]

    async def synthesize_one(self, item: FetchedItem, query: str, timeout: Optional[float] = None) -> Synthesis:
        """Run the agent for a single item.

        Raises:
            AgentConfigError: No usable agent command.
            AgentTimeoutError: The agent outlived its timeout.
            AgentError: The agent could not run or exited non-zero.
            ResponseParseError: The agent output holds no JSON object.
        """
        agent = AgentProcess(self.agent_command)
        result = await agent.invoke(self.build_prompt(item, query), timeout=timeout or self.timeout)

        synthesis = parse_synthesis(result.stdout)
        synthesis.agent_used = agent.name
        synthesis.synthesized_at = utc_now()
        return synthesis

    async def _synthesize_or_placeholder(self, item: FetchedItem, query: str, timeout: float) -> Synthesis:
        agent_name = self._agent_name()
        try:
            return await self.synthesize_one(item, query, timeout)
        except AgentTimeoutError as e:
            return Synthesis.placeholder(TIMED_OUT, failure_reason=e.message, agent_used=agent_name)
        except ResponseParseError as e:
            return Synthesis.placeholder(PARSE_FAILED, failure_reason=e.message, agent_used=agent_name)
        except AgentError as e:
            return Synthesis.placeholder(FAILED, failure_reason=e.message, agent_used=agent_name)

    def build_prompt(self, item: FetchedItem, query: str) -> str:
        prompt = PROMPT_TEMPLATE.format(
            item_type=item.raw.type.value,
            query=query,
            content=self.build_item_content(item),
        )
        # Process arguments cannot carry NUL bytes.
        return prompt.replace("\x00", "")

    @staticmethod
    def build_item_content(item: FetchedItem) -> str:
        """Describe the item for the agent: header, metadata, fetched content."""
        raw = item.raw
        lines = [
            f"Title: {raw.title}",
            f"URL: {raw.url}",
            f"Type: {raw.type.value}",
        ]

        metadata = raw.metadata
        for key, label in (("stars", "Stars"), ("points", "Points"), ("citations", "Citations")):
            if _is_count(metadata.get(key)):
                lines.append(f"{label}: {metadata[key]}")
        language = metadata.get("language")
        if isinstance(language, str) and language:
            lines.append(f"Language: {language}")
        topics = metadata.get("topics")
        if isinstance(topics, (list, tuple)) and topics:
            lines.append(f"Topics: {', '.join(str(topic) for topic in topics)}")
        description = metadata.get("description")
        if isinstance(description, str) and description:
            lines.append(f"Description: {description}")

        text = "\n".join(lines) + "\n"
        if item.content:
            content = item.content
            if len(content) > MAX_CONTENT_CHARS:
                content = content[:MAX_CONTENT_CHARS] + "\n...[truncated]"
            text += f"\n{item.content_type or 'content'}:\n{content}\n"
        return text

    def _agent_name(self) -> str:
        try:
            return AgentProcess(self.agent_command).name
        except AgentError:
            return ""

    @staticmethod
    def _skipped(item: FetchedItem, summary: str) -> SynthesizedItem:
        return SynthesizedItem(fetched=item, synthesis=Synthesis(summary=summary, confidence=0.0))


def _is_count(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and value.strip().isdigit()
