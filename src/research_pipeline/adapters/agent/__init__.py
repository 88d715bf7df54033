"""External reasoning agent adapters."""

from research_pipeline.adapters.agent.parsing import extract_json_object, parse_synthesis
from research_pipeline.adapters.agent.process import AgentProcess, AgentResult
from research_pipeline.adapters.agent.synthesizer import Synthesizer

__all__ = [
    "AgentProcess",
    "AgentResult",
    "Synthesizer",
    "extract_json_object",
    "parse_synthesis",
]
