"""Exception hierarchy for the research pipeline.

Single-item operations raise these; batch operations catch them and record
the failure on the affected item instead.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for research pipeline errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(PipelineError):
    """Raised when settings cannot be loaded or contain invalid values."""


class FetchError(PipelineError):
    """Raised when supplementary content for an item cannot be retrieved."""


class AgentError(PipelineError):
    """Raised when the external reasoning agent fails to produce output."""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, details={"exit_code": exit_code, "stderr": stderr})
        self.exit_code = exit_code
        self.stderr = stderr


class AgentConfigError(AgentError):
    """Raised when no usable agent command is configured."""


class AgentTimeoutError(AgentError):
    """Raised when the agent process exceeds its per-item timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"agent timed out after {timeout:g}s")
        self.timeout = timeout


class ResponseParseError(PipelineError):
    """Raised when agent output does not contain a usable JSON object."""


class BatchCancelledError(PipelineError):
    """Recorded on items that were cancelled together with their batch."""

    def __init__(self, message: str = "batch cancelled") -> None:
        super().__init__(message)
