"""External reasoning agent invoked as a subprocess."""

import asyncio
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from research_pipeline.errors import AgentConfigError, AgentError, AgentTimeoutError
from research_pipeline.logging import get_logger

logger = get_logger(__name__)

# Agents that need an extra flag to answer once and exit.
NON_INTERACTIVE_FLAGS = {
    "claude": "--print",
}


@dataclass
class AgentResult:
    """Captured output of one agent run."""

    stdout: str
    stderr: str
    exit_code: int


class AgentProcess:
    """Run ``<executable> [base args...] <prompt>`` and capture its output."""

    def __init__(self, command: str) -> None:
        self.command = command
        try:
            self.parts = shlex.split(command)
        except ValueError as e:
            raise AgentConfigError(f"invalid agent command: {e}") from e
        if not self.parts:
            raise AgentConfigError("empty agent command")

    @property
    def executable(self) -> str:
        return self.parts[0]

    @property
    def name(self) -> str:
        return Path(self.executable).name

    def build_args(self, prompt: str) -> list[str]:
        """Arguments passed after the executable; the prompt is always last."""
        args = [*self.parts[1:], prompt]
        flag = NON_INTERACTIVE_FLAGS.get(self.name)
        if flag and flag not in args:
            args.insert(0, flag)
        return args

    async def invoke(self, prompt: str, timeout: Optional[float] = None) -> AgentResult:
        """Run the agent once.

        The process inherits the current environment. It is killed when
        ``timeout`` elapses or when the calling task is cancelled.

        Raises:
            AgentTimeoutError: The process outlived ``timeout`` seconds.
            AgentError: The executable could not be started or exited non-zero.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *self.build_args(prompt),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
            )
        except (OSError, ValueError) as e:
            raise AgentError(f"agent execution failed: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise AgentTimeoutError(timeout or 0.0)
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        result = AgentResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode if process.returncode is not None else -1,
        )
        if result.exit_code != 0:
            raise AgentError(
                f"agent failed with exit code {result.exit_code}: {result.stderr.strip()[:500]}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        if result.stderr.strip():
            logger.debug("agent_stderr", agent=self.name, stderr=result.stderr.strip()[:500])
        return result

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
