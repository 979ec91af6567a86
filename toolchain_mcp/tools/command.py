"""
Command execution for tool handlers.

Handlers never spawn processes directly; they go through the default
CommandExecutor so tests can swap in a fake with set_default_executor().
"""

import asyncio
import shlex
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)

MAX_OUTPUT_CHARS = 20000


@dataclass
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return " ".join(shlex.quote(a) for a in self.args)


class CommandExecutor:
    """Runs external processes with asyncio."""

    async def run(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        A missing executable yields returncode 127 rather than an exception.

        Raises:
            asyncio.TimeoutError: the process outlived `timeout` (it is killed first)
        """
        logger.debug(f"Executing: {' '.join(shlex.quote(a) for a in args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return CommandResult(args=list(args), returncode=127, stderr=f"Command not found: {args[0]}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise

        return CommandResult(
            args=list(args),
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


_default_executor: CommandExecutor = CommandExecutor()


def get_default_executor() -> CommandExecutor:
    return _default_executor


def set_default_executor(executor: CommandExecutor) -> CommandExecutor:
    """Replace the default executor; returns the previous one."""
    global _default_executor
    previous = _default_executor
    _default_executor = executor
    return previous


def clip(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    """Keep the tail of long output (build errors are at the end)."""
    if len(text) <= limit:
        return text
    return "... (output truncated)\n" + text[-limit:]


def format_command_result(title: str, result: CommandResult) -> str:
    status = "succeeded" if result.success else f"failed (exit code {result.returncode})"
    lines = [f"{title} {status}.", f"Command: {result.command_line}"]
    output = (result.stdout or "").strip()
    errors = (result.stderr or "").strip()
    if output:
        lines.extend(["", clip(output)])
    if errors and not result.success:
        lines.extend(["", "Errors:", clip(errors)])
    return "\n".join(lines)
