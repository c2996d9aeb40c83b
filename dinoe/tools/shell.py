"""
Shell Tool
==========

Runs `sh -c <command>` in the workspace directory.

Behavior:
- stdout and stderr are captured as one combined stream
- the payload always ends with "exit code: N"
- a non-zero exit is still a successful tool call; the model reads the
  exit code from the payload
- a command that outlives the timeout has its whole process group killed
  and the call fails with ToolError TIMEOUT
- a command that cannot be started fails with ToolError SPAWN_ERROR
"""

import asyncio
import os
import signal
from pathlib import Path

from pydantic import BaseModel, Field

from dinoe.errors import ToolError, ToolErrorKind
from dinoe.tools import Tool, ToolResult
from dinoe.utils.logger import Logger

logger = Logger("ShellTool")

MAX_OUTPUT_CHARS = 50_000


class ShellArgs(BaseModel):
    command: str = Field(min_length=1)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()


def format_output(output: str, exit_code: int) -> str:
    output = output.rstrip()
    if len(output) > MAX_OUTPUT_CHARS:
        output = output[:MAX_OUTPUT_CHARS] + "\n... (output truncated)"
    if not output:
        output = "(no output)"
    return f"{output}\nexit code: {exit_code}"


async def run_shell(command: str, cwd: Path, timeout: float) -> ToolResult:
    """
    Run one command to completion or timeout.

    Raises:
        ToolError: SPAWN_ERROR or TIMEOUT
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "sh", "-c", command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )
    except OSError as e:
        raise ToolError(ToolErrorKind.SPAWN_ERROR, f"Failed to execute command: {e}") from e

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_process_group(process)
        await process.wait()
        logger.warning(f"Shell command timed out after {timeout:g}s: {command}")
        raise ToolError(
            ToolErrorKind.TIMEOUT,
            f"Command timed out after {timeout:g} seconds and was terminated",
        ) from None

    exit_code = process.returncode
    if exit_code != 0:
        logger.debug(f"Shell command exited with {exit_code}: {command}")

    return ToolResult.ok(format_output(stdout.decode("utf-8", errors="replace"), exit_code))


def create_shell_tool(workspace: Path, timeout: float = 60.0) -> Tool:
    async def _shell(args: ShellArgs) -> ToolResult:
        return await run_shell(args.command, workspace, timeout)

    return Tool(
        name="shell",
        description=(
            f"Execute a shell command in the workspace directory. "
            f"Output and exit code are returned. Commands are killed after {timeout:g} seconds."
        ),
        parameters={
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Shell command to execute"
                }
            },
            "required": ["command"]
        },
        args_model=ShellArgs,
        execute=_shell,
    )
