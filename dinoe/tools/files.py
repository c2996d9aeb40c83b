"""
File Tools
==========

file_read and file_write.

Relative paths resolve against the workspace directory; absolute paths are
used as given. Reads must be UTF-8 text. Writes create missing parent
directories and overwrite existing files.
"""

import asyncio
from pathlib import Path

from pydantic import BaseModel, Field

from dinoe.errors import ToolError, ToolErrorKind
from dinoe.tools import Tool, ToolResult
from dinoe.utils.logger import Logger

logger = Logger("FileTools")


def resolve_path(workspace: Path, path: str) -> Path:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return workspace / candidate


class FileReadArgs(BaseModel):
    path: str = Field(min_length=1)


class FileWriteArgs(BaseModel):
    path: str = Field(min_length=1)
    content: str


# ==============================================================================
# Tool: file_read
# ==============================================================================

def _read_text(path: Path) -> str:
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise ToolError(ToolErrorKind.NOT_FOUND, f"File not found: {path}") from None
    except IsADirectoryError:
        raise ToolError(ToolErrorKind.NOT_FOUND, f"Not a file: {path} is a directory") from None
    except PermissionError:
        raise ToolError(ToolErrorKind.PERMISSION_DENIED, f"Permission denied: {path}") from None

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ToolError(
            ToolErrorKind.NOT_UTF8,
            f"File is not valid UTF-8 text: {path} (byte {e.start})",
        ) from None


def create_file_read_tool(workspace: Path) -> Tool:
    async def _file_read(args: FileReadArgs) -> ToolResult:
        path = resolve_path(workspace, args.path)
        content = await asyncio.to_thread(_read_text, path)
        logger.debug(f"Read {len(content)} chars from {path}")
        return ToolResult.ok(content)

    return Tool(
        name="file_read",
        description="Read the contents of a text file. Relative paths are resolved against the workspace.",
        parameters={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read"
                }
            },
            "required": ["path"]
        },
        args_model=FileReadArgs,
        execute=_file_read,
        parallel_safe=True,
    )


# ==============================================================================
# Tool: file_write
# ==============================================================================

def _write_text(path: Path, content: str) -> int:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.write_bytes(content.encode("utf-8"))
    except PermissionError:
        raise ToolError(ToolErrorKind.PERMISSION_DENIED, f"Permission denied: {path}") from None
    except IsADirectoryError:
        raise ToolError(ToolErrorKind.PERMISSION_DENIED, f"Cannot write: {path} is a directory") from None


def create_file_write_tool(workspace: Path) -> Tool:
    async def _file_write(args: FileWriteArgs) -> ToolResult:
        path = resolve_path(workspace, args.path)
        written = await asyncio.to_thread(_write_text, path, args.content)
        logger.debug(f"Wrote {written} bytes to {path}")
        return ToolResult.ok(f"Wrote {written} bytes to {path}")

    return Tool(
        name="file_write",
        description=(
            "Write content to a file, creating it (and any missing parent directories) "
            "or overwriting it. Relative paths are resolved against the workspace."
        ),
        parameters={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to write"
                },
                "content": {
                    "type": "string",
                    "description": "Full text content of the file"
                }
            },
            "required": ["path", "content"]
        },
        args_model=FileWriteArgs,
        execute=_file_write,
    )
