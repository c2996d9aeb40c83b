"""
Tools System
============

Tools are the capabilities the model can invoke: reading and writing files,
running shell commands, searching and extending memory.

Every tool has:
- a name and description (shown to the model)
- a JSON Schema for its parameters (shown to the model)
- a pydantic model that validates the arguments before anything runs
- an async execute function returning a ToolResult

How a call flows:
1. The model requests `file_read` with {"path": "README.md"}
2. ToolRegistry.execute looks the tool up (ToolError UNKNOWN_TOOL if absent)
3. The arguments are validated (ToolError INVALID_ARGUMENTS on failure)
4. The tool runs; it may raise ToolError for expected failures
5. The ToolExecutor turns any ToolError into a failure result for the model

This module provides:
- Tool dataclass for defining tools
- ToolResult for standardized responses
- ToolRegistry for managing available tools
- register_builtin_tools() to install the standard set
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from dinoe.errors import ToolError, ToolErrorKind
from dinoe.utils.logger import Logger

if TYPE_CHECKING:
    from dinoe.memory import MarkdownMemory

logger = Logger("Tools")


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool did what was asked
        output: Text produced by the tool (success only)
        error: What went wrong (failure only)
    """
    success: bool
    output: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, output: str) -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    @property
    def payload(self) -> str:
        """The text sent back to the model."""
        if self.success:
            return self.output
        return f"Error: {self.error}"


@dataclass
class Tool:
    """
    Definition of a tool.

    Attributes:
        name: Unique identifier for the tool
        description: What the tool does (shown to the model)
        parameters: JSON Schema for the parameters
        args_model: Pydantic model the raw arguments are validated against
        execute: Async function receiving the validated model
        parallel_safe: True for read-only tools that may run concurrently
            with neighbouring read-only calls

    Example:
        class EchoArgs(BaseModel):
            text: str

        async def echo(args: EchoArgs) -> ToolResult:
            return ToolResult.ok(args.text)

        tool = Tool(
            name="echo",
            description="Repeat the given text",
            parameters={
                "type": "object",
                "properties": {"text": {"type": "string"}},
                "required": ["text"]
            },
            args_model=EchoArgs,
            execute=echo
        )
    """
    name: str
    description: str
    parameters: dict
    args_model: type[BaseModel]
    execute: Callable[[Any], Awaitable[ToolResult]]
    parallel_safe: bool = False

    def to_schema(self) -> dict:
        """Normalized definition handed to the provider adapter."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate(self, arguments: dict) -> BaseModel:
        """
        Validate raw arguments.

        Raises:
            ToolError: INVALID_ARGUMENTS with pydantic's explanation
        """
        try:
            return self.args_model.model_validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise ToolError(
                ToolErrorKind.INVALID_ARGUMENTS,
                f"Invalid arguments for {self.name}: {problems}",
            ) from e


class ToolRegistry:
    """
    Registry of the tools one agent may use.

    Example:
        registry = ToolRegistry()
        registry.register(my_tool)

        schema = registry.schema()
        result = await registry.execute("my_tool", {"text": "hi"})
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with this name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def schema(self) -> list[dict]:
        """All tool definitions, in registration order."""
        return [tool.to_schema() for tool in self._tools.values()]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, arguments: dict) -> ToolResult:
        """
        Execute a tool by name.

        Args:
            name: The tool name
            arguments: Raw arguments from the model

        Returns:
            ToolResult from the tool execution

        Raises:
            ToolError: UNKNOWN_TOOL, INVALID_ARGUMENTS, or whatever the
                tool itself raises
        """
        tool = self.get(name)
        if tool is None:
            available = ", ".join(self.list_names()) or "none"
            raise ToolError(
                ToolErrorKind.UNKNOWN_TOOL,
                f"Tool '{name}' not found. Available tools: {available}",
            )

        args = tool.validate(arguments)

        try:
            return await tool.execute(args)
        except ToolError:
            raise
        except Exception as e:
            logger.error(f"Tool execution failed: {name}", e)
            return ToolResult.failure(f"{type(e).__name__}: {e}")


def register_builtin_tools(
    registry: ToolRegistry,
    workspace: Path,
    memory: "MarkdownMemory | None" = None,
    shell_timeout: float = 60.0,
) -> ToolRegistry:
    """
    Install file_read, file_write, shell and (with a memory) memory_read
    and memory_write.

    Imported lazily because the tool modules import this one.
    """
    from dinoe.tools.files import create_file_read_tool, create_file_write_tool
    from dinoe.tools.shell import create_shell_tool

    registry.register(create_file_read_tool(workspace))
    registry.register(create_file_write_tool(workspace))
    registry.register(create_shell_tool(workspace, shell_timeout))

    if memory is not None:
        from dinoe.tools.memory_tools import create_memory_read_tool, create_memory_write_tool

        registry.register(create_memory_read_tool(memory))
        registry.register(create_memory_write_tool(memory))

    logger.info(f"Registered {len(registry)} tools")
    return registry


__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "register_builtin_tools",
]
