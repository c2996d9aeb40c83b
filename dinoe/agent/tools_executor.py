"""
Tool Executor
=============

Runs the tool calls of one round and turns every outcome into a result the
model can read.

Nothing a tool does can abort the turn:
- malformed arguments (ProtocolError on the call) -> failure result
- unknown tool, invalid arguments, timeouts (ToolError) -> failure result
- unexpected exceptions -> failure result (converted by the registry)

Every result carries the id of the call it answers, and results are always
returned in request order, even when executed in parallel. Only tools
marked parallel_safe ever run concurrently.
"""

import asyncio
from dataclasses import dataclass

from dinoe.errors import ToolError
from dinoe.providers.types import ToolCall
from dinoe.tools import ToolRegistry, ToolResult
from dinoe.utils.logger import Logger

logger = Logger("ToolExecutor")


@dataclass
class ToolCallResult:
    """
    Result of executing a tool call.

    Attributes:
        tool_call_id: The original tool call ID
        name: The tool name
        result: The tool result
    """
    tool_call_id: str
    name: str
    result: ToolResult

    @property
    def success(self) -> bool:
        return self.result.success


class ToolExecutor:
    """
    Executes tool calls requested by the model.

    Example:
        executor = ToolExecutor(registry)

        results = await executor.execute_all(response.calls)
        for result in results:
            conversation.append_tool_result(result.tool_call_id, result.name, result.result.payload)
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute_one(self, tool_call: ToolCall) -> ToolCallResult:
        """
        Execute a single tool call.

        Args:
            tool_call: The tool call to execute

        Returns:
            ToolCallResult; never raises for tool-level failures
        """
        if tool_call.error is not None:
            logger.warning(f"Skipping {tool_call.name}: {tool_call.error.message}")
            result = ToolResult.failure(tool_call.error.message)
            return ToolCallResult(tool_call.id, tool_call.name, result)

        logger.info(f"Executing tool: {tool_call.name}")

        try:
            result = await self.registry.execute(tool_call.name, tool_call.arguments)
        except ToolError as e:
            result = ToolResult.failure(f"[{e.kind.value}] {e.message}")

        if result.success:
            logger.debug(f"Tool {tool_call.name} succeeded")
        else:
            logger.warning(f"Tool {tool_call.name} failed: {result.error}")

        return ToolCallResult(
            tool_call_id=tool_call.id,
            name=tool_call.name,
            result=result
        )

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolCallResult]:
        """
        Execute tool calls one after another, in request order.

        For independent calls, use execute_parallel().
        """
        results = []
        for tool_call in tool_calls:
            results.append(await self.execute_one(tool_call))
        return results

    def _is_parallel_safe(self, tool_call: ToolCall) -> bool:
        tool = self.registry.get(tool_call.name)
        return tool is not None and tool.parallel_safe

    async def execute_parallel(self, tool_calls: list[ToolCall]) -> list[ToolCallResult]:
        """
        Execute runs of adjacent read-only calls concurrently.

        Any other call waits for everything before it and runs alone, so
        writes and commands start in request order. Results are returned in
        the same order as inputs, not in order of completion.
        """
        results: list[ToolCallResult] = []
        batch: list[ToolCall] = []

        for tool_call in tool_calls:
            if self._is_parallel_safe(tool_call):
                batch.append(tool_call)
                continue
            if batch:
                results.extend(await asyncio.gather(*(self.execute_one(tc) for tc in batch)))
                batch = []
            results.append(await self.execute_one(tool_call))

        if batch:
            results.extend(await asyncio.gather(*(self.execute_one(tc) for tc in batch)))
        return results
