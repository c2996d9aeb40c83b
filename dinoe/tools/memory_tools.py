"""
Memory Tools
============

memory_read and memory_write: the model's handle on the markdown memory.

memory_read runs the same keyword search the context builder uses, so the
model can look further back than the snippets it was given. memory_write
appends; nothing is ever edited or removed.
"""

from pydantic import BaseModel, Field

from dinoe.memory import CORE_CATEGORY, MarkdownMemory
from dinoe.tools import Tool, ToolResult
from dinoe.utils.logger import Logger

logger = Logger("MemoryTools")

DEFAULT_READ_LIMIT = 10


class MemoryReadArgs(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=DEFAULT_READ_LIMIT, ge=1, le=100)


class MemoryWriteArgs(BaseModel):
    content: str = Field(min_length=1)
    category: str = Field(default=CORE_CATEGORY, min_length=1)
    key: str | None = None


def create_memory_read_tool(memory: MarkdownMemory) -> Tool:
    async def _memory_read(args: MemoryReadArgs) -> ToolResult:
        hits = await memory.search(args.query, limit=args.limit)
        if not hits:
            return ToolResult.ok("No memories found matching the query.")

        lines = []
        for hit in hits:
            date = f"[{hit.date.strftime('%Y-%m-%d %H:%M')}] " if hit.date else ""
            lines.append(f"- {date}{hit.text} (score: {hit.score:.2f})")
        return ToolResult.ok(f"Found {len(hits)} memories:\n" + "\n".join(lines))

    return Tool(
        name="memory_read",
        description="Search stored memories by keywords. Returns the best matching entries.",
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keywords or phrase to search for in memory"
                },
                "limit": {
                    "type": "integer",
                    "description": f"Maximum number of results to return (default: {DEFAULT_READ_LIMIT})"
                }
            },
            "required": ["query"]
        },
        args_model=MemoryReadArgs,
        execute=_memory_read,
        parallel_safe=True,
    )


def create_memory_write_tool(memory: MarkdownMemory) -> Tool:
    async def _memory_write(args: MemoryWriteArgs) -> ToolResult:
        await memory.append(args.content, category=args.category, key=args.key)
        logger.info(f"Stored memory ({args.category})")
        return ToolResult.ok(f"Stored memory in category: {args.category}")

    return Tool(
        name="memory_write",
        description=(
            "Store information for future reference: important facts, user preferences, "
            "decisions, or context that should persist."
        ),
        parameters={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The content to store in memory"
                },
                "category": {
                    "type": "string",
                    "description": "'core' for long-term facts, 'daily' for logs (default: 'core')"
                },
                "key": {
                    "type": "string",
                    "description": "Optional short label for this memory"
                }
            },
            "required": ["content"]
        },
        args_model=MemoryWriteArgs,
        execute=_memory_write,
    )
