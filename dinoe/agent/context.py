"""
Context Assembly
================

Builds the prompt sent to the provider on every round.

The system prompt is a fixed sequence of sections joined by a horizontal
rule; empty sections are left out:

    1. Persona       SOUL.md, TOOLS.md, USER.md from the workspace
    2. Tool usage    how to call tools, and which exist
    3. Runtime       current time, workspace path
    4. Memory        relevant snippets (score >= 0.4, best N)
    5. Skills        every loaded skill, by name

After the system prompt come the conversation summary (if any earlier
history was compacted away) and then the conversation history itself.

The same inputs always produce the same prompt; the only clock read
happens in WorkspaceFacts.now(), outside build().
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from dinoe.agent.conversation import ConversationState
from dinoe.memory import MemoryHit
from dinoe.skills import Skill
from dinoe.utils.logger import Logger

if TYPE_CHECKING:
    from dinoe.memory import MarkdownMemory

logger = Logger("Context")

SECTION_SEPARATOR = "\n\n---\n\n"
BOOTSTRAP_MAX_CHARS = 20_000
MEMORY_MIN_RELEVANCE_SCORE = 0.4
DEFAULT_MEMORY_SNIPPETS = 5

BOOTSTRAP_FILES: tuple[tuple[str, str], ...] = (
    ("SOUL.md", "## Agent Identity (SOUL.md)"),
    ("TOOLS.md", "## Local Tool Notes (TOOLS.md)"),
    ("USER.md", "## User Context (USER.md)"),
)

DEFAULT_PERSONA = """You are dinoe, a capable assistant running on the user's machine.

- Be helpful, concise and direct
- Use tools to look things up and take actions instead of guessing
- Say so plainly when something failed or you are unsure"""


@dataclass(frozen=True)
class WorkspaceFacts:
    """Runtime facts rendered into the prompt."""
    workspace: Path
    current_time: datetime

    @classmethod
    def now(cls, workspace: Path) -> "WorkspaceFacts":
        return cls(workspace=workspace, current_time=datetime.now())

    def render(self) -> str:
        timestamp = self.current_time.strftime("%Y-%m-%d %H:%M (%A)")
        return (
            "## Runtime Context\n\n"
            f"### Current Time\n{timestamp}\n\n"
            f"### Workspace\n{self.workspace}"
        )


@dataclass
class Prompt:
    """
    The fully assembled prompt.

    Attributes:
        system: The system prompt
        messages: Summary (if any) and conversation history, normalized
        tools: Tool definitions, normalized
    """
    system: str
    messages: list[dict]
    tools: list[dict] = field(default_factory=list)

    def to_messages(self) -> list[dict]:
        """System message first, then everything else."""
        return [{"role": "system", "content": self.system}, *self.messages]


def load_bootstrap_files(workspace: Path) -> str:
    """
    Read the persona files that exist, each capped at BOOTSTRAP_MAX_CHARS.

    Returns:
        The rendered persona section, or "" if none exist
    """
    parts = []
    for filename, header in BOOTSTRAP_FILES:
        path = workspace / filename
        try:
            content = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {filename}: {e}")
            continue

        if not content:
            continue

        if len(content) > BOOTSTRAP_MAX_CHARS:
            content = (
                f"{content[:BOOTSTRAP_MAX_CHARS]}\n\n"
                f"[... truncated at {BOOTSTRAP_MAX_CHARS} chars, use file_read for full content]"
            )
        parts.append(f"{header}\n\n{content}")

    return SECTION_SEPARATOR.join(parts)


def select_memory_snippets(
    hits: list[MemoryHit],
    limit: int = DEFAULT_MEMORY_SNIPPETS,
    min_score: float = MEMORY_MIN_RELEVANCE_SCORE,
) -> list[MemoryHit]:
    """Relevant hits, best score first, newest first among equals, at most `limit`."""
    relevant = [h for h in hits if h.score >= min_score and h.text.strip()]
    relevant.sort(key=lambda h: (h.score, h.date or datetime.min), reverse=True)
    return relevant[:limit]


class ContextBuilder:
    """
    Assembles prompts for provider requests.

    Example:
        builder = ContextBuilder(workspace_dir, registry.schema())

        hits = await builder.gather_memory(memory, "what did we decide?")
        prompt = builder.build(
            conversation,
            WorkspaceFacts.now(workspace_dir),
            hits,
            skills
        )
        response = await provider.send(prompt.to_messages(), prompt.tools)
    """

    def __init__(
        self,
        workspace_dir: Path,
        tool_schema: list[dict],
        memory_snippet_limit: int = DEFAULT_MEMORY_SNIPPETS,
    ):
        self.workspace_dir = workspace_dir
        self.tool_schema = tool_schema
        self.memory_snippet_limit = memory_snippet_limit

    def build(
        self,
        conversation: ConversationState,
        workspace_facts: WorkspaceFacts,
        memory_hits: list[MemoryHit],
        skills: list[Skill],
    ) -> Prompt:
        """
        Assemble the prompt for one round.

        Args:
            conversation: History to send (already compacted)
            workspace_facts: Time and workspace to report
            memory_hits: Search results from the memory collaborator
            skills: Loaded skills

        Returns:
            Prompt with system text, messages and tools
        """
        sections = [
            load_bootstrap_files(self.workspace_dir) or DEFAULT_PERSONA,
            self._tool_guidance(),
            workspace_facts.render(),
            self._memory_section(memory_hits),
            self._skills_section(skills),
        ]
        system = SECTION_SEPARATOR.join(s for s in sections if s)

        messages = []
        summary = conversation.summary_message()
        if summary is not None:
            messages.append(summary)
        messages.extend(conversation.to_wire())

        logger.debug("Built prompt", {
            "system_chars": len(system),
            "messages": len(messages),
            "memory_hits": len(memory_hits),
            "skills": len(skills),
        })

        return Prompt(system=system, messages=messages, tools=list(self.tool_schema))

    async def gather_memory(
        self,
        memory: "MarkdownMemory | None",
        query: str,
    ) -> list[MemoryHit]:
        """
        Search memory for the turn, treating any failure as "nothing found".
        """
        if memory is None or not query.strip():
            return []
        try:
            return await memory.search(query, limit=self.memory_snippet_limit)
        except Exception as e:
            logger.warning(f"Memory search failed, continuing without memory: {e}")
            return []

    def _tool_guidance(self) -> str:
        if not self.tool_schema:
            return ""

        lines = [
            "## Tool Use",
            "",
            "Use the provided tools to read files, run commands and manage memory. "
            "Call a tool instead of describing what you would do.",
            "",
            "If native tool calling is unavailable, wrap a JSON object in <tool_call> tags:",
            "",
            "<tool_call>",
            '{"name": "tool_name", "arguments": {"param": "value"}}',
            "</tool_call>",
            "",
            "You may make several tool calls in one response. Tool results come back to you; "
            "continue until you can give a final answer. If a tool fails, read the error and "
            "change your approach rather than repeating the same call.",
            "",
            "### Available Tools",
            "",
        ]
        for tool in self.tool_schema:
            lines.append(f"- **{tool['name']}**: {tool['description']}")
        return "\n".join(lines)

    def _memory_section(self, hits: list[MemoryHit]) -> str:
        selected = select_memory_snippets(hits, self.memory_snippet_limit)
        if not selected:
            return ""
        lines = ["## Relevant Memory", ""]
        lines.extend(f"- {hit.text}" for hit in selected)
        return "\n".join(lines)

    def _skills_section(self, skills: list[Skill]) -> str:
        if not skills:
            return ""

        parts = ["## Available Skills", "", "<available_skills>"]
        for skill in sorted(skills, key=lambda s: s.name):
            parts.append(
                "  <skill>\n"
                f"    <name>{skill.name}</name>\n"
                f"    <description>{skill.description}</description>\n"
                f"    <location>{skill.location}</location>\n"
                "  </skill>"
            )
        parts.append("</available_skills>")
        return "\n".join(parts)
