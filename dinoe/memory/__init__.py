"""
Memory System
=============

Persistent, human-readable memory for the agent.

Two kinds of entries:
1. CORE: long-lived facts in MEMORY.md
2. DAILY: a running log of each day's conversation in daily/YYYY-MM-DD.md

The agent uses memory in three places:
- the context builder searches it for snippets relevant to each turn
- the memory_read / memory_write tools let the model search and extend it
- every finished turn is appended to the daily log

Usage:
    from dinoe.memory import MarkdownMemory

    memory = MarkdownMemory(workspace_dir)
    await memory.append("User prefers morning standups")
    hits = await memory.search("standup time")
"""

from dinoe.memory.markdown import (
    CORE_CATEGORY,
    DAILY_CATEGORY,
    MarkdownMemory,
    MemoryHit,
    extract_keywords,
    rank_hits,
    score_line,
)

__all__ = [
    "CORE_CATEGORY",
    "DAILY_CATEGORY",
    "MarkdownMemory",
    "MemoryHit",
    "extract_keywords",
    "rank_hits",
    "score_line",
]
