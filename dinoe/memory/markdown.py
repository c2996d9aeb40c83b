"""
Markdown Memory
===============

File-backed persistent memory. Everything is plain markdown, so a person
can read and edit what the agent remembers.

File Structure:
    <memory_dir>/
    ├── MEMORY.md          # Long-term facts
    └── daily/
        ├── 2026-10-18.md  # Daily logs
        └── 2026-10-19.md

MEMORY.md Format:
    # Long-Term Memory

    - [2026-10-18] User prefers answers in bullet points
    - [2026-10-19] **editor**: The project uses neovim

    ## Projects
    - [2026-10-19] Working on the dinoe runtime

Daily Log Format:
    # Daily Log - 2026-10-19

    - [09:12] User: what time is it?
    - [09:12] Assistant: It is 09:12.

Search:
    Plain keyword scoring. A line's score is the fraction of the distinct
    query keywords it contains. Lines scoring zero are dropped; the rest
    are ordered by score, then by date, newest first.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dinoe.utils.logger import Logger

logger = Logger("MarkdownMemory")

CORE_CATEGORY = "core"
DAILY_CATEGORY = "daily"

_CORE_HEADER = "# Long-Term Memory\n"
_CORE_DATE = re.compile(r"^-\s*\[(\d{4}-\d{2}-\d{2})\]\s*")
_DAILY_TIME = re.compile(r"^-\s*\[(\d{2}:\d{2})\]\s*")
_WORD = re.compile(r"\w+")


@dataclass(frozen=True)
class MemoryHit:
    """
    One matching memory entry.

    Attributes:
        text: The entry without its list marker and timestamp
        score: Fraction of query keywords found, in (0, 1]
        date: When the entry was written, if known
    """
    text: str
    score: float
    date: datetime | None = None


def extract_keywords(query: str) -> list[str]:
    """Distinct lowercase words of the query, in order of appearance."""
    seen = []
    for word in _WORD.findall(query.lower()):
        if word not in seen:
            seen.append(word)
    return seen


def score_line(line: str, keywords: list[str]) -> float:
    if not keywords:
        return 0.0
    lowered = line.lower()
    matched = sum(1 for kw in keywords if kw in lowered)
    return matched / len(keywords)


def rank_hits(hits: list[MemoryHit], limit: int | None = None) -> list[MemoryHit]:
    """Order by score, then date, newest first; undated entries sort last."""
    ordered = sorted(
        hits,
        key=lambda h: (h.score, h.date or datetime.min),
        reverse=True,
    )
    return ordered[:limit] if limit is not None else ordered


class MarkdownMemory:
    """
    Keyword-searchable memory stored in markdown files.

    Example:
        memory = MarkdownMemory(Path("~/.dinoe/workspace").expanduser())

        await memory.append("User prefers 10am meetings")
        await memory.append("Discussed Q1 planning", category="daily")

        hits = await memory.search("meeting time", limit=5)
    """

    def __init__(self, memory_dir: Path):
        """
        Args:
            memory_dir: Directory holding MEMORY.md and daily/
        """
        self.memory_dir = memory_dir
        self.memory_file = memory_dir / "MEMORY.md"
        self.daily_dir = memory_dir / "daily"

    def _ensure_directories(self) -> None:
        self.memory_dir.mkdir(parents=True, exist_ok=True)
        self.daily_dir.mkdir(parents=True, exist_ok=True)

    def _get_daily_file(self, date: datetime | None = None) -> Path:
        if date is None:
            date = datetime.now()
        return self.daily_dir / (date.strftime("%Y-%m-%d") + ".md")

    # ==========================================================================
    # Writing
    # ==========================================================================

    async def append(self, content: str, category: str = CORE_CATEGORY, key: str | None = None) -> None:
        """
        Append an entry. Existing entries are never rewritten.

        Args:
            content: The information to store
            category: "core" for MEMORY.md, "daily" for today's log, any
                other name files the entry under a "## <Category>" heading
                at the end of MEMORY.md
            key: Optional label shown in bold before the content
        """
        content = " ".join(content.split())
        if not content:
            raise ValueError("Memory content cannot be empty")
        if key:
            content = f"**{key}**: {content}"

        category = (category or CORE_CATEGORY).strip().lower()
        if category == DAILY_CATEGORY:
            await asyncio.to_thread(self._append_daily_sync, content)
        else:
            await asyncio.to_thread(self._append_core_sync, content, category)

    def _append_core_sync(self, content: str, category: str) -> None:
        self._ensure_directories()

        date_str = datetime.now().strftime("%Y-%m-%d")
        entry = f"- [{date_str}] {content}\n"

        if not self.memory_file.exists():
            self.memory_file.write_text(_CORE_HEADER + "\n", encoding="utf-8")

        if category != CORE_CATEGORY:
            header = f"## {category.title()}"
            current = self.memory_file.read_text(encoding="utf-8")
            last_header = None
            for line in current.splitlines():
                if line.startswith("## "):
                    last_header = line.strip()
            # Only the trailing section can be extended by appending
            if last_header != header:
                entry = f"\n{header}\n{entry}"

        with self.memory_file.open("a", encoding="utf-8") as f:
            f.write(entry)

        logger.debug(f"Wrote to long-term memory: {category}")

    def _append_daily_sync(self, content: str) -> None:
        self._ensure_directories()
        now = datetime.now()
        daily_file = self._get_daily_file(now)

        if not daily_file.exists():
            daily_file.write_text(f"# Daily Log - {now.strftime('%Y-%m-%d')}\n\n", encoding="utf-8")

        with daily_file.open("a", encoding="utf-8") as f:
            f.write(f"- [{now.strftime('%H:%M')}] {content}\n")

        logger.debug("Wrote to daily log")

    # ==========================================================================
    # Searching
    # ==========================================================================

    async def search(self, query: str, limit: int | None = None) -> list[MemoryHit]:
        """
        Keyword search over MEMORY.md and all daily logs.

        Args:
            query: Free text; its words are the keywords
            limit: Maximum number of hits to return

        Returns:
            Hits ordered by score then date, newest first
        """
        return await asyncio.to_thread(self._search_sync, query, limit)

    def _search_sync(self, query: str, limit: int | None) -> list[MemoryHit]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        hits = []
        for text, date in self._iter_entries():
            score = score_line(text, keywords)
            if score > 0:
                hits.append(MemoryHit(text=text, score=score, date=date))

        return rank_hits(hits, limit)

    def _iter_entries(self):
        """Yield (text, date) for every list entry in every memory file."""
        if self.memory_file.exists():
            for line in self.memory_file.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line.startswith("-"):
                    continue
                match = _CORE_DATE.match(line)
                if match:
                    yield line[match.end():], datetime.strptime(match.group(1), "%Y-%m-%d")
                else:
                    yield line.lstrip("- ").strip(), None

        if not self.daily_dir.is_dir():
            return

        for daily_file in sorted(self.daily_dir.glob("*.md")):
            try:
                day = datetime.strptime(daily_file.stem, "%Y-%m-%d")
            except ValueError:
                day = None

            for line in daily_file.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line.startswith("-"):
                    continue
                match = _DAILY_TIME.match(line)
                if match and day is not None:
                    hours, minutes = match.group(1).split(":")
                    yield line[match.end():], day.replace(hour=int(hours), minute=int(minutes))
                elif match:
                    yield line[match.end():], None
                else:
                    yield line.lstrip("- ").strip(), day
