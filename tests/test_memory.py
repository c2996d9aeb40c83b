"""Tests for the markdown memory."""
from datetime import datetime

import pytest

from dinoe.memory import MarkdownMemory, MemoryHit, extract_keywords, rank_hits, score_line


class TestScoring:

    def test_keywords_are_distinct_and_lowercase(self):
        assert extract_keywords("Meeting time, meeting PLACE") == ["meeting", "time", "place"]

    def test_score_is_fraction_of_keywords(self):
        assert score_line("The meeting is at 10am", ["meeting", "time"]) == 0.5
        assert score_line("nothing relevant", ["meeting"]) == 0.0

    def test_ties_break_by_date_newest_first(self):
        old = MemoryHit("old", 0.5, datetime(2026, 1, 1))
        new = MemoryHit("new", 0.5, datetime(2026, 6, 1))
        best = MemoryHit("best", 1.0, datetime(2025, 1, 1))
        undated = MemoryHit("undated", 0.5, None)

        assert [h.text for h in rank_hits([old, undated, new, best])] == ["best", "new", "old", "undated"]

    def test_rank_applies_limit(self):
        hits = [MemoryHit(str(i), i / 10) for i in range(10)]

        assert [h.text for h in rank_hits(hits, limit=3)] == ["9", "8", "7"]


class TestMarkdownMemory:

    @pytest.mark.asyncio
    async def test_core_entries_go_to_memory_file(self, memory, workspace):
        await memory.append("User likes short answers")

        content = (workspace / "MEMORY.md").read_text()
        today = datetime.now().strftime("%Y-%m-%d")
        assert f"- [{today}] User likes short answers" in content

    @pytest.mark.asyncio
    async def test_daily_entries_go_to_daily_log(self, memory, workspace):
        await memory.append("Discussed the roadmap", category="daily")

        today = datetime.now().strftime("%Y-%m-%d")
        daily = (workspace / "daily" / f"{today}.md").read_text()
        assert daily.startswith(f"# Daily Log - {today}")
        assert "] Discussed the roadmap" in daily

    @pytest.mark.asyncio
    async def test_custom_category_gets_a_section(self, memory, workspace):
        await memory.append("dinoe runtime", category="projects")
        await memory.append("weekly report", category="projects")

        content = (workspace / "MEMORY.md").read_text()
        assert content.count("## Projects") == 1
        assert content.index("## Projects") < content.index("dinoe runtime") < content.index("weekly report")

    @pytest.mark.asyncio
    async def test_appends_never_rewrite(self, memory, workspace):
        await memory.append("first")
        before = (workspace / "MEMORY.md").read_text()
        await memory.append("second")

        assert (workspace / "MEMORY.md").read_text().startswith(before)

    @pytest.mark.asyncio
    async def test_empty_content_is_rejected(self, memory):
        with pytest.raises(ValueError):
            await memory.append("   ")

    @pytest.mark.asyncio
    async def test_search_scores_and_orders(self, memory, workspace):
        (workspace / "MEMORY.md").write_text(
            "# Long-Term Memory\n\n"
            "- [2026-01-01] standup meeting moved to 10am\n"
            "- [2026-03-01] standup notes are in the wiki\n"
            "- [2026-02-01] unrelated entry\n"
        )

        hits = await memory.search("standup meeting")

        assert [h.text for h in hits] == [
            "standup meeting moved to 10am",
            "standup notes are in the wiki",
        ]
        assert hits[0].score == 1.0
        assert hits[1].score == 0.5
        assert hits[1].date == datetime(2026, 3, 1)

    @pytest.mark.asyncio
    async def test_search_includes_daily_logs_with_time(self, memory, workspace):
        daily = workspace / "daily"
        daily.mkdir()
        (daily / "2026-10-18.md").write_text("# Daily Log - 2026-10-18\n\n- [09:30] deploy went fine\n")

        hits = await memory.search("deploy")

        assert hits == [MemoryHit("deploy went fine", 1.0, datetime(2026, 10, 18, 9, 30))]

    @pytest.mark.asyncio
    async def test_search_without_files(self, tmp_path):
        memory = MarkdownMemory(tmp_path / "nothing-here")

        assert await memory.search("anything") == []

    @pytest.mark.asyncio
    async def test_search_with_blank_query(self, memory):
        await memory.append("something")

        assert await memory.search("  ?! ") == []
