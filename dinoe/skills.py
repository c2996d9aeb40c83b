"""
Skills
======

Skills are task-specific instructions kept in the workspace:

    <workspace>/skills/
    ├── git-helper/
    │   └── SKILL.md
    └── weekly-report/
        └── SKILL.md

SKILL.md may start with YAML front matter:

    ---
    name: weekly-report
    description: Draft the weekly status report from daily logs
    ---
    # Weekly report
    ...

Without front matter the first heading is the name and the first non-heading
line is the description. The system prompt lists every skill (name,
description, location); the model reads the full SKILL.md with file_read when
it needs the details.
"""

from dataclasses import dataclass
from pathlib import Path

import yaml

from dinoe.utils.logger import Logger

logger = Logger("Skills")

SKILL_FILE = "SKILL.md"


@dataclass(frozen=True)
class Skill:
    name: str
    description: str
    text: str
    location: Path


def is_unsafe_skill_name(name: str) -> bool:
    return (
        ".." in name
        or "/" in name
        or "\\" in name
        or "\0" in name
        or not name.strip()
    )


def _split_front_matter(content: str) -> tuple[dict | None, str]:
    lines = content.splitlines()
    if len(lines) < 3 or lines[0].strip() != "---":
        return None, content

    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            try:
                data = yaml.safe_load("\n".join(lines[1:i]))
            except yaml.YAMLError as e:
                logger.warning(f"Invalid front matter, using headings instead: {e}")
                return None, content
            body = "\n".join(lines[i + 1:])
            return (data if isinstance(data, dict) else None), body

    return None, content


def parse_skill(content: str, location: Path, fallback_name: str) -> Skill:
    """
    Build a Skill from SKILL.md text.

    Front matter without a description falls back to the body's first
    heading and first plain line.
    """
    front, body = _split_front_matter(content)

    if front and front.get("name") and front.get("description"):
        return Skill(
            name=str(front["name"]),
            description=str(front["description"]),
            text=body.strip(),
            location=location,
        )

    lines = body.splitlines()
    first_line = lines[0] if lines else ""
    name = first_line.lstrip("#").strip() or fallback_name
    if front and front.get("name"):
        name = str(front["name"])

    description = next(
        (l.strip() for l in lines if l.strip() and not l.startswith("#")),
        "No description",
    )

    return Skill(name=name, description=description, text=body.strip(), location=location)


class SkillLoader:
    """
    Reads every skill under <workspace>/skills once and caches the result.

    Example:
        loader = SkillLoader(workspace_dir)
        for skill in loader.load_all():
            print(skill.name, skill.description)
    """

    def __init__(self, workspace_dir: Path):
        self.skills_dir = workspace_dir / "skills"
        self._cache: list[Skill] | None = None

    def load_all(self) -> list[Skill]:
        """All skills sorted by name. Unreadable skills are skipped."""
        if self._cache is None:
            self._cache = self._load()
        return list(self._cache)

    def reload(self) -> list[Skill]:
        self._cache = None
        return self.load_all()

    def _load(self) -> list[Skill]:
        if not self.skills_dir.is_dir():
            logger.debug(f"Skills directory does not exist: {self.skills_dir}")
            return []

        skills = []
        skipped = 0

        for path in sorted(self.skills_dir.iterdir()):
            if not path.is_dir():
                continue

            if is_unsafe_skill_name(path.name):
                logger.warning(f"Skipping unsafe skill name: {path.name!r}")
                skipped += 1
                continue

            skill_file = path / SKILL_FILE
            try:
                content = skill_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to load skill '{path.name}': {e}")
                skipped += 1
                continue

            skills.append(parse_skill(content, skill_file, path.name))

        skills.sort(key=lambda s: s.name)
        logger.info(f"Skills loaded: {len(skills)} (skipped {skipped})")
        return skills
