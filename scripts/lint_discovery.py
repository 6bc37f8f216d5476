#!/usr/bin/env python3
"""
Agent Lint - File Discovery

Finds the artifacts the linters work on inside a repository:
- Skills:        .github/skills/<name>/SKILL.md
- Agents:        .github/agents/<name>.md
- Instructions:  .github/copilot-instructions.md, .github/instructions/*.md,
                 .github/agents/*.md, AGENTS.md, CLAUDE.md

Directory listings are sorted so discovery order (which breaks score ties in
the instruction quality analysis) is the same on every run and platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

# Instruction file formats, in discovery order
InstructionFileFormat = Literal[
    "copilot-instructions",
    "copilot-scoped",
    "copilot-agent",
    "agents-md",
    "claude-md",
]

SUPPORTED_INSTRUCTION_FORMATS = (
    ".github/copilot-instructions.md, .github/instructions/*.md, .github/agents/*.md, AGENTS.md, CLAUDE.md"
)

SKILL_FILE_NAME = "SKILL.md"


@dataclass(frozen=True)
class DiscoveredSkillFile:
    """A SKILL.md file and the name of the directory that holds it."""

    file_path: str
    skill_name: str


@dataclass(frozen=True)
class DiscoveredAgentFile:
    """An agent markdown file and its filename stem."""

    file_path: str
    agent_name: str


@dataclass(frozen=True)
class DiscoveredInstructionFile:
    file_path: str
    format: InstructionFileFormat

    def to_dict(self) -> dict[str, str]:
        return {"file_path": self.file_path, "format": self.format}


def _is_safe_entry_name(name: str) -> bool:
    """Reject entry names that could escape their directory."""
    return ".." not in name and "/" not in name and "\\" not in name


def _is_inside(path: Path, directory: Path) -> bool:
    """Check that path resolves to a location inside directory."""
    try:
        path.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True


def _list_markdown_files(directory: Path) -> list[Path]:
    """Sorted *.md files directly inside directory (empty if unreadable)."""
    if not directory.is_dir():
        return []
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError:
        return []
    return [
        entry
        for entry in entries
        if entry.name.endswith(".md")
        and _is_safe_entry_name(entry.name)
        and entry.is_file()
        and _is_inside(entry, directory)
    ]


def discover_skills(target_dir: str | Path) -> list[DiscoveredSkillFile]:
    """Find .github/skills/<name>/SKILL.md files."""
    skills_dir = Path(target_dir) / ".github" / "skills"
    if not skills_dir.is_dir():
        return []

    skills: list[DiscoveredSkillFile] = []
    for entry in sorted(skills_dir.iterdir(), key=lambda p: p.name):
        if not entry.is_dir() or not _is_safe_entry_name(entry.name):
            continue
        skill_file = entry / SKILL_FILE_NAME
        if skill_file.is_file():
            skills.append(DiscoveredSkillFile(file_path=str(skill_file), skill_name=entry.name))
    return skills


def discover_agents(target_dir: str | Path) -> list[DiscoveredAgentFile]:
    """Find .github/agents/*.md files."""
    agents_dir = Path(target_dir) / ".github" / "agents"
    return [
        DiscoveredAgentFile(file_path=str(path), agent_name=path.name[: -len(".md")])
        for path in _list_markdown_files(agents_dir)
    ]


def discover_instruction_files(target_dir: str | Path) -> list[DiscoveredInstructionFile]:
    """Find agent instruction files in every supported format."""
    root = Path(target_dir)
    files: list[DiscoveredInstructionFile] = []

    copilot_instructions = root / ".github" / "copilot-instructions.md"
    if copilot_instructions.is_file():
        files.append(DiscoveredInstructionFile(str(copilot_instructions), "copilot-instructions"))

    for path in _list_markdown_files(root / ".github" / "instructions"):
        files.append(DiscoveredInstructionFile(str(path), "copilot-scoped"))

    for path in _list_markdown_files(root / ".github" / "agents"):
        files.append(DiscoveredInstructionFile(str(path), "copilot-agent"))

    agents_md = root / "AGENTS.md"
    if agents_md.is_file():
        files.append(DiscoveredInstructionFile(str(agents_md), "agents-md"))

    claude_md = root / "CLAUDE.md"
    if claude_md.is_file():
        files.append(DiscoveredInstructionFile(str(claude_md), "claude-md"))

    return files


def read_text_file(file_path: str) -> str:
    """Read a discovered file as UTF-8 text."""
    return Path(file_path).read_text(encoding="utf-8")
