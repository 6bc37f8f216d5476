#!/usr/bin/env python3
"""
Agent Lint - Skill Frontmatter Linter

Validates the YAML frontmatter of agent skills (.github/skills/<name>/SKILL.md)
following the agentskills.io field rules:

    name            required, kebab-case, <= 64 chars, equals the directory name
    description     required, non-blank, <= 1024 chars
    license         optional string
    compatibility   optional string, <= 500 chars
    metadata        optional string -> string mapping
    allowed-tools   optional string, recommended (warning when absent)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from lint_common import (
    MAX_COMPATIBILITY_LENGTH,
    LintReport,
    LintTarget,
    ParsedFrontmatter,
    count_severity,
    load_frontmatter,
    require_target_dir,
    validate_description_field,
    validate_name_field,
)
from lint_discovery import DiscoveredSkillFile, discover_skills, read_text_file
from lint_rules import DEFAULT_LINT_RULES, LintRulesConfig, apply_rule_config

# Optional fields that produce a warning when missing
RECOMMENDED_FIELDS = ("allowed-tools",)


@dataclass
class SkillLintReport(LintReport):
    """Lint report for one SKILL.md file."""

    target: LintTarget = "skill"
    skill_name: str = ""

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        base = super().to_dict()
        base["skill_name"] = self.skill_name
        return base


@dataclass
class LintSkillFrontmatterOutput:
    """Result of linting every skill in a repository."""

    results: list[SkillLintReport] = field(default_factory=list)
    total_skills: int = 0
    total_errors: int = 0
    total_warnings: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "results": [r.to_dict() for r in self.results],
            "total_skills": self.total_skills,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
        }


def _invalid_field(report: LintReport, parsed: ParsedFrontmatter, field_name: str, message: str) -> None:
    report.error("skill/invalid-field", message, parsed.line_of(field_name), field_name)


def validate_optional_fields(parsed: ParsedFrontmatter, report: SkillLintReport) -> None:
    """Validate types and limits of the optional skill fields."""
    data = parsed.data

    if "license" in data and not isinstance(data["license"], str):
        _invalid_field(report, parsed, "license", f"License must be a string, got {type(data['license']).__name__}")

    if "compatibility" in data:
        compatibility = data["compatibility"]
        if not isinstance(compatibility, str):
            _invalid_field(
                report,
                parsed,
                "compatibility",
                f"Compatibility must be a string, got {type(compatibility).__name__}",
            )
        elif len(compatibility) > MAX_COMPATIBILITY_LENGTH:
            _invalid_field(
                report,
                parsed,
                "compatibility",
                f"Compatibility must be {MAX_COMPATIBILITY_LENGTH} characters or fewer ({len(compatibility)} chars)",
            )

    if "metadata" in data:
        metadata = data["metadata"]
        if not isinstance(metadata, dict):
            _invalid_field(
                report,
                parsed,
                "metadata",
                f"Metadata must be a mapping of strings, got {type(metadata).__name__}",
            )
        elif not all(isinstance(k, str) and isinstance(v, str) for k, v in metadata.items()):
            _invalid_field(report, parsed, "metadata", "Metadata keys and values must all be strings")

    tools = data.get("allowed-tools")
    if tools is not None and not isinstance(tools, str):
        _invalid_field(
            report,
            parsed,
            "allowed-tools",
            f"allowed-tools must be a space-delimited string, got {type(tools).__name__}",
        )


def validate_recommended_fields(parsed: ParsedFrontmatter, report: SkillLintReport) -> None:
    """Warn about recommended fields that are missing."""
    for field_name in RECOMMENDED_FIELDS:
        if parsed.data.get(field_name) is None:
            report.warning(
                f"skill/missing-{field_name}",
                f"Recommended field '{field_name}' is missing",
                parsed.frontmatter_start_line,
                field_name,
            )


def lint_skill(skill: DiscoveredSkillFile, content: str) -> SkillLintReport:
    """Lint the frontmatter of one skill file.

    Diagnostics carry the catalog default severities; callers apply the
    effective rule configuration afterwards.
    """
    report = SkillLintReport(file_path=skill.file_path, skill_name=skill.skill_name)

    parsed = load_frontmatter(content, report, "Skill")
    if parsed is None:
        return report

    validate_name_field(parsed, skill.skill_name, "parent directory name", report)
    validate_description_field(parsed, report)
    validate_optional_fields(parsed, report)
    validate_recommended_fields(parsed, report)
    return report


def lint_skill_frontmatter(
    target_dir: str | None,
    rules: LintRulesConfig = DEFAULT_LINT_RULES,
    *,
    discover: Callable[[str], list[DiscoveredSkillFile]] = discover_skills,
    read_file: Callable[[str], str] = read_text_file,
) -> LintSkillFrontmatterOutput:
    """Lint every skill in a repository.

    Args:
        target_dir: Repository root
        rules: Effective rule severities
        discover: Returns the skill files to lint
        read_file: Returns a file's text

    Raises:
        TargetRequiredError: target_dir is empty or missing.
    """
    target = require_target_dir(target_dir)
    skills = discover(target)

    results: list[SkillLintReport] = []
    for skill in skills:
        try:
            content = read_file(skill.file_path)
        except (OSError, UnicodeDecodeError) as exc:
            report = SkillLintReport(file_path=skill.file_path, skill_name=skill.skill_name)
            report.error("skill/invalid-frontmatter", f"Could not read skill file: {exc}", 1)
        else:
            report = lint_skill(skill, content)
        report.diagnostics = apply_rule_config(report.diagnostics, rules)
        results.append(report)

    return LintSkillFrontmatterOutput(
        results=results,
        total_skills=len(skills),
        total_errors=count_severity(results, "error"),
        total_warnings=count_severity(results, "warning"),
    )

