#!/usr/bin/env python3
"""
Agent Lint - Common Module

Shared infrastructure for the agent instruction linters.
This module contains:
- Error types (AgentLintError, TargetRequiredError, LintConfigError)
- Type definitions (Severity, LintTarget, LintDiagnostic, LintReport, LintOutput)
- YAML frontmatter parsing with per-field line numbers
- Checks shared by skill and agent frontmatter (name, description)
- Utility functions (sorting, counting, grading, terminal colors)

All linters import from this module so diagnostics look the same regardless
of which artifact kind produced them.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Literal

import yaml

# =============================================================================
# Errors
# =============================================================================


class AgentLintError(Exception):
    """Base class for conditions that abort a whole lint or analysis run."""


class TargetRequiredError(AgentLintError):
    """Raised when no target directory was given."""

    def __init__(self) -> None:
        super().__init__("Target directory is required")


class LintConfigError(AgentLintError):
    """Raised when lint rule overrides cannot be loaded or resolved."""


class FrontmatterError(ValueError):
    """Raised when frontmatter YAML parses but is not a key-value mapping."""


def require_target_dir(target_dir: str | os.PathLike[str] | None) -> str:
    """Return the target directory as a string, rejecting empty values."""
    if target_dir is None:
        raise TargetRequiredError()
    target = os.fspath(target_dir)
    if not target.strip():
        raise TargetRequiredError()
    return target


# =============================================================================
# Type Definitions
# =============================================================================

# Diagnostic severities as reported to users
# - error: makes the file invalid and the lint run fail
# - warning: always reported, never affects validity
# - info: informational only
Severity = Literal["error", "warning", "info"]

# Artifact kinds a diagnostic can belong to
LintTarget = Literal["skill", "agent", "instruction"]

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_OK = 0  # No error diagnostics (warnings allowed)
EXIT_ERRORS = 1  # At least one error diagnostic
EXIT_FATAL = 2  # Missing target directory or unusable lint config

# =============================================================================
# Frontmatter Constants
# =============================================================================

FRONTMATTER_DELIMITER = "---"

# Lowercase letters and digits in groups joined by single hyphens
NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024
MAX_COMPATIBILITY_LENGTH = 500

# Top-level YAML keys: no leading whitespace, no colon inside, colon then space or EOL
_FIELD_LINE_RE = re.compile(r"^([^\s:#][^:]*?):(?:\s|$)")

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class LintDiagnostic:
    """Single lint finding.

    Attributes:
        file_path: File the finding belongs to
        line: 1-based line number (best known position)
        severity: error, warning or info
        message: Human-readable description
        rule_id: Namespaced rule identifier, e.g. "skill/missing-name"
        target: Artifact kind that produced the finding
        field: Frontmatter field the finding is about, if any
    """

    file_path: str
    line: int
    severity: Severity
    message: str
    rule_id: str
    target: LintTarget
    field: str | None = None

    def with_severity(self, severity: Severity) -> LintDiagnostic:
        """Return a copy carrying a different severity."""
        if severity == self.severity:
            return self
        return replace(self, severity=severity)

    def to_dict(self) -> dict[str, str | int]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, str | int] = {
            "file_path": self.file_path,
            "line": self.line,
            "severity": self.severity,
            "message": self.message,
            "rule_id": self.rule_id,
            "target": self.target,
        }
        if self.field is not None:
            result["field"] = self.field
        return result


@dataclass(frozen=True)
class ParsedFrontmatter:
    """YAML frontmatter of a document together with the line of each top-level field."""

    data: dict[str, Any]
    field_lines: dict[str, int]
    frontmatter_start_line: int = 1

    def line_of(self, field_name: str) -> int:
        """Line of a field, falling back to the frontmatter start line."""
        return self.field_lines.get(field_name, self.frontmatter_start_line)


@dataclass
class LintReport:
    """Diagnostics collected for one linted file.

    Linters append through error()/warning() and never stop at the first
    problem, so one run reports every violation in the file.
    """

    file_path: str = ""
    target: LintTarget = "instruction"
    diagnostics: list[LintDiagnostic] = field(default_factory=list)

    def add(
        self,
        severity: Severity,
        rule_id: str,
        message: str,
        line: int = 1,
        field_name: str | None = None,
    ) -> None:
        """Add a diagnostic for this report's file."""
        self.diagnostics.append(
            LintDiagnostic(
                file_path=self.file_path,
                line=line,
                severity=severity,
                message=message,
                rule_id=rule_id,
                target=self.target,
                field=field_name,
            )
        )

    def error(self, rule_id: str, message: str, line: int = 1, field_name: str | None = None) -> None:
        """Add an error diagnostic."""
        self.add("error", rule_id, message, line, field_name)

    def warning(self, rule_id: str, message: str, line: int = 1, field_name: str | None = None) -> None:
        """Add a warning diagnostic (never affects validity)."""
        self.add("warning", rule_id, message, line, field_name)

    @property
    def has_errors(self) -> bool:
        """Check if any error diagnostics exist."""
        return any(d.severity == "error" for d in self.diagnostics)

    @property
    def valid(self) -> bool:
        """A file is valid when it has no error diagnostics."""
        return not self.has_errors

    def count_by_severity(self) -> dict[str, int]:
        """Get count of diagnostics by severity."""
        return count_by_severity(self.diagnostics)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "file_path": self.file_path,
            "target": self.target,
            "valid": self.valid,
            "counts": self.count_by_severity(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass
class LintOutput:
    """Diagnostics of one lint target across all of its files."""

    target: LintTarget
    diagnostics: list[LintDiagnostic] = field(default_factory=list)
    files_analyzed: list[str] = field(default_factory=list)
    total_files: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    total_infos: int = 0

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target,
            "files_analyzed": list(self.files_analyzed),
            "summary": {
                "total_files": self.total_files,
                "total_errors": self.total_errors,
                "total_warnings": self.total_warnings,
                "total_infos": self.total_infos,
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# =============================================================================
# Frontmatter Parsing
# =============================================================================


def has_frontmatter_delimiters(content: str) -> bool:
    """Check whether content opens with --- and has a later closing --- line."""
    lines = content.removeprefix("\ufeff").split("\n")
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return False
    return any(line.strip() == FRONTMATTER_DELIMITER for line in lines[1:])


def parse_frontmatter(content: str) -> ParsedFrontmatter | None:
    """Parse YAML frontmatter from document content.

    Returns:
        ParsedFrontmatter, or None when the document does not open with a
        --- line or the opening delimiter is never closed.
        A leading byte order mark is ignored.

    Raises:
        yaml.YAMLError: The text between the delimiters is not valid YAML.
        FrontmatterError: The YAML is valid but not a key-value mapping.
    """
    lines = content.removeprefix("\ufeff").split("\n")
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None

    end_index = next(
        (i for i in range(1, len(lines)) if lines[i].strip() == FRONTMATTER_DELIMITER),
        None,
    )
    if end_index is None:
        return None

    data = yaml.safe_load("\n".join(lines[1:end_index]))
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"frontmatter must be a key-value mapping, got {type(data).__name__}")

    field_lines: dict[str, int] = {}
    for i in range(1, end_index):
        match = _FIELD_LINE_RE.match(lines[i])
        if match:
            field_lines[match.group(1).strip("'\"")] = i + 1

    return ParsedFrontmatter(data=dict(data), field_lines=field_lines, frontmatter_start_line=1)


def load_frontmatter(content: str, report: LintReport, artifact_label: str) -> ParsedFrontmatter | None:
    """Parse frontmatter, reporting missing or invalid frontmatter on the report.

    Returns the parsed frontmatter, or None after adding exactly one
    missing-frontmatter / invalid-frontmatter error at line 1.
    """
    kind = report.target
    try:
        parsed = parse_frontmatter(content)
    except (yaml.YAMLError, FrontmatterError) as exc:
        detail = str(exc).strip()
        message = f"Invalid YAML frontmatter: {detail}" if detail else "Invalid YAML frontmatter."
        report.error(f"{kind}/invalid-frontmatter", message, 1)
        return None

    if parsed is not None:
        return parsed

    if has_frontmatter_delimiters(content):
        report.error(
            f"{kind}/invalid-frontmatter",
            "Invalid YAML frontmatter. The content between --- delimiters could not be parsed as valid YAML.",
            1,
        )
    else:
        report.error(
            f"{kind}/missing-frontmatter",
            f"Missing YAML frontmatter. {artifact_label} files must begin with --- delimited YAML frontmatter.",
            1,
        )
    return None


# =============================================================================
# Shared Field Checks
# =============================================================================


def validate_name_field(parsed: ParsedFrontmatter, identifier: str, identifier_label: str, report: LintReport) -> None:
    """Validate the required 'name' field and that it matches the artifact identifier.

    Args:
        parsed: Parsed frontmatter
        identifier: File stem (agents) or enclosing directory name (skills)
        identifier_label: How the identifier is described in messages
        report: Report to add diagnostics to
    """
    kind = report.target
    line = parsed.line_of("name")
    name = parsed.data.get("name")

    if name is None or name == "":
        report.error(f"{kind}/missing-name", "Name is required", line, "name")
        return

    if not isinstance(name, str):
        report.error(
            f"{kind}/invalid-name-format",
            f"Name must be a string, got {type(name).__name__}",
            line,
            "name",
        )
        return

    if len(name) > MAX_NAME_LENGTH:
        report.error(
            f"{kind}/invalid-name-format",
            f"Name must be {MAX_NAME_LENGTH} characters or fewer ({len(name)} chars)",
            line,
            "name",
        )
        return

    if not NAME_PATTERN.match(name):
        report.error(
            f"{kind}/invalid-name-format",
            "Name must contain only lowercase letters, numbers, and hyphens. "
            "It cannot start/end with a hyphen or contain consecutive hyphens.",
            line,
            "name",
        )
        return

    if name != identifier:
        report.error(
            f"{kind}/name-mismatch",
            f"Frontmatter name '{name}' must match {identifier_label} '{identifier}'",
            line,
            "name",
        )


def validate_description_field(parsed: ParsedFrontmatter, report: LintReport) -> None:
    """Validate the required 'description' field."""
    kind = report.target
    line = parsed.line_of("description")
    desc = parsed.data.get("description")

    if desc is None:
        report.error(f"{kind}/missing-description", "Description is required", line, "description")
        return

    if not isinstance(desc, str):
        report.error(
            f"{kind}/invalid-description",
            f"Description must be a string, got {type(desc).__name__}",
            line,
            "description",
        )
        return

    if not desc.strip():
        report.error(
            f"{kind}/missing-description",
            "Description cannot be empty or whitespace-only",
            line,
            "description",
        )
        return

    if len(desc) > MAX_DESCRIPTION_LENGTH:
        report.error(
            f"{kind}/invalid-description",
            f"Description must be {MAX_DESCRIPTION_LENGTH} characters or fewer ({len(desc)} chars)",
            line,
            "description",
        )


# =============================================================================
# Aggregation
# =============================================================================


def sort_diagnostics(diagnostics: Iterable[LintDiagnostic]) -> list[LintDiagnostic]:
    """Order diagnostics by file path, keeping emission order within a file."""
    return sorted(diagnostics, key=lambda d: d.file_path)


def count_by_severity(diagnostics: Iterable[LintDiagnostic]) -> dict[str, int]:
    """Get count of diagnostics by severity."""
    counts: dict[str, int] = {"error": 0, "warning": 0, "info": 0}
    for d in diagnostics:
        counts[d.severity] = counts.get(d.severity, 0) + 1
    return counts


def count_severity(reports: Iterable[LintReport], severity: Severity) -> int:
    """Sum diagnostics of one severity across per-file reports."""
    return sum(1 for r in reports for d in r.diagnostics if d.severity == severity)


def build_lint_output(
    target: LintTarget,
    diagnostics: Iterable[LintDiagnostic],
    files_analyzed: Iterable[str],
) -> LintOutput:
    """Collect one target's diagnostics into a LintOutput with summary counts."""
    ordered = sort_diagnostics(diagnostics)
    files = list(files_analyzed)
    counts = count_by_severity(ordered)
    return LintOutput(
        target=target,
        diagnostics=ordered,
        files_analyzed=files,
        total_files=len(files),
        total_errors=counts["error"],
        total_warnings=counts["warning"],
        total_infos=counts["info"],
    )


def calculate_letter_grade(score: int) -> str:
    """Convert numeric score (0-100) to letter grade.

    Grade scale:
    - A : 90-100
    - B : 80-89
    - C : 70-79
    - D : 60-69
    - F : 0-59
    """
    if score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 70:
        return "C"
    elif score >= 60:
        return "D"
    else:
        return "F"


# =============================================================================
# Color Formatting (for terminal output)
# =============================================================================

# ANSI color codes
COLORS = {
    "error": "\033[91m",  # Red
    "warning": "\033[93m",  # Yellow
    "info": "\033[90m",  # Gray
    "passed": "\033[92m",  # Green
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
}

_color_enabled = "NO_COLOR" not in os.environ


def set_color_enabled(enabled: bool) -> None:
    """Turn ANSI colors on or off for colorize()."""
    global _color_enabled
    _color_enabled = enabled


def colorize(text: str, level: str) -> str:
    """Apply color to text based on level."""
    if not _color_enabled:
        return text
    color = COLORS.get(level, "")
    return f"{color}{text}{COLORS['RESET']}"
