#!/usr/bin/env python3
"""
Agent Lint - Instruction Quality Analysis

Scores how well each mandatory feedback loop command (test, build, lint,
format) is documented across a repository's agent instruction files.

Every command gets three binary dimensions per file:

    structural_context  occurs in code under a heading matching a pattern
                        such as "Validation" or "Feedback Loop"
    execution_clarity   occurs in a fenced/indented code block or inline code
    loop_completeness   a code block containing it is followed, within the
                        proximity window, by error handling prose ("if it
                        fails", "fix", "retry" ...)

The composite is their mean rounded to two decimals. The file with the
strictly highest composite wins; ties keep the first file in discovery order.

Usage:
    agent-instruction-quality [target] [--json] [--verbose]
                              [--heading-pattern P]... [--proximity-window N]
"""

from __future__ import annotations

import argparse
import json
import math
import os
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from feedback_commands import get_mandatory_commands
from lint_common import (
    EXIT_FATAL,
    EXIT_OK,
    AgentLintError,
    LintDiagnostic,
    LintReport,
    calculate_letter_grade,
    colorize,
    count_by_severity,
    require_target_dir,
    set_color_enabled,
    sort_diagnostics,
)
from lint_discovery import SUPPORTED_INSTRUCTION_FORMATS, DiscoveredInstructionFile, discover_instruction_files
from lint_rules import DEFAULT_LINT_RULES, LintRulesConfig, apply_rule_config, load_lint_config
from markdown_structure import (
    MarkdownHeading,
    MarkdownStructure,
    find_conditional_keywords_in_proximity,
    parse_markdown_file,
)

# Headings that introduce a feedback loop section (case-insensitive substring)
DEFAULT_STRUCTURAL_HEADING_PATTERNS: tuple[str, ...] = (
    "Validation",
    "Verification",
    "Feedback Loop",
    "Mandatory",
    "Before Commit",
    "Validation Suite",
    "Commands",
)

# Words that signal error handling guidance near a code block
CONDITIONAL_KEYWORDS: tuple[str, ...] = (
    "if",
    "fail",
    "fails",
    "failure",
    "error",
    "retry",
    "revert",
    "fix",
    "resolve",
    "broken",
    "red",
    "otherwise",
)

DEFAULT_PROXIMITY_WINDOW = 3

NO_INSTRUCTION_FILES_MESSAGE = f"No agent instruction files found. Supported formats: {SUPPORTED_INSTRUCTION_FORMATS}"

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class CommandQualityScores:
    """Best-file scores of one mandatory command."""

    command_name: str
    structural_context: int
    execution_clarity: int
    loop_completeness: int
    composite_score: float
    best_source_file: str

    def to_dict(self) -> dict[str, object]:
        return {
            "command_name": self.command_name,
            "structural_context": self.structural_context,
            "execution_clarity": self.execution_clarity,
            "loop_completeness": self.loop_completeness,
            "composite_score": self.composite_score,
            "best_source_file": self.best_source_file,
        }


@dataclass(frozen=True)
class ParsingError:
    """An instruction file whose structure could not be extracted."""

    file_path: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"file_path": self.file_path, "error": self.error}


@dataclass
class InstructionQualityResult:
    discovered_files: list[DiscoveredInstructionFile] = field(default_factory=list)
    command_scores: list[CommandQualityScores] = field(default_factory=list)
    overall_quality_score: int = 0
    suggestions: list[str] = field(default_factory=list)
    parsing_errors: list[ParsingError] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "discovered_files": [f.to_dict() for f in self.discovered_files],
            "command_scores": [s.to_dict() for s in self.command_scores],
            "overall_quality_score": self.overall_quality_score,
            "suggestions": list(self.suggestions),
            "parsing_errors": [e.to_dict() for e in self.parsing_errors],
        }


@dataclass
class AnalyzeInstructionQualityOutput:
    """Quality result plus the per-file instruction diagnostics."""

    result: InstructionQualityResult
    diagnostics: list[LintDiagnostic] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return count_by_severity(self.diagnostics)["error"]

    @property
    def total_warnings(self) -> int:
        return count_by_severity(self.diagnostics)["warning"]

    def to_dict(self) -> dict[str, object]:
        return {
            "result": self.result.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
        }


@dataclass(frozen=True)
class CommandFileAnalysis:
    """Scores of one command in one file."""

    structural_context: int
    execution_clarity: int
    loop_completeness: int
    source_file: str

    @property
    def composite(self) -> float:
        return composite_score(self.structural_context, self.execution_clarity, self.loop_completeness)


# =============================================================================
# Scoring Helpers
# =============================================================================


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (2.5 -> 3), unlike round()'s banker's rounding."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def composite_score(structural_context: int, execution_clarity: int, loop_completeness: int) -> float:
    """Mean of the three dimensions, rounded to two decimals."""
    return round_half_up((structural_context + execution_clarity + loop_completeness) / 3, 2)


def overall_quality_score(command_scores: Sequence[CommandQualityScores]) -> int:
    """Mean composite as a 0-100 integer (0 when there are no commands)."""
    if not command_scores:
        return 0
    mean = sum(s.composite_score for s in command_scores) / len(command_scores)
    return int(round_half_up(mean * 100))


# =============================================================================
# Heading Scope
# =============================================================================


def heading_matches(heading: MarkdownHeading, patterns: Iterable[str]) -> bool:
    text = heading.text.lower()
    return any(pattern.lower() in text for pattern in patterns)


def find_section_end(headings: Sequence[MarkdownHeading], index: int) -> int | None:
    """Line of the first later heading with depth <= headings[index].depth.

    None means the section runs to the end of the document.
    """
    depth = headings[index].depth
    for heading in headings[index + 1 :]:
        if heading.depth <= depth:
            return heading.line
    return None


def is_line_in_matched_section(headings: Sequence[MarkdownHeading], line: int, patterns: Iterable[str]) -> bool:
    """Check whether line falls inside the section of any matching heading.

    A section spans the lines strictly between its heading and the next
    heading of equal or higher level, so nested subsections stay in scope.
    """
    pattern_list = list(patterns)
    for index, heading in enumerate(headings):
        if not heading_matches(heading, pattern_list) or line <= heading.line:
            continue
        end = find_section_end(headings, index)
        if end is None or line < end:
            return True
    return False


# =============================================================================
# Per-file Analysis
# =============================================================================


def _first_occurrence_line(command: str, structure: MarkdownStructure) -> int:
    lines = [b.line for b in structure.code_blocks if command in b.value]
    lines.extend(c.line for c in structure.inline_codes if command in c.value)
    lines.extend(h.line for h in structure.headings if command in h.text)
    lines.extend(n.line for n in structure.children if command in n.text)
    return min(lines, default=1)


def analyze_command_in_file(
    command: str,
    file: DiscoveredInstructionFile,
    structure: MarkdownStructure,
    heading_patterns: Sequence[str],
    proximity_window: int,
    report: LintReport,
) -> CommandFileAnalysis | None:
    """Score one command in one parsed file, adding warnings to report.

    Returns None when the command does not occur in the file at all.
    """
    in_code_block = any(command in block.value for block in structure.code_blocks)
    in_inline_code = not in_code_block and any(command in code.value for code in structure.inline_codes)
    in_plain_text = not (in_code_block or in_inline_code) and command in structure.full_text
    if not (in_code_block or in_inline_code or in_plain_text):
        return None

    line = _first_occurrence_line(command, structure)

    execution_clarity = 1 if in_code_block or in_inline_code else 0
    if not execution_clarity:
        report.warning(
            "instruction/command-not-in-code-block",
            f"Command '{command}' appears only in prose, not in a code block",
            line,
        )

    code_lines = [b.line for b in structure.code_blocks if command in b.value]
    code_lines.extend(c.line for c in structure.inline_codes if command in c.value)
    structural_context = (
        1 if any(is_line_in_matched_section(structure.headings, ln, heading_patterns) for ln in code_lines) else 0
    )
    if not structural_context:
        report.warning(
            "instruction/command-outside-section",
            f"Command '{command}' is not under a dedicated feedback loop section",
            line,
        )

    loop_completeness = 0
    if in_code_block:
        loop_completeness = (
            1
            if any(
                find_conditional_keywords_in_proximity(
                    structure, block.node_index, proximity_window, CONDITIONAL_KEYWORDS
                )
                for block in structure.code_blocks
                if command in block.value
            )
            else 0
        )
        if not loop_completeness:
            report.warning(
                "instruction/missing-error-handling",
                f"Command '{command}' has no error handling guidance following its code block",
                line,
            )
    elif in_inline_code:
        report.warning(
            "instruction/missing-error-handling",
            f"Command '{command}' appears in inline code but not in a fenced code block; "
            "cannot assess error handling",
            line,
        )
    else:
        report.warning(
            "instruction/missing-error-handling",
            f"Command '{command}' has no error handling guidance (not in a code block)",
            line,
        )

    return CommandFileAnalysis(
        structural_context=structural_context,
        execution_clarity=execution_clarity,
        loop_completeness=loop_completeness,
        source_file=file.file_path,
    )


def find_best_score(
    command: str,
    files: Sequence[DiscoveredInstructionFile],
    structures: dict[str, MarkdownStructure],
    heading_patterns: Sequence[str],
    proximity_window: int,
    reports: dict[str, LintReport],
) -> CommandQualityScores:
    """Score a command in every parsed file and keep the strictly best one."""
    best: CommandFileAnalysis | None = None
    for file in files:
        structure = structures.get(file.file_path)
        if structure is None:
            continue
        analysis = analyze_command_in_file(
            command, file, structure, heading_patterns, proximity_window, reports[file.file_path]
        )
        if analysis is not None and (best is None or analysis.composite > best.composite):
            best = analysis

    if best is None:
        return CommandQualityScores(command, 0, 0, 0, 0.0, "")
    return CommandQualityScores(
        command_name=command,
        structural_context=best.structural_context,
        execution_clarity=best.execution_clarity,
        loop_completeness=best.loop_completeness,
        composite_score=best.composite,
        best_source_file=best.source_file,
    )


def generate_suggestions(command_scores: Sequence[CommandQualityScores], file_count: int) -> list[str]:
    """One suggestion per deficient group, or a confirmation when nothing is deficient."""
    found = [s for s in command_scores if s.best_source_file]
    groups = (
        (
            [s for s in found if s.structural_context == 0],
            "Commands not under a dedicated section: {names}. "
            'Add a heading like "## Validation" or "## Feedback Loop" above these commands.',
        ),
        (
            [s for s in found if s.execution_clarity == 0],
            "Commands not in code blocks: {names}. Document these commands in fenced code blocks for clarity.",
        ),
        (
            [s for s in found if s.loop_completeness == 0 and s.execution_clarity == 1],
            "Commands missing error handling guidance: {names}. "
            "Add instructions for what to do if the command fails.",
        ),
        (
            [s for s in command_scores if not s.best_source_file],
            "Commands not found in any instruction file: {names}. "
            "Document these feedback loop commands in your instruction files.",
        ),
    )

    suggestions = [
        template.format(names=", ".join(s.command_name for s in group)) for group, template in groups if group
    ]
    if not suggestions and file_count > 0 and command_scores:
        suggestions.append(
            f"All {len(command_scores)} mandatory command(s) are documented in code blocks "
            "under feedback loop sections with error handling guidance."
        )
    return suggestions


# =============================================================================
# Use Case
# =============================================================================


def analyze_instruction_quality(
    target_dir: str | None,
    *,
    heading_patterns: Sequence[str] | None = None,
    proximity_window: int = DEFAULT_PROXIMITY_WINDOW,
    rules: LintRulesConfig = DEFAULT_LINT_RULES,
    discover: Callable[[str], list[DiscoveredInstructionFile]] = discover_instruction_files,
    parse: Callable[[str], MarkdownStructure] = parse_markdown_file,
    get_commands: Callable[[str], list[str]] = get_mandatory_commands,
) -> AnalyzeInstructionQualityOutput:
    """Analyze how well mandatory commands are documented in instruction files.

    Args:
        target_dir: Repository root
        heading_patterns: Section heading patterns (defaults to
            DEFAULT_STRUCTURAL_HEADING_PATTERNS)
        proximity_window: Sibling nodes searched after a code block
        rules: Effective rule severities for instruction/* diagnostics
        discover: Returns the instruction files to analyze
        parse: Returns the Markdown structure of a file; any exception it
            raises marks that file as a parsing error
        get_commands: Returns the mandatory command strings

    Raises:
        TargetRequiredError: target_dir is empty or missing.
    """
    target = require_target_dir(target_dir)
    patterns = list(heading_patterns) if heading_patterns else list(DEFAULT_STRUCTURAL_HEADING_PATTERNS)

    files = discover(target)
    if not files:
        return AnalyzeInstructionQualityOutput(
            result=InstructionQualityResult(suggestions=[NO_INSTRUCTION_FILES_MESSAGE]),
        )

    commands = get_commands(target)

    structures: dict[str, MarkdownStructure] = {}
    parsing_errors: list[ParsingError] = []
    reports: dict[str, LintReport] = {}
    for file in files:
        reports[file.file_path] = LintReport(file_path=file.file_path, target="instruction")
        try:
            structures[file.file_path] = parse(file.file_path)
        except Exception as e:
            parsing_errors.append(ParsingError(file_path=file.file_path, error=str(e) or type(e).__name__))

    parsing_errors.sort(key=lambda pe: pe.file_path)
    for pe in parsing_errors:
        reports[pe.file_path].warning("instruction/parse-error", f"Failed to parse file: {pe.error}", 1)

    command_scores = [
        find_best_score(command, files, structures, patterns, proximity_window, reports) for command in commands
    ]

    suggestions = generate_suggestions(command_scores, len(files))
    if parsing_errors:
        skipped = ", ".join(pe.file_path for pe in parsing_errors)
        suggestions.append(
            f"{len(parsing_errors)} file(s) could not be parsed and were skipped: {skipped}. "
            "Analysis may be incomplete."
        )

    diagnostics = apply_rule_config((d for r in reports.values() for d in r.diagnostics), rules)

    return AnalyzeInstructionQualityOutput(
        result=InstructionQualityResult(
            discovered_files=list(files),
            command_scores=command_scores,
            overall_quality_score=overall_quality_score(command_scores),
            suggestions=suggestions,
            parsing_errors=parsing_errors,
        ),
        diagnostics=sort_diagnostics(diagnostics),
    )


# =============================================================================
# CLI
# =============================================================================


def _dimension(value: int) -> str:
    return colorize("✔", "passed") if value else colorize("✖", "error")


def print_quality_report(output: AnalyzeInstructionQualityOutput, verbose: bool = False) -> None:
    """Print the quality report to stdout."""
    result = output.result

    print(f"\n{colorize('Instruction Quality Report', 'BOLD')}")
    print(f"Files analyzed: {len(result.discovered_files)}")
    if verbose:
        for f in result.discovered_files:
            print(f"  - {f.file_path} ({f.format})")

    if result.command_scores:
        width = max(len(s.command_name) for s in result.command_scores)
        print(f"\n  {'Command':<{width}}  Section  Code  Errors  Score  Source")
        for s in result.command_scores:
            print(
                f"  {s.command_name:<{width}}  {_dimension(s.structural_context):^7}  "
                f"{_dimension(s.execution_clarity):^4}  {_dimension(s.loop_completeness):^6}  "
                f"{s.composite_score:5.2f}  {s.best_source_file or '-'}"
            )

    score = result.overall_quality_score
    grade = calculate_letter_grade(score)
    level = "passed" if score >= 80 else "warning" if score >= 60 else "error"
    print(f"\nOverall quality score: {colorize(f'{score}/100 ({grade})', level)}")

    if result.suggestions:
        print("\nSuggestions:")
        for suggestion in result.suggestions:
            print(f"  - {suggestion}")

    if verbose and output.diagnostics:
        print(f"\nDiagnostics ({len(output.diagnostics)}):")
        for d in output.diagnostics:
            print(f"  {colorize(d.severity.upper(), d.severity)} {d.file_path}:{d.line} {d.rule_id}: {d.message}")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Score how well feedback loop commands are documented")
    parser.add_argument(
        "target",
        nargs="?",
        default=os.environ.get("AGENT_LINT_TARGET_DIR", "."),
        help="Repository root (default: $AGENT_LINT_TARGET_DIR or the current directory)",
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show files and diagnostics")
    parser.add_argument(
        "--heading-pattern",
        action="append",
        dest="heading_patterns",
        metavar="PATTERN",
        help="Section heading pattern (repeatable, replaces the defaults)",
    )
    parser.add_argument(
        "--proximity-window",
        type=_non_negative_int,
        default=DEFAULT_PROXIMITY_WINDOW,
        help=f"Sibling nodes searched for error handling after a code block (default: {DEFAULT_PROXIMITY_WINDOW})",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    args = parser.parse_args(argv)

    if args.no_color or args.json or not sys.stdout.isatty():
        set_color_enabled(False)

    try:
        target = require_target_dir(args.target)
        rules = load_lint_config(target)
        output = analyze_instruction_quality(
            target,
            heading_patterns=args.heading_patterns,
            proximity_window=args.proximity_window,
            rules=rules,
        )
    except AgentLintError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    if args.json:
        print(json.dumps(output.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_quality_report(output, args.verbose)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
