#!/usr/bin/env python3
"""Tests for instruction_quality.py - heading scope, scoring and suggestions."""

from pathlib import Path

import pytest

from instruction_quality import (
    NO_INSTRUCTION_FILES_MESSAGE,
    CommandQualityScores,
    analyze_instruction_quality,
    composite_score,
    find_section_end,
    generate_suggestions,
    is_line_in_matched_section,
    overall_quality_score,
)
from lint_common import TargetRequiredError
from lint_discovery import DiscoveredInstructionFile
from lint_rules import resolve_rule_config
from markdown_structure import MarkdownHeading, parse_markdown

FULL_LOOP_DOC = """# Project

## Validation Suite

```bash
npm test
```

If any tests fail, fix them before committing.
"""

PROSE_ONLY_DOC = """# Project

## Validation

Run npm test before committing.
"""

INLINE_DOC = """# Project

## Validation

Run `npm test` before pushing.
"""


def analyze(docs: dict[str, str], commands: list[str], **kwargs):
    """Run the analysis over in-memory documents (discovery order = dict order)."""

    def parse(path: str):
        content = docs[path]
        if isinstance(content, Exception):
            raise content
        return parse_markdown(content)

    return analyze_instruction_quality(
        "/repo",
        discover=lambda target: [DiscoveredInstructionFile(path, "agents-md") for path in docs],
        parse=parse,
        get_commands=lambda target: list(commands),
        **kwargs,
    )


def scores(command: str, s: int, e: int, l: int, source: str = "AGENTS.md") -> CommandQualityScores:
    return CommandQualityScores(command, s, e, l, composite_score(s, e, l), source)


class TestHeadingScope:
    """A line is in scope strictly between a matched heading and its closing boundary."""

    HEADINGS = [
        MarkdownHeading("Guide", 1, 1),
        MarkdownHeading("Validation", 2, 5),
        MarkdownHeading("Unit tests", 3, 10),
        MarkdownHeading("Other", 2, 20),
        MarkdownHeading("Feedback Loop Commands", 2, 30),
    ]
    PATTERNS = ["validation", "Feedback Loop"]

    def test_section_end_is_next_heading_of_same_or_higher_level(self) -> None:
        assert find_section_end(self.HEADINGS, 1) == 20
        assert find_section_end(self.HEADINGS, 2) == 20
        assert find_section_end(self.HEADINGS, 4) is None

    def test_nested_subsection_stays_in_scope(self) -> None:
        assert is_line_in_matched_section(self.HEADINGS, 12, self.PATTERNS)

    def test_boundaries_are_exclusive(self) -> None:
        assert not is_line_in_matched_section(self.HEADINGS, 5, self.PATTERNS)
        assert not is_line_in_matched_section(self.HEADINGS, 20, self.PATTERNS)

    def test_unmatched_section(self) -> None:
        assert not is_line_in_matched_section(self.HEADINGS, 25, self.PATTERNS)
        assert not is_line_in_matched_section(self.HEADINGS, 3, self.PATTERNS)

    def test_last_section_runs_to_end_of_document(self) -> None:
        assert is_line_in_matched_section(self.HEADINGS, 1000, self.PATTERNS)

    def test_no_patterns_match_nothing(self) -> None:
        assert not is_line_in_matched_section(self.HEADINGS, 12, [])


class TestScores:
    @pytest.mark.parametrize(
        ("dims", "expected"),
        [((0, 0, 0), 0.0), ((1, 0, 0), 0.33), ((1, 1, 0), 0.67), ((1, 1, 1), 1.0)],
    )
    def test_composite_is_mean_rounded_to_two_decimals(self, dims: tuple[int, int, int], expected: float) -> None:
        assert composite_score(*dims) == expected

    def test_overall_is_rounded_mean_times_100(self) -> None:
        command_scores = [scores("a", 1, 1, 1), scores("b", 1, 1, 0), scores("c", 1, 0, 0)]
        assert overall_quality_score(command_scores) == 67

    def test_overall_with_no_commands_is_zero(self) -> None:
        assert overall_quality_score([]) == 0


class TestSuggestions:
    def test_groups_by_deficient_dimension(self) -> None:
        suggestions = generate_suggestions(
            [
                scores("lint", 0, 1, 1),
                scores("build", 0, 0, 0),
                scores("test", 1, 1, 0),
                CommandQualityScores("format", 0, 0, 0, 0.0, ""),
            ],
            file_count=1,
        )
        assert len(suggestions) == 4
        assert suggestions[0].startswith("Commands not under a dedicated section: lint, build.")
        assert suggestions[1].startswith("Commands not in code blocks: build.")
        assert suggestions[2].startswith("Commands missing error handling guidance: test.")
        assert suggestions[3].startswith("Commands not found in any instruction file: format.")

    def test_fully_scored_gives_single_confirmation(self) -> None:
        suggestions = generate_suggestions([scores("test", 1, 1, 1)], file_count=1)
        assert len(suggestions) == 1
        assert "documented" in suggestions[0]

    def test_no_commands_gives_no_suggestions(self) -> None:
        assert generate_suggestions([], file_count=2) == []


class TestAnalyzeInstructionQuality:
    def test_empty_target_is_rejected(self) -> None:
        with pytest.raises(TargetRequiredError):
            analyze_instruction_quality("  ")

    def test_no_instruction_files(self) -> None:
        output = analyze({}, ["test"])
        assert output.result.overall_quality_score == 0
        assert output.result.suggestions == [NO_INSTRUCTION_FILES_MESSAGE]
        assert "No agent instruction files found" in output.result.suggestions[0]
        assert output.diagnostics == []

    def test_command_with_full_feedback_loop(self) -> None:
        """Code block under "## Validation Suite" followed by failure guidance scores 1 on every dimension."""
        output = analyze({"AGENTS.md": FULL_LOOP_DOC}, ["npm test"])
        score = output.result.command_scores[0]
        assert (score.structural_context, score.execution_clarity, score.loop_completeness) == (1, 1, 1)
        assert score.composite_score == 1.0
        assert score.best_source_file == "AGENTS.md"
        assert output.result.overall_quality_score == 100
        assert output.diagnostics == []
        assert len(output.result.suggestions) == 1

    def test_command_only_in_prose(self) -> None:
        output = analyze({"AGENTS.md": PROSE_ONLY_DOC}, ["npm test"])
        score = output.result.command_scores[0]
        assert score.execution_clarity == 0
        assert score.loop_completeness == 0
        assert score.structural_context == 0
        assert [d.rule_id for d in output.diagnostics] == [
            "instruction/command-not-in-code-block",
            "instruction/command-outside-section",
            "instruction/missing-error-handling",
        ]
        assert all(d.severity == "warning" and d.line == 5 for d in output.diagnostics)

    def test_inline_code_cannot_complete_the_loop(self) -> None:
        output = analyze({"AGENTS.md": INLINE_DOC}, ["npm test"])
        score = output.result.command_scores[0]
        assert (score.structural_context, score.execution_clarity, score.loop_completeness) == (1, 1, 0)
        assert score.composite_score == 0.67
        assert [d.rule_id for d in output.diagnostics] == ["instruction/missing-error-handling"]
        assert "inline code" in output.diagnostics[0].message

    def test_code_block_outside_section(self) -> None:
        doc = "# Notes\n\n```bash\nnpm test\n```\n\nIf it fails, retry.\n"
        score = analyze({"AGENTS.md": doc}, ["npm test"]).result.command_scores[0]
        assert (score.structural_context, score.execution_clarity, score.loop_completeness) == (0, 1, 1)

    def test_best_file_wins(self) -> None:
        output = analyze({"CLAUDE.md": PROSE_ONLY_DOC, "AGENTS.md": FULL_LOOP_DOC}, ["npm test"])
        assert output.result.command_scores[0].best_source_file == "AGENTS.md"
        assert output.result.command_scores[0].composite_score == 1.0

    def test_ties_keep_discovery_order(self) -> None:
        output = analyze({"b.md": FULL_LOOP_DOC, "a.md": FULL_LOOP_DOC}, ["npm test"])
        assert output.result.command_scores[0].best_source_file == "b.md"

    def test_command_not_found(self) -> None:
        output = analyze({"AGENTS.md": FULL_LOOP_DOC}, ["npm test", "npm run build"])
        missing = output.result.command_scores[1]
        assert missing == CommandQualityScores("npm run build", 0, 0, 0, 0.0, "")
        assert output.result.overall_quality_score == 50
        assert output.result.suggestions == [
            "Commands not found in any instruction file: npm run build. "
            "Document these feedback loop commands in your instruction files."
        ]

    def test_no_mandatory_commands(self) -> None:
        output = analyze({"AGENTS.md": FULL_LOOP_DOC}, [])
        assert output.result.overall_quality_score == 0
        assert output.result.command_scores == []
        assert output.result.suggestions == []

    def test_parse_failure_does_not_abort(self) -> None:
        output = analyze(
            {"z.md": ValueError("boom"), "AGENTS.md": FULL_LOOP_DOC, "b.md": OSError("unreadable")},
            ["npm test"],
        )
        assert [pe.file_path for pe in output.result.parsing_errors] == ["b.md", "z.md"]
        assert output.result.parsing_errors[1].error == "boom"
        assert output.result.command_scores[0].composite_score == 1.0
        parse_errors = [d for d in output.diagnostics if d.rule_id == "instruction/parse-error"]
        assert [d.file_path for d in parse_errors] == ["b.md", "z.md"]
        assert all(d.severity == "warning" for d in parse_errors)
        assert output.result.suggestions[-1].startswith("2 file(s) could not be parsed and were skipped: b.md, z.md.")

    def test_diagnostics_sorted_by_file_path(self) -> None:
        output = analyze({"z.md": PROSE_ONLY_DOC, "a.md": PROSE_ONLY_DOC}, ["npm test"])
        paths = [d.file_path for d in output.diagnostics]
        assert paths == sorted(paths)
        assert len(paths) == 6

    def test_rule_off_removes_diagnostics(self) -> None:
        rules = resolve_rule_config({"instructions": {"instruction/command-outside-section": "off"}})
        output = analyze({"AGENTS.md": PROSE_ONLY_DOC}, ["npm test"], rules=rules)
        assert "instruction/command-outside-section" not in [d.rule_id for d in output.diagnostics]
        assert output.total_warnings == 2

    def test_rule_error_escalates(self) -> None:
        rules = resolve_rule_config({"instructions": {"instruction/missing-error-handling": "error"}})
        output = analyze({"AGENTS.md": INLINE_DOC}, ["npm test"], rules=rules)
        assert output.total_errors == 1

    def test_custom_heading_patterns(self) -> None:
        doc = "## How to check\n\n```bash\nnpm test\n```\n\nIf it fails, fix it.\n"
        default = analyze({"AGENTS.md": doc}, ["npm test"]).result.command_scores[0]
        custom = analyze({"AGENTS.md": doc}, ["npm test"], heading_patterns=["check"]).result.command_scores[0]
        assert default.structural_context == 0
        assert custom.structural_context == 1

    def test_proximity_window_limits_search(self) -> None:
        doc = "## Validation\n\n```bash\nnpm test\n```\n\nOne.\n\nTwo.\n\nIf it fails, fix it.\n"
        assert analyze({"AGENTS.md": doc}, ["npm test"]).result.command_scores[0].loop_completeness == 1
        narrow = analyze({"AGENTS.md": doc}, ["npm test"], proximity_window=2)
        assert narrow.result.command_scores[0].loop_completeness == 0

    def test_idempotent(self) -> None:
        docs = {"CLAUDE.md": PROSE_ONLY_DOC, "AGENTS.md": INLINE_DOC}
        first = analyze(docs, ["npm test", "npm run lint"]).to_dict()
        second = analyze(docs, ["npm test", "npm run lint"]).to_dict()
        assert first == second


class TestRealFiles:
    """End to end with discovery, parsing and command gateways on disk."""

    def test_repository_analysis(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text('{"scripts": {"test": "vitest run", "dev": "vite"}}')
        (tmp_path / "AGENTS.md").write_text(
            "# Agents\n\n## Mandatory Commands\n\n```bash\nnpm run test\n```\n\nIf it fails, fix it.\n"
        )
        output = analyze_instruction_quality(str(tmp_path))
        assert [f.format for f in output.result.discovered_files] == ["agents-md"]
        score = output.result.command_scores[0]
        assert score.command_name == "test"
        assert score.composite_score == 1.0
        assert output.result.overall_quality_score == 100

    def test_unreadable_file_is_parsing_error(self, tmp_path: Path) -> None:
        (tmp_path / "CLAUDE.md").write_bytes(b"# Bad \xff\n")
        output = analyze_instruction_quality(str(tmp_path), get_commands=lambda target: ["npm test"])
        assert [pe.file_path for pe in output.result.parsing_errors] == [str(tmp_path / "CLAUDE.md")]
