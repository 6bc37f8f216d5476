#!/usr/bin/env python3
"""
Agent Lint - Command Line Entry Point

Lints agent skills, custom agents and instruction files in a repository.

Usage:
    agent-lint [target] [--skills] [--agents] [--instructions]
               [--format human|json|rdjsonl] [--verbose] [--no-color]

Without target flags only skills are linted. Rule severities come from the
first lint config file found in the target directory (see lint_rules.py).

Exit codes:
    0 - no error diagnostics (warnings allowed)
    1 - at least one error diagnostic
    2 - fatal: missing target directory or unusable lint config
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence

from instruction_quality import analyze_instruction_quality
from lint_common import (
    EXIT_ERRORS,
    EXIT_FATAL,
    EXIT_OK,
    AgentLintError,
    LintOutput,
    build_lint_output,
    colorize,
    require_target_dir,
    set_color_enabled,
)
from lint_formatters import FORMAT_CHOICES, create_formatter
from lint_rules import LintRulesConfig, load_lint_config
from validate_agent import lint_agent_frontmatter
from validate_skill import lint_skill_frontmatter


def lint_skills(target: str, rules: LintRulesConfig) -> LintOutput:
    result = lint_skill_frontmatter(target, rules)
    return build_lint_output(
        "skill",
        (d for r in result.results for d in r.diagnostics),
        (r.file_path for r in result.results),
    )


def lint_agents(target: str, rules: LintRulesConfig) -> LintOutput:
    result = lint_agent_frontmatter(target, rules)
    return build_lint_output(
        "agent",
        (d for r in result.results for d in r.diagnostics),
        (r.file_path for r in result.results),
    )


def lint_instructions(target: str, rules: LintRulesConfig) -> LintOutput:
    output = analyze_instruction_quality(target, rules=rules)
    return build_lint_output(
        "instruction",
        output.diagnostics,
        (f.file_path for f in output.result.discovered_files),
    )


def run_lint(target_dir: str | None, skills: bool = True, agents: bool = False, instructions: bool = False) -> list[LintOutput]:
    """Lint the selected targets with the repository's rule configuration.

    Raises:
        TargetRequiredError: target_dir is empty or missing.
        LintConfigError: The lint config file is invalid.
    """
    target = require_target_dir(target_dir)
    rules = load_lint_config(target)

    outputs: list[LintOutput] = []
    if skills:
        outputs.append(lint_skills(target, rules))
    if agents:
        outputs.append(lint_agents(target, rules))
    if instructions:
        outputs.append(lint_instructions(target, rules))
    return outputs


def print_summary(outputs: list[LintOutput]) -> None:
    """Print per-target totals (verbose human output)."""
    print()
    for output in outputs:
        errors = colorize(f"{output.total_errors} error(s)", "error" if output.total_errors else "passed")
        warnings = colorize(f"{output.total_warnings} warning(s)", "warning" if output.total_warnings else "passed")
        print(f"{output.target}: {output.total_files} file(s) checked, {errors}, {warnings}")


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Lint agent skills, custom agents and instruction files")
    parser.add_argument(
        "target",
        nargs="?",
        default=os.environ.get("AGENT_LINT_TARGET_DIR", "."),
        help="Repository root (default: $AGENT_LINT_TARGET_DIR or the current directory)",
    )
    parser.add_argument("--skills", action="store_true", help="Lint .github/skills/*/SKILL.md")
    parser.add_argument("--agents", action="store_true", help="Lint .github/agents/*.md")
    parser.add_argument("--instructions", action="store_true", help="Lint agent instruction files")
    parser.add_argument("--format", choices=FORMAT_CHOICES, default="human", help="Output format (default: human)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print per-target totals")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    args = parser.parse_args(argv)

    if args.no_color or args.format != "human" or not sys.stdout.isatty():
        set_color_enabled(False)

    skills = args.skills or not (args.agents or args.instructions)

    try:
        outputs = run_lint(args.target, skills=skills, agents=args.agents, instructions=args.instructions)
    except AgentLintError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    text = create_formatter(args.format).format(outputs)
    if text:
        print(text)
    if args.verbose and args.format == "human":
        print_summary(outputs)

    if any(output.total_errors for output in outputs):
        return EXIT_ERRORS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
