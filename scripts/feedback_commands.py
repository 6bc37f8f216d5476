#!/usr/bin/env python3
"""
Agent Lint - Feedback Loop Command Discovery

Derives the commands a repository treats as mandatory feedback loops
(test, build, lint, format) from:

1. package.json "scripts"                    -> script names ("test", "lint")
2. .github/workflows/*.yml / *.yaml run steps -> command lines ("npm run lint")

Files that cannot be read or parsed are reported on stderr and skipped.
"""

from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

# SDLC phases a script or tool supports
FeedbackLoopPhase = Literal[
    "build",
    "test",
    "lint",
    "format",
    "security",
    "deploy",
    "install",
    "dev",
    "unknown",
]

# Common script names -> phase
SCRIPT_PHASE_MAPPING: dict[str, FeedbackLoopPhase] = {
    "test": "test",
    "test:unit": "test",
    "test:integration": "test",
    "test:e2e": "test",
    "test:watch": "test",
    "build": "build",
    "compile": "build",
    "bundle": "build",
    "lint": "lint",
    "lint:fix": "lint",
    "lint:check": "lint",
    "lint:workflows": "lint",
    "lint:yaml": "lint",
    "format": "format",
    "format:check": "format",
    "format:fix": "format",
    "prettier": "format",
    "prettier:check": "format",
    "prettier:fix": "format",
    "audit": "security",
    "audit:fix": "security",
    "security": "security",
    "deploy": "deploy",
    "publish": "deploy",
    "release": "deploy",
    "install": "install",
    "ci": "install",
    "dev": "dev",
    "start": "dev",
    "serve": "dev",
}

MANDATORY_PHASES: frozenset[str] = frozenset({"test", "build", "lint", "format"})

# Substrings of a command line that reveal its phase, checked in order
COMMAND_PHASE_HINTS: tuple[tuple[FeedbackLoopPhase, tuple[str, ...]], ...] = (
    ("test", ("test", "vitest", "jest", "mocha", "ava")),
    ("build", ("build", "compile", "webpack", "rspack", "rollup", "vite build")),
    ("lint", ("lint", "eslint", "biome", "tslint", "actionlint", "yamllint")),
    ("format", ("prettier", "format")),
    ("security", ("audit", "snyk", "npm-audit")),
)

# First words of run-step lines that are shell plumbing, not tools
SHELL_BUILTINS: frozenset[str] = frozenset(
    {
        "cd",
        "echo",
        "mkdir",
        "rm",
        "cp",
        "mv",
        "test",
        "[",
        "if",
        "then",
        "else",
        "fi",
        "for",
        "while",
        "do",
        "done",
        "case",
        "esac",
    }
)

# Task runners whose "<runner> run <task>" form names the tool by its first three words
TASK_RUNNERS: frozenset[str] = frozenset({"npm", "mise"})

WORKFLOW_SUFFIXES = (".yml", ".yaml")

_RUN_LINE_SPLIT_RE = re.compile(r"\n|\|")


@dataclass(frozen=True)
class DiscoveredScript:
    """A package.json script and the phase it supports."""

    name: str
    command: str
    phase: FeedbackLoopPhase
    is_mandatory: bool


@dataclass(frozen=True)
class DiscoveredTool:
    """A command found in a workflow run step."""

    name: str
    full_command: str
    phase: FeedbackLoopPhase
    is_mandatory: bool
    source_workflow: str | None = None


def determine_script_phase(script_name: str, command: str) -> FeedbackLoopPhase:
    """Determine the SDLC phase of a script from its name, then its command.

    Name rules, in order:
    - exact match in SCRIPT_PHASE_MAPPING
    - prefix match followed by ':' ("test:unit:watch" -> test), but not
      "test-utils" or "build-tools"
    Otherwise the lowercased command text is searched for COMMAND_PHASE_HINTS.
    """
    exact = SCRIPT_PHASE_MAPPING.get(script_name)
    if exact:
        return exact

    for pattern, phase in SCRIPT_PHASE_MAPPING.items():
        if pattern == script_name or not script_name.startswith(pattern):
            continue
        if pattern.endswith(":") or script_name[len(pattern) : len(pattern) + 1] == ":":
            return phase

    lower_command = command.lower()
    for phase, hints in COMMAND_PHASE_HINTS:
        if any(hint in lower_command for hint in hints):
            return phase

    return "unknown"


def is_phase_mandatory(phase: FeedbackLoopPhase) -> bool:
    """Only test, build, lint and format loops are mandatory for agents."""
    return phase in MANDATORY_PHASES


# =============================================================================
# package.json Scripts
# =============================================================================


def discover_scripts(target_dir: str | Path) -> list[DiscoveredScript]:
    """Discover scripts from package.json in target_dir."""
    package_json = Path(target_dir) / "package.json"
    if not package_json.is_file():
        return []

    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        print(f"Warning: Cannot parse {package_json}: {e}", file=sys.stderr)
        return []

    scripts = data.get("scripts") if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return []

    discovered: list[DiscoveredScript] = []
    for name, command in scripts.items():
        if not isinstance(command, str):
            continue
        phase = determine_script_phase(name, command)
        discovered.append(DiscoveredScript(name=name, command=command, phase=phase, is_mandatory=is_phase_mandatory(phase)))
    return discovered


# =============================================================================
# Workflow Run Steps
# =============================================================================


def extract_tools_from_run_command(run_command: str, source_workflow: str | None = None) -> list[DiscoveredTool]:
    """Split a run step into command lines and classify each one.

    Lines are split on newlines and pipes; blank lines, comments and shell
    built-ins are skipped. "npm run x" / "mise run x" are named by their
    first three words.
    """
    tools: list[DiscoveredTool] = []
    for command in (c.strip() for c in _RUN_LINE_SPLIT_RE.split(run_command)):
        if not command or command.startswith("#"):
            continue

        parts = command.split()
        base = parts[0]
        if base in SHELL_BUILTINS:
            continue

        name = base
        if len(parts) >= 2 and base in TASK_RUNNERS and parts[1] == "run":
            name = " ".join(parts[:3])

        phase = determine_script_phase(name, command)
        tools.append(
            DiscoveredTool(
                name=name,
                full_command=command,
                phase=phase,
                is_mandatory=is_phase_mandatory(phase),
                source_workflow=source_workflow,
            )
        )
    return tools


def _workflow_run_steps(workflow: Any) -> list[str]:
    """Collect the string 'run' values of every job step."""
    if not isinstance(workflow, dict):
        return []
    jobs = workflow.get("jobs")
    if not isinstance(jobs, dict):
        return []

    runs: list[str] = []
    for job in jobs.values():
        if not isinstance(job, dict) or not isinstance(job.get("steps"), list):
            continue
        for step in job["steps"]:
            if isinstance(step, dict) and isinstance(step.get("run"), str):
                runs.append(step["run"])
    return runs


def discover_tools(target_dir: str | Path) -> list[DiscoveredTool]:
    """Discover commands from GitHub Actions workflows, de-duplicated by full command."""
    workflows_dir = Path(target_dir) / ".github" / "workflows"
    if not workflows_dir.is_dir():
        return []

    seen: dict[str, DiscoveredTool] = {}
    for workflow_file in sorted(workflows_dir.iterdir(), key=lambda p: p.name):
        if not workflow_file.is_file() or not workflow_file.name.endswith(WORKFLOW_SUFFIXES):
            continue
        try:
            workflow = yaml.safe_load(workflow_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            print(f"Warning: Skipping unparseable workflow {workflow_file.name}: {e}", file=sys.stderr)
            continue

        for run in _workflow_run_steps(workflow):
            for tool in extract_tools_from_run_command(run, workflow_file.name):
                seen.setdefault(tool.full_command, tool)

    return list(seen.values())


def get_mandatory_commands(target_dir: str | Path) -> list[str]:
    """Mandatory script names followed by mandatory workflow commands, in order, without duplicates."""
    commands: list[str] = [s.name for s in discover_scripts(target_dir) if s.is_mandatory]
    commands.extend(t.full_command for t in discover_tools(target_dir) if t.is_mandatory)
    return list(dict.fromkeys(commands))
