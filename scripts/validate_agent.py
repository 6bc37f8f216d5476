#!/usr/bin/env python3
"""
Agent Lint - Agent Frontmatter Linter

Validates the YAML frontmatter of custom agent files (.github/agents/<name>.md).

Required fields:
    name            kebab-case, <= 64 chars, equals the filename stem
    description     non-blank, <= 1024 chars

Optional fields (type problems reported as agent/invalid-field):
    tools           string or list of strings
    model           string
    target          "vscode" or "github-copilot"
    mcp-servers     mapping
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from lint_common import (
    LintReport,
    LintTarget,
    ParsedFrontmatter,
    count_severity,
    load_frontmatter,
    require_target_dir,
    validate_description_field,
    validate_name_field,
)
from lint_discovery import DiscoveredAgentFile, discover_agents, read_text_file
from lint_rules import DEFAULT_LINT_RULES, LintRulesConfig, apply_rule_config

# Valid values for the 'target' field
VALID_AGENT_TARGETS = {"vscode", "github-copilot"}


@dataclass
class AgentLintReport(LintReport):
    """Lint report for one agent file, extends LintReport with agent_name."""

    target: LintTarget = "agent"
    agent_name: str = ""

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        base = super().to_dict()
        base["agent_name"] = self.agent_name
        return base


@dataclass
class LintAgentFrontmatterOutput:
    """Result of linting every custom agent in a repository."""

    results: list[AgentLintReport] = field(default_factory=list)
    total_agents: int = 0
    total_errors: int = 0
    total_warnings: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "results": [r.to_dict() for r in self.results],
            "total_agents": self.total_agents,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
        }


def validate_tools_field(parsed: ParsedFrontmatter, report: AgentLintReport) -> None:
    """Validate the 'tools' frontmatter field."""
    if "tools" not in parsed.data:
        return

    tools = parsed.data["tools"]
    if isinstance(tools, str):
        return
    if isinstance(tools, list) and all(isinstance(t, str) for t in tools):
        return

    report.warning(
        "agent/invalid-field",
        f"'tools' must be a string or a list of strings, got {type(tools).__name__}",
        parsed.line_of("tools"),
        "tools",
    )


def validate_model_field(parsed: ParsedFrontmatter, report: AgentLintReport) -> None:
    """Validate the 'model' frontmatter field."""
    if "model" not in parsed.data:
        return

    model = parsed.data["model"]
    if not isinstance(model, str):
        report.warning(
            "agent/invalid-field",
            f"'model' must be a string, got {type(model).__name__}",
            parsed.line_of("model"),
            "model",
        )


def validate_target_field(parsed: ParsedFrontmatter, report: AgentLintReport) -> None:
    """Validate the 'target' frontmatter field."""
    if "target" not in parsed.data:
        return

    value = parsed.data["target"]
    if value not in VALID_AGENT_TARGETS:
        report.warning(
            "agent/invalid-field",
            f"Invalid 'target' value: {value!r}. Valid values: {', '.join(sorted(VALID_AGENT_TARGETS))}",
            parsed.line_of("target"),
            "target",
        )


def validate_mcp_servers_field(parsed: ParsedFrontmatter, report: AgentLintReport) -> None:
    """Validate the 'mcp-servers' frontmatter field."""
    if "mcp-servers" not in parsed.data:
        return

    servers = parsed.data["mcp-servers"]
    if not isinstance(servers, dict):
        report.warning(
            "agent/invalid-field",
            f"'mcp-servers' must be a mapping, got {type(servers).__name__}",
            parsed.line_of("mcp-servers"),
            "mcp-servers",
        )


def lint_agent(agent: DiscoveredAgentFile, content: str) -> AgentLintReport:
    """Lint the frontmatter of one agent file.

    Diagnostics carry the catalog default severities; callers apply the
    effective rule configuration afterwards.
    """
    report = AgentLintReport(file_path=agent.file_path, agent_name=agent.agent_name)

    parsed = load_frontmatter(content, report, "Agent")
    if parsed is None:
        return report

    validate_name_field(parsed, agent.agent_name, "filename", report)
    validate_description_field(parsed, report)
    validate_tools_field(parsed, report)
    validate_model_field(parsed, report)
    validate_target_field(parsed, report)
    validate_mcp_servers_field(parsed, report)
    return report


def lint_agent_frontmatter(
    target_dir: str | None,
    rules: LintRulesConfig = DEFAULT_LINT_RULES,
    *,
    discover: Callable[[str], list[DiscoveredAgentFile]] = discover_agents,
    read_file: Callable[[str], str] = read_text_file,
) -> LintAgentFrontmatterOutput:
    """Lint every custom agent in a repository.

    Raises:
        TargetRequiredError: target_dir is empty or missing.
    """
    target = require_target_dir(target_dir)
    agents = discover(target)

    results: list[AgentLintReport] = []
    for agent in agents:
        try:
            content = read_file(agent.file_path)
        except (OSError, UnicodeDecodeError) as exc:
            report = AgentLintReport(file_path=agent.file_path, agent_name=agent.agent_name)
            report.error("agent/invalid-frontmatter", f"Could not read agent file: {exc}", 1)
        else:
            report = lint_agent(agent, content)
        report.diagnostics = apply_rule_config(report.diagnostics, rules)
        results.append(report)

    return LintAgentFrontmatterOutput(
        results=results,
        total_agents=len(agents),
        total_errors=count_severity(results, "error"),
        total_warnings=count_severity(results, "warning"),
    )
