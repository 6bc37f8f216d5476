#!/usr/bin/env python3
"""
Agent Lint - Rule Catalog and Severity Resolution

Defines every known lint rule ID with its default severity, organized by
target, and resolves user overrides into an effective rule configuration.

Overrides are read from the first config file found in the target directory:
    .agent-lint.yaml / .agent-lint.yml / .agent-lint.json / agent-lint.toml
    pyproject.toml  ([tool.agent-lint] table)

Config shape (YAML):
    lint:
      rules:
        agents:
          agent/invalid-field: "off"
        skills:
          skill/missing-allowed-tools: error

Unknown rule IDs are discarded. A severity other than error/warn/off rejects
the whole configuration with LintConfigError.
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

import yaml

from lint_common import LintConfigError, LintDiagnostic, LintTarget, Severity

# Configured rule severities
RuleSeverity = Literal["error", "warn", "off"]

VALID_RULE_SEVERITIES: tuple[str, ...] = ("error", "warn", "off")

# Config section name -> diagnostic target kind
RULE_SECTIONS: dict[str, LintTarget] = {
    "agents": "agent",
    "instructions": "instruction",
    "skills": "skill",
}

# Rules that stay advisory even when configured as "error"
ADVISORY_RULES = frozenset({"skill/missing-allowed-tools"})

CONFIG_FILE_NAMES = (
    ".agent-lint.yaml",
    ".agent-lint.yml",
    ".agent-lint.json",
    "agent-lint.toml",
)
PYPROJECT_TOOL_KEY = "agent-lint"


@dataclass(frozen=True)
class LintRulesConfig:
    """Effective severity of every known rule, per target."""

    agents: Mapping[str, RuleSeverity]
    instructions: Mapping[str, RuleSeverity]
    skills: Mapping[str, RuleSeverity]

    def section(self, name: str) -> Mapping[str, RuleSeverity]:
        """Rules of one config section (agents, instructions or skills)."""
        if name not in RULE_SECTIONS:
            raise KeyError(name)
        return getattr(self, name)

    def severity_of(self, rule_id: str) -> RuleSeverity | None:
        """Configured severity of a rule, or None for an unknown rule ID."""
        for name in RULE_SECTIONS:
            rules = self.section(name)
            if rule_id in rules:
                return rules[rule_id]
        return None

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Convert to dictionary for JSON serialization."""
        return {name: dict(self.section(name)) for name in RULE_SECTIONS}


def _frozen(rules: dict[str, RuleSeverity]) -> Mapping[str, RuleSeverity]:
    return MappingProxyType(dict(rules))


# Default severity levels for all known lint rules
DEFAULT_LINT_RULES = LintRulesConfig(
    agents=_frozen(
        {
            "agent/missing-frontmatter": "error",
            "agent/invalid-frontmatter": "error",
            "agent/missing-name": "error",
            "agent/invalid-name-format": "error",
            "agent/name-mismatch": "error",
            "agent/missing-description": "error",
            "agent/invalid-description": "error",
            "agent/invalid-field": "warn",
        }
    ),
    instructions=_frozen(
        {
            "instruction/parse-error": "warn",
            "instruction/command-not-in-code-block": "warn",
            "instruction/command-outside-section": "warn",
            "instruction/missing-error-handling": "warn",
        }
    ),
    skills=_frozen(
        {
            "skill/invalid-frontmatter": "error",
            "skill/missing-frontmatter": "error",
            "skill/missing-name": "error",
            "skill/invalid-name-format": "error",
            "skill/name-mismatch": "error",
            "skill/missing-description": "error",
            "skill/invalid-description": "error",
            "skill/invalid-field": "error",
            "skill/missing-allowed-tools": "warn",
        }
    ),
)


def resolve_rule_config(overrides: Mapping[str, Any] | None) -> LintRulesConfig:
    """Merge per-target rule overrides into the default catalog.

    Args:
        overrides: Mapping of section name (agents/instructions/skills) to a
            mapping of rule ID -> severity. Unknown sections and rule IDs are
            ignored.

    Returns:
        LintRulesConfig covering every catalog rule.

    Raises:
        LintConfigError: An override value is not error, warn or off, or a
            section is not a mapping. Nothing is applied in that case.
    """
    if not overrides:
        return DEFAULT_LINT_RULES
    if not isinstance(overrides, Mapping):
        raise LintConfigError(f"Lint rules must be a mapping, got {type(overrides).__name__}")

    # Validate everything before applying anything
    for name, section_overrides in overrides.items():
        if name not in RULE_SECTIONS or section_overrides is None:
            continue
        if not isinstance(section_overrides, Mapping):
            raise LintConfigError(f"lint.rules.{name} must be a mapping, got {type(section_overrides).__name__}")
        for rule_id, severity in section_overrides.items():
            if not isinstance(severity, str) or severity not in VALID_RULE_SEVERITIES:
                raise LintConfigError(
                    f"Invalid severity {severity!r} for rule '{rule_id}' (expected one of: error, warn, off)"
                )

    merged: dict[str, Mapping[str, RuleSeverity]] = {}
    for name in RULE_SECTIONS:
        defaults = DEFAULT_LINT_RULES.section(name)
        section_overrides = overrides.get(name) or {}
        rules = dict(defaults)
        for rule_id, severity in section_overrides.items():
            if rule_id in defaults:
                rules[rule_id] = severity
        merged[name] = _frozen(rules)

    return LintRulesConfig(**merged)


def apply_rule_config(
    diagnostics: Iterable[LintDiagnostic],
    rules: LintRulesConfig = DEFAULT_LINT_RULES,
) -> list[LintDiagnostic]:
    """Apply configured severities to already generated diagnostics.

    "off" drops the diagnostic, "warn" reports it as a warning and "error" as
    an error. Rules in ADVISORY_RULES are never reported above warning.
    """
    resolved: list[LintDiagnostic] = []
    for d in diagnostics:
        configured = rules.severity_of(d.rule_id)
        if configured is None:
            resolved.append(d)
            continue
        if configured == "off":
            continue
        severity: Severity = "error" if configured == "error" and d.rule_id not in ADVISORY_RULES else "warning"
        resolved.append(d.with_severity(severity))
    return resolved


# =============================================================================
# Config File Loading
# =============================================================================


def find_config_file(target_dir: Path) -> Path | None:
    """Return the first lint config file present in target_dir."""
    for name in CONFIG_FILE_NAMES:
        candidate = target_dir / name
        if candidate.is_file():
            return candidate
    return None


def _read_config_file(path: Path) -> Any:
    """Parse a config file according to its extension."""
    try:
        if path.suffix in {".yaml", ".yml"}:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        if path.suffix == ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise LintConfigError(f"Failed to load {path.name}: {exc}") from exc


def _read_pyproject_section(target_dir: Path) -> Any:
    """Return the [tool.agent-lint] table of pyproject.toml, if any."""
    pyproject = target_dir / "pyproject.toml"
    if not pyproject.is_file():
        return None
    tool = _read_config_file(pyproject).get("tool", {})
    if not isinstance(tool, dict):
        raise LintConfigError(f"pyproject.toml: \"tool\" must be a table, got {type(tool).__name__}")
    return tool.get(PYPROJECT_TOOL_KEY)


def _extract_rule_overrides(raw: Any, source: str, yaml_source: bool) -> dict[str, Any] | None:
    """Pull lint.rules out of a loaded config document."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise LintConfigError(f"{source}: config must be a mapping, got {type(raw).__name__}")

    lint_section = raw.get("lint", raw)
    if lint_section is None:
        return None
    if not isinstance(lint_section, dict):
        raise LintConfigError(f"{source}: 'lint' must be a mapping, got {type(lint_section).__name__}")

    rules = lint_section.get("rules")
    if rules is None:
        return None
    if not isinstance(rules, dict):
        raise LintConfigError(f"{source}: 'lint.rules' must be a mapping, got {type(rules).__name__}")

    if not yaml_source:
        return rules

    # YAML 1.1 reads a bare `off` as boolean false
    return {
        name: (
            {rule_id: ("off" if severity is False else severity) for rule_id, severity in section.items()}
            if isinstance(section, dict)
            else section
        )
        for name, section in rules.items()
    }


def load_lint_config(target_dir: str | Path) -> LintRulesConfig:
    """Load rule overrides from target_dir and merge them with the defaults.

    Raises:
        LintConfigError: The config file cannot be read or parsed, has the
            wrong shape, or contains an invalid severity.
    """
    root = Path(target_dir)
    config_file = find_config_file(root)

    if config_file is not None:
        raw = _read_config_file(config_file)
        overrides = _extract_rule_overrides(raw, config_file.name, config_file.suffix in {".yaml", ".yml"})
    else:
        raw = _read_pyproject_section(root)
        overrides = _extract_rule_overrides(raw, "pyproject.toml [tool.agent-lint]", False)

    return resolve_rule_config(overrides)
