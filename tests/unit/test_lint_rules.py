#!/usr/bin/env python3
"""Tests for lint_rules.py - rule catalog, override resolution and config loading."""

import json
from pathlib import Path

import pytest

from lint_common import LintConfigError, LintDiagnostic
from lint_rules import (
    DEFAULT_LINT_RULES,
    RULE_SECTIONS,
    apply_rule_config,
    load_lint_config,
    resolve_rule_config,
)


def make_diagnostic(rule_id: str, severity: str = "error", file_path: str = "a.md") -> LintDiagnostic:
    target = rule_id.split("/")[0]
    return LintDiagnostic(
        file_path=file_path,
        line=1,
        severity=severity,  # type: ignore[arg-type]
        message=f"{rule_id} happened",
        rule_id=rule_id,
        target=target,  # type: ignore[arg-type]
    )


class TestRuleCatalog:
    """The default catalog is the single source of known rule IDs."""

    def test_every_rule_is_namespaced_by_its_section(self) -> None:
        for section, kind in RULE_SECTIONS.items():
            for rule_id in DEFAULT_LINT_RULES.section(section):
                assert rule_id.startswith(f"{kind}/")

    def test_frontmatter_structure_rules_default_to_error(self) -> None:
        assert DEFAULT_LINT_RULES.severity_of("skill/missing-name") == "error"
        assert DEFAULT_LINT_RULES.severity_of("agent/name-mismatch") == "error"

    def test_advisory_rules_default_to_warn(self) -> None:
        assert DEFAULT_LINT_RULES.severity_of("skill/missing-allowed-tools") == "warn"
        assert DEFAULT_LINT_RULES.severity_of("agent/invalid-field") == "warn"
        assert DEFAULT_LINT_RULES.severity_of("instruction/parse-error") == "warn"

    def test_unknown_rule_has_no_severity(self) -> None:
        assert DEFAULT_LINT_RULES.severity_of("skill/made-up") is None

    def test_catalog_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_LINT_RULES.skills["skill/missing-name"] = "off"  # type: ignore[index]


class TestResolveRuleConfig:
    """Merging overrides into the catalog."""

    def test_no_overrides_returns_defaults(self) -> None:
        assert resolve_rule_config(None) is DEFAULT_LINT_RULES
        assert resolve_rule_config({}) is DEFAULT_LINT_RULES

    def test_known_rule_override_is_applied(self) -> None:
        rules = resolve_rule_config({"agents": {"agent/invalid-field": "off"}})
        assert rules.severity_of("agent/invalid-field") == "off"
        # Untouched rules keep their defaults
        assert rules.severity_of("agent/missing-name") == "error"

    def test_unknown_rule_override_is_discarded(self) -> None:
        rules = resolve_rule_config({"skills": {"skill/not-a-rule": "error"}})
        assert "skill/not-a-rule" not in rules.skills
        assert rules.to_dict() == DEFAULT_LINT_RULES.to_dict()

    def test_unknown_section_is_ignored(self) -> None:
        rules = resolve_rule_config({"plugins": {"plugin/x": "off"}})
        assert rules.to_dict() == DEFAULT_LINT_RULES.to_dict()

    def test_invalid_severity_rejects_whole_config(self) -> None:
        with pytest.raises(LintConfigError, match="Invalid severity"):
            resolve_rule_config(
                {
                    "agents": {"agent/invalid-field": "off"},
                    "skills": {"skill/missing-name": "loud"},
                }
            )

    def test_invalid_severity_on_unknown_rule_still_rejected(self) -> None:
        with pytest.raises(LintConfigError):
            resolve_rule_config({"skills": {"skill/not-a-rule": "warning"}})

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(LintConfigError):
            resolve_rule_config({"skills": ["skill/missing-name"]})

    def test_every_catalog_rule_present_after_override(self) -> None:
        rules = resolve_rule_config({"instructions": {"instruction/parse-error": "error"}})
        for section in RULE_SECTIONS:
            assert set(rules.section(section)) == set(DEFAULT_LINT_RULES.section(section))


class TestApplyRuleConfig:
    """Severity is applied as a filter after diagnostics are generated."""

    def test_off_removes_all_diagnostics_with_that_rule(self) -> None:
        rules = resolve_rule_config({"agents": {"agent/invalid-field": "off"}})
        diagnostics = [
            make_diagnostic("agent/invalid-field", "warning"),
            make_diagnostic("agent/invalid-name-format"),
            make_diagnostic("agent/invalid-field", "warning", "b.md"),
        ]
        result = apply_rule_config(diagnostics, rules)
        assert [d.rule_id for d in result] == ["agent/invalid-name-format"]

    def test_warn_downgrades_error(self) -> None:
        rules = resolve_rule_config({"skills": {"skill/name-mismatch": "warn"}})
        result = apply_rule_config([make_diagnostic("skill/name-mismatch")], rules)
        assert result[0].severity == "warning"

    def test_error_upgrades_warning(self) -> None:
        rules = resolve_rule_config({"instructions": {"instruction/command-outside-section": "error"}})
        result = apply_rule_config([make_diagnostic("instruction/command-outside-section", "warning")], rules)
        assert result[0].severity == "error"

    def test_advisory_rule_never_becomes_error(self) -> None:
        rules = resolve_rule_config({"skills": {"skill/missing-allowed-tools": "error"}})
        result = apply_rule_config([make_diagnostic("skill/missing-allowed-tools", "warning")], rules)
        assert result[0].severity == "warning"

    def test_unknown_rule_passes_through_unchanged(self) -> None:
        diagnostic = make_diagnostic("skill/something-else", "info")
        assert apply_rule_config([diagnostic]) == [diagnostic]

    def test_original_diagnostics_are_not_mutated(self) -> None:
        original = make_diagnostic("skill/name-mismatch")
        rules = resolve_rule_config({"skills": {"skill/name-mismatch": "warn"}})
        apply_rule_config([original], rules)
        assert original.severity == "error"


class TestLoadLintConfig:
    """Reading overrides from config files in the target directory."""

    def test_missing_config_gives_defaults(self, tmp_path: Path) -> None:
        assert load_lint_config(tmp_path).to_dict() == DEFAULT_LINT_RULES.to_dict()

    def test_yaml_config(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yaml").write_text(
            "lint:\n  rules:\n    skills:\n      skill/missing-allowed-tools: error\n"
        )
        rules = load_lint_config(tmp_path)
        assert rules.severity_of("skill/missing-allowed-tools") == "error"

    def test_yaml_bare_off_is_accepted(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yml").write_text("lint:\n  rules:\n    agents:\n      agent/invalid-field: off\n")
        rules = load_lint_config(tmp_path)
        assert rules.severity_of("agent/invalid-field") == "off"

    def test_json_config(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.json").write_text(
            json.dumps({"lint": {"rules": {"agents": {"agent/name-mismatch": "warn"}}}})
        )
        assert load_lint_config(tmp_path).severity_of("agent/name-mismatch") == "warn"

    def test_toml_config(self, tmp_path: Path) -> None:
        (tmp_path / "agent-lint.toml").write_text('[lint.rules.instructions]\n"instruction/parse-error" = "off"\n')
        assert load_lint_config(tmp_path).severity_of("instruction/parse-error") == "off"

    def test_pyproject_tool_table(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "x"\n\n[tool.agent-lint.rules.skills]\n"skill/missing-name" = "warn"\n'
        )
        assert load_lint_config(tmp_path).severity_of("skill/missing-name") == "warn"

    def test_pyproject_tool_not_a_table_raises(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('tool = "x"\n')
        with pytest.raises(LintConfigError, match="must be a table"):
            load_lint_config(tmp_path)

    def test_pyproject_without_tool_table_gives_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
        assert load_lint_config(tmp_path).to_dict() == DEFAULT_LINT_RULES.to_dict()

    def test_dedicated_file_wins_over_pyproject(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[tool.agent-lint.rules.skills]\n"skill/missing-name" = "off"\n')
        (tmp_path / ".agent-lint.yaml").write_text("lint:\n  rules:\n    skills:\n      skill/missing-name: warn\n")
        assert load_lint_config(tmp_path).severity_of("skill/missing-name") == "warn"

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yaml").write_text("lint: [unclosed\n")
        with pytest.raises(LintConfigError, match=".agent-lint.yaml"):
            load_lint_config(tmp_path)

    def test_invalid_severity_in_file_raises(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yaml").write_text("lint:\n  rules:\n    skills:\n      skill/missing-name: fatal\n")
        with pytest.raises(LintConfigError):
            load_lint_config(tmp_path)

    def test_non_mapping_config_raises(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yaml").write_text("- just\n- a list\n")
        with pytest.raises(LintConfigError):
            load_lint_config(tmp_path)

    def test_empty_config_file_gives_defaults(self, tmp_path: Path) -> None:
        (tmp_path / ".agent-lint.yaml").write_text("")
        assert load_lint_config(tmp_path).to_dict() == DEFAULT_LINT_RULES.to_dict()
