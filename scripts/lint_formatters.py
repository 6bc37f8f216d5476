#!/usr/bin/env python3
"""
Agent Lint - Output Formatters

Renders a list of LintOutput objects for the console or for CI tooling:

    human    ✔ path: OK  /  ✖ path:line [field]: message
    json     flat JSON array of every diagnostic
    rdjsonl  Reviewdog Diagnostic Format, one JSON object per line
             (compatible with `reviewdog -f=rdjsonl`)
"""

from __future__ import annotations

import json
from typing import Literal, Protocol

from lint_common import LintOutput, Severity, colorize

LintFormatType = Literal["human", "json", "rdjsonl"]

FORMAT_CHOICES: tuple[str, ...] = ("human", "json", "rdjsonl")

SEVERITY_ICONS: dict[Severity, str] = {
    "error": "✖",
    "warning": "⚠",
    "info": "ℹ",
}

PASSED_ICON = "✔"

RDJSONL_SEVERITIES: dict[str, str] = {
    "error": "ERROR",
    "warning": "WARNING",
}


class LintFormatter(Protocol):
    def format(self, outputs: list[LintOutput]) -> str: ...


class HumanFormatter:
    """Console output: clean files first, then one line per diagnostic."""

    def format(self, outputs: list[LintOutput]) -> str:
        lines: list[str] = []

        for output in outputs:
            if output.total_files == 0:
                continue

            files_with_diagnostics = {d.file_path for d in output.diagnostics}
            for file_path in output.files_analyzed:
                if file_path not in files_with_diagnostics:
                    lines.append(colorize(f"{PASSED_ICON} {file_path}: OK", "passed"))

            for d in output.diagnostics:
                field_info = f" [{d.field}]" if d.field else ""
                icon = colorize(SEVERITY_ICONS.get(d.severity, "?"), d.severity)
                lines.append(f"{icon} {d.file_path}:{d.line}{field_info}: {d.message}")

        return "\n".join(lines)


class JsonFormatter:
    def format(self, outputs: list[LintOutput]) -> str:
        diagnostics = [d.to_dict() for output in outputs for d in output.diagnostics]
        return json.dumps(diagnostics, indent=2, ensure_ascii=False)


class RdjsonlFormatter:
    """Reviewdog JSON Lines; severities map to ERROR / WARNING / INFO."""

    def format(self, outputs: list[LintOutput]) -> str:
        lines: list[str] = []
        for output in outputs:
            for d in output.diagnostics:
                entry: dict[str, object] = {
                    "message": d.message,
                    "location": {
                        "path": d.file_path,
                        "range": {"start": {"line": d.line}},
                    },
                    "severity": RDJSONL_SEVERITIES.get(d.severity, "INFO"),
                }
                if d.rule_id:
                    entry["code"] = {"value": d.rule_id}
                lines.append(json.dumps(entry, ensure_ascii=False))
        return "\n".join(lines)


def create_formatter(format_type: str) -> LintFormatter:
    """Return the formatter for format_type (unknown values fall back to human)."""
    if format_type == "json":
        return JsonFormatter()
    if format_type == "rdjsonl":
        return RdjsonlFormatter()
    return HumanFormatter()
