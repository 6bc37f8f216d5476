#!/usr/bin/env python3
"""
Agent Lint - Markdown Structure Extraction

Line-based scanner that turns a Markdown document into the flat structures
the instruction quality analysis works on:

- headings       text, depth (1-6) and line of every ATX / setext heading
- code_blocks    fenced and indented code with the index of the top-level
                 node that holds them
- inline_codes   `code spans` found outside code blocks
- children       the ordered list of top-level block nodes

Only block structure is recognised. Inline markup other than code spans is
kept as-is in node text, which is enough for substring and keyword matching.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

# =============================================================================
# Block Patterns
# =============================================================================

_FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})[ \t]*(?P<info>.*)$")
_ATX_HEADING_RE = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t]*$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_UNDERLINE_RE = re.compile(r"^ {0,3}(?P<marker>=+|-+)[ \t]*$")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}(?P<char>[-*_])(?:[ \t]*(?P=char)){2,}[ \t]*$")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}> ?")
_LIST_ITEM_RE = re.compile(r"^ {0,3}(?:[-+*]|\d{1,9}[.)])(?:[ \t]+|$)")
_HTML_BLOCK_RE = re.compile(r"^ {0,3}<(?:[A-Za-z][A-Za-z0-9-]*|/[A-Za-z]|!--|\?|![A-Z])")
_TABLE_DELIMITER_RE = re.compile(r"^ {0,3}\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$")
_INDENTED_CODE_RE = re.compile(r"^(?: {4}|\t)")

# Backtick run, content, matching run not touching other backticks
_CODE_SPAN_RE = re.compile(r"(?<!`)(?P<ticks>`+)(?!`)(?P<code>.+?)(?<!`)(?P=ticks)(?!`)", re.DOTALL)

FRONTMATTER_DELIMITER = "---"

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class MarkdownHeading:
    text: str
    depth: int
    line: int


@dataclass(frozen=True)
class MarkdownCodeBlock:
    """A code block and the index of the top-level node that contains it."""

    value: str
    lang: str | None
    line: int
    node_index: int


@dataclass(frozen=True)
class MarkdownInlineCode:
    value: str
    line: int


@dataclass(frozen=True)
class MarkdownNode:
    """Top-level block node.

    Attributes:
        type: mdast-style node type (heading, paragraph, code, list, ...)
        text: Plain text of the node (code value for code nodes)
        line: 1-based line the node starts on
    """

    type: str
    text: str
    line: int


@dataclass
class MarkdownStructure:
    """Structural features extracted from one Markdown document."""

    headings: list[MarkdownHeading] = field(default_factory=list)
    code_blocks: list[MarkdownCodeBlock] = field(default_factory=list)
    inline_codes: list[MarkdownInlineCode] = field(default_factory=list)
    children: list[MarkdownNode] = field(default_factory=list)

    @property
    def full_text(self) -> str:
        """All heading, code and node text joined by spaces."""
        parts: list[str] = [h.text for h in self.headings]
        parts.extend(block.value for block in self.code_blocks)
        parts.extend(code.value for code in self.inline_codes)
        parts.extend(node.text for node in self.children if node.type != "code")
        return " ".join(parts)


# =============================================================================
# Inline Helpers
# =============================================================================


def _normalize_code_span(code: str) -> str:
    """Apply CommonMark code span normalization (newlines, one padding space)."""
    code = code.replace("\n", " ")
    if len(code) >= 2 and code.startswith(" ") and code.endswith(" ") and code.strip():
        code = code[1:-1]
    return code


def _plain_text(text: str) -> str:
    """Replace code spans with their content."""
    return _CODE_SPAN_RE.sub(lambda m: _normalize_code_span(m.group("code")), text)


def _heading_text(raw: str) -> str:
    return _plain_text(_ATX_CLOSING_RE.sub("", raw).strip())


def _extract_inline_codes(lines: list[str], first_line: int) -> list[MarkdownInlineCode]:
    """Find code spans in a run of consecutive text lines."""
    text = "\n".join(lines)
    return [
        MarkdownInlineCode(
            value=_normalize_code_span(m.group("code")),
            line=first_line + text.count("\n", 0, m.start()),
        )
        for m in _CODE_SPAN_RE.finditer(text)
    ]


def _open_fence(line: str) -> re.Match[str] | None:
    """Match an opening code fence (backtick fences cannot have backticks in the info string)."""
    match = _FENCE_OPEN_RE.match(line)
    if match and match.group("fence").startswith("`") and "`" in match.group("info"):
        return None
    return match


def _is_closing_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return (
        len(line) - len(line.lstrip(" ")) <= 3
        and len(stripped) >= len(fence)
        and set(stripped) == {fence[0]}
    )


def _fence_lang(match: re.Match[str]) -> str | None:
    words = match.group("info").split()
    return words[0] if words else None


def _read_fence(lines: list[str], start: int, match: re.Match[str]) -> tuple[str, int]:
    """Read the fenced code opened at lines[start]; return (value, next index).

    An unclosed fence runs to the end of the lines.
    """
    fence = match.group("fence")
    indent = len(match.group("indent"))
    body: list[str] = []
    i = start + 1
    while i < len(lines):
        line = lines[i]
        if _is_closing_fence(line, fence):
            return "\n".join(body), i + 1
        strip = min(indent, len(line) - len(line.lstrip(" ")))
        body.append(line[strip:])
        i += 1
    return "\n".join(body), i


def _strip_item_marker(line: str) -> str:
    """Remove indentation and a leading list marker."""
    dedented = line.lstrip()
    marker = _LIST_ITEM_RE.match(dedented)
    return dedented[marker.end() :] if marker else dedented


def _starts_block(line: str) -> bool:
    """Check whether a line interrupts a paragraph."""
    return bool(
        _open_fence(line)
        or _ATX_HEADING_RE.match(line)
        or _BLOCKQUOTE_RE.match(line)
        or _THEMATIC_BREAK_RE.match(line)
        or _HTML_BLOCK_RE.match(line)
        or (_LIST_ITEM_RE.match(line) and line.strip() not in {"-", "+", "*"})
    )


# =============================================================================
# Parser
# =============================================================================


class _BlockScanner:
    """Single pass over the document lines, building a MarkdownStructure.

    Line numbers are 1-based; self.pos is the 0-based index of the next
    unread line.
    """

    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.pos = 0
        self.structure = MarkdownStructure()

    def _add_node(self, node_type: str, text: str, index: int) -> int:
        self.structure.children.append(MarkdownNode(node_type, text, index + 1))
        return len(self.structure.children) - 1

    def _add_heading(self, text: str, depth: int, index: int) -> None:
        self.structure.headings.append(MarkdownHeading(text=text, depth=depth, line=index + 1))

    def _add_inline_codes(self, lines: list[str], index: int) -> None:
        self.structure.inline_codes.extend(_extract_inline_codes(lines, index + 1))

    def _next_non_blank(self, index: int) -> int | None:
        for i in range(index, len(self.lines)):
            if self.lines[i].strip():
                return i
        return None

    def scan(self) -> MarkdownStructure:
        self._scan_frontmatter()
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if not line.strip():
                self.pos += 1
                continue

            fence = _open_fence(line)
            heading = _ATX_HEADING_RE.match(line)
            if fence:
                self._scan_fence(fence)
            elif heading:
                self._scan_atx_heading(heading)
            elif _THEMATIC_BREAK_RE.match(line):
                self._add_node("thematicBreak", "", self.pos)
                self.pos += 1
            elif _INDENTED_CODE_RE.match(line):
                self._scan_indented_code()
            elif _BLOCKQUOTE_RE.match(line):
                self._scan_container("blockquote")
            elif _LIST_ITEM_RE.match(line):
                self._scan_container("list")
            elif _HTML_BLOCK_RE.match(line):
                self._scan_until_blank("html")
            elif self._is_table_start(line):
                self._scan_until_blank("table")
            else:
                self._scan_paragraph()
        return self.structure

    def _scan_frontmatter(self) -> None:
        if not self.lines or self.lines[0].strip() != FRONTMATTER_DELIMITER:
            return
        for end in range(1, len(self.lines)):
            if self.lines[end].strip() == FRONTMATTER_DELIMITER:
                self._add_node("yaml", "\n".join(self.lines[1:end]), 0)
                self.pos = end + 1
                return

    def _scan_fence(self, match: re.Match[str]) -> None:
        start = self.pos
        value, self.pos = _read_fence(self.lines, start, match)
        node_index = self._add_node("code", value, start)
        self.structure.code_blocks.append(
            MarkdownCodeBlock(value=value, lang=_fence_lang(match), line=start + 1, node_index=node_index)
        )

    def _scan_atx_heading(self, match: re.Match[str]) -> None:
        raw = match.group("text") or ""
        text = _heading_text(raw)
        self._add_heading(text, len(match.group("hashes")), self.pos)
        self._add_node("heading", text, self.pos)
        self._add_inline_codes([raw], self.pos)
        self.pos += 1

    def _scan_indented_code(self) -> None:
        start = self.pos
        body: list[str] = []
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if line.strip() and not _INDENTED_CODE_RE.match(line):
                break
            body.append(line[1:] if line.startswith("\t") else line[4:])
            self.pos += 1
        while body and not body[-1].strip():
            body.pop()
        value = "\n".join(body)
        node_index = self._add_node("code", value, start)
        self.structure.code_blocks.append(MarkdownCodeBlock(value=value, lang=None, line=start + 1, node_index=node_index))

    def _is_table_start(self, line: str) -> bool:
        if "|" not in line or self.pos + 1 >= len(self.lines):
            return False
        delimiter = self.lines[self.pos + 1]
        return "|" in delimiter and _TABLE_DELIMITER_RE.match(delimiter) is not None

    def _scan_until_blank(self, node_type: str) -> None:
        """HTML blocks and tables run to the next blank line."""
        start = self.pos
        body: list[str] = []
        while self.pos < len(self.lines) and self.lines[self.pos].strip():
            body.append(self.lines[self.pos])
            self.pos += 1

        if node_type == "table":
            cells = (cell.strip() for row in body for cell in row.split("|"))
            self._add_node("table", _plain_text(" ".join(c for c in cells if c)), start)
            self._add_inline_codes(body, start)
        else:
            self._add_node(node_type, "\n".join(body), start)

    def _scan_paragraph(self) -> None:
        start = self.pos
        body: list[str] = [self.lines[self.pos]]
        self.pos += 1
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if not line.strip():
                break
            setext = _SETEXT_UNDERLINE_RE.match(line)
            if setext:
                text = _plain_text(" ".join(part.strip() for part in body))
                self._add_heading(text, 1 if setext.group("marker").startswith("=") else 2, start)
                self._add_node("heading", text, start)
                self._add_inline_codes(body, start)
                self.pos += 1
                return
            if _starts_block(line):
                break
            body.append(line)
            self.pos += 1

        self._add_node("paragraph", _plain_text("\n".join(part.strip() for part in body)), start)
        self._add_inline_codes(body, start)

    # -- containers -----------------------------------------------------------

    def _continues_list(self, line: str, raw: list[str], in_fence: bool) -> bool:
        if not line.strip():
            if in_fence:
                return True
            nxt = self._next_non_blank(self.pos)
            return nxt is not None and (
                _LIST_ITEM_RE.match(self.lines[nxt]) is not None or self.lines[nxt].startswith((" ", "\t"))
            )
        if line.startswith((" ", "\t")):
            return True
        if _THEMATIC_BREAK_RE.match(line) or _ATX_HEADING_RE.match(line):
            return False
        if _LIST_ITEM_RE.match(line):
            return True
        # Lazy continuation of the previous paragraph line
        return not in_fence and bool(raw) and bool(raw[-1].strip()) and not _starts_block(line)

    def _scan_container(self, node_type: str) -> None:
        """Scan a block quote or list and everything nested in it.

        Block quotes continue while lines start with '>'. Lists continue
        through blank lines as long as the next non-blank line is indented or
        starts another item. Fenced code inside the container is recorded as
        a code block carrying the container's node index.
        """
        start = self.pos
        raw: list[str] = []
        fence: str | None = None
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if node_type == "blockquote":
                if not _BLOCKQUOTE_RE.match(line):
                    break
                content = _BLOCKQUOTE_RE.sub("", line, count=1)
            else:
                if self.pos > start and not self._continues_list(line, raw, fence is not None):
                    break
                content = line

            inner = _strip_item_marker(content)
            if fence is None:
                opened = _open_fence(inner)
                if opened:
                    fence = opened.group("fence")
            elif _is_closing_fence(inner, fence):
                fence = None
            raw.append(content)
            self.pos += 1

        node_index = self._add_node(node_type, "", start)
        text = self._scan_nested(raw, start, node_index)
        self.structure.children[node_index] = MarkdownNode(node_type, text, start + 1)

    def _scan_nested(self, raw: list[str], start: int, node_index: int) -> str:
        """Extract code blocks, headings and code spans from container lines.

        Returns the container's plain text, code block values included.
        """
        texts: list[str] = []
        run: list[str] = []
        run_start = start

        def flush() -> None:
            if run:
                self._add_inline_codes(run, run_start)
                texts.append(_plain_text("\n".join(part.strip() for part in run)))
                run.clear()

        i = 0
        while i < len(raw):
            line = raw[i]
            inner = _strip_item_marker(line)
            fence = _open_fence(inner)
            heading = _ATX_HEADING_RE.match(inner)
            if fence:
                flush()
                outer = len(line) - len(inner)
                dedented = [
                    ln[outer:] if len(ln) - len(ln.lstrip(" ")) >= outer else ln.lstrip() for ln in raw
                ]
                dedented[i] = inner
                value, end = _read_fence(dedented, i, fence)
                self.structure.code_blocks.append(
                    MarkdownCodeBlock(value=value, lang=_fence_lang(fence), line=start + i + 1, node_index=node_index)
                )
                texts.append(value)
                i = end
            elif heading:
                flush()
                heading_raw = heading.group("text") or ""
                text = _heading_text(heading_raw)
                self._add_heading(text, len(heading.group("hashes")), start + i)
                self._add_inline_codes([heading_raw], start + i)
                texts.append(text)
                i += 1
            elif not line.strip():
                flush()
                i += 1
            else:
                if not run:
                    run_start = start + i
                run.append(line)
                i += 1
        flush()
        return " ".join(t for t in texts if t)


def parse_markdown(content: str) -> MarkdownStructure:
    """Extract headings, code blocks, inline code and top-level nodes from Markdown."""
    if content.startswith("\ufeff"):
        content = content[1:]
    lines = content.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return _BlockScanner(lines).scan()


def parse_markdown_file(file_path: str | Path) -> MarkdownStructure:
    """Read a UTF-8 Markdown file and extract its structure.

    Raises:
        OSError: The file cannot be read.
        UnicodeDecodeError: The file is not valid UTF-8.
    """
    return parse_markdown(Path(file_path).read_text(encoding="utf-8"))


# =============================================================================
# Proximity Keyword Search
# =============================================================================


@lru_cache(maxsize=32)
def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    """Case-insensitive alternation matching any keyword at a word boundary."""
    alternation = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<![A-Za-z0-9])(?:{alternation})(?![A-Za-z0-9])", re.IGNORECASE)


def find_conditional_keywords_in_proximity(
    structure: MarkdownStructure,
    node_index: int,
    proximity_window: int,
    keywords: Iterable[str],
) -> bool:
    """Check the siblings following a node for any of the keywords.

    Only children node_index+1 .. node_index+proximity_window are inspected
    (clamped to the end of the document), so the cost is bounded by the
    window rather than the document size.
    """
    keyword_tuple = tuple(k for k in keywords if k)
    if not keyword_tuple or proximity_window <= 0:
        return False

    pattern = _keyword_pattern(keyword_tuple)
    end = min(len(structure.children), node_index + 1 + proximity_window)
    for i in range(max(node_index + 1, 0), end):
        if pattern.search(structure.children[i].text):
            return True
    return False
