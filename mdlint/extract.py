"""
Block Extractor

Scans raw Markdown text in a single pass and yields structural blocks
(headings, fenced code, links, tables) in source order. Problems found
while scanning come out of the same stream as Finding values, so one
malformed block never stops extraction of the rest of the document.
"""
from __future__ import annotations
import re
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from mdlint.ir import (
    Block,
    Category,
    CodeFence,
    Document,
    Finding,
    Heading,
    Link,
    Severity,
    Table,
)

HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*?)[ \t]*$")
CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+$")
FENCE_OPEN_RE = re.compile(r"^([ \t]*)(`{3,})([^`]*)$")
FENCE_CLOSE_RE = re.compile(r"^[ \t]*(`{3,})[ \t]*$")
TABLE_SEPARATOR_RE = re.compile(r"^[ \t]*\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$")
CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")

CODE_SPAN_RE = re.compile(r"(`+)(?!`)(.+?)(?<!`)\1(?!`)")
INLINE_LINK_RE = re.compile(
    r"(?<![!\\])\[(?P<text>[^\[\]]*)\]"
    r"\(\s*(?P<target><[^>\n]*>|[^\s()]*(?:\([^\s()]*\)[^\s()]*)*)"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
# not after a word character, so prose like $matrix[0][1] is not a reference
REFERENCE_LINK_RE = re.compile(r"(?<![!\\\]\w$])\[(?P<text>[^\[\]]+)\]\[(?P<label>[^\[\]]*)\]")
DEFINITION_RE = re.compile(
    r"^ {0,3}\[(?P<label>[^\]^][^\]]*)\]:[ \t]*(?P<target><[^>]*>|\S+)"
    r"(?:[ \t]+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?[ \t]*$"
)

# Slug normalization
INLINE_MARKUP_LINK_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
HTML_TAG_RE = re.compile(r"<[^>]+>")
SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
WHITESPACE_RUN_RE = re.compile(r"\s+")

BlockOrFinding = Union[Block, Finding]


def slugify(text: str) -> str:
    """Turn heading text into an anchor slug (lower-case, no punctuation, hyphens)."""
    visible = INLINE_MARKUP_LINK_RE.sub(r"\1", text)
    visible = HTML_TAG_RE.sub("", visible)
    slug = SLUG_STRIP_RE.sub("", visible.strip().lower())
    return WHITESPACE_RUN_RE.sub("-", slug)


class SlugRegistry:
    """
    Hands out unique slugs within one document.

    The first heading with a given slug keeps it; later ones get -1, -2, ...
    in order of appearance, skipping suffixed slugs that are already taken.
    """

    def __init__(self):
        self._taken: Set[str] = set()
        self._suffix: Dict[str, int] = {}

    def claim(self, base: str) -> str:
        if base not in self._taken:
            self._taken.add(base)
            return base
        n = self._suffix.get(base, 0)
        while True:
            n += 1
            candidate = f"{base}-{n}"
            if candidate not in self._taken:
                break
        self._suffix[base] = n
        self._taken.add(candidate)
        return candidate


def _heading_text(raw: str) -> str:
    return CLOSING_HASHES_RE.sub("", raw).strip()


def _language_tag(info: str) -> str:
    info = info.strip()
    if not info:
        return ""
    return info.split()[0].strip("{}").lstrip(".").lower()


def _split_row(line: str) -> Tuple[str, ...]:
    inner = line.strip()
    if inner.startswith("|"):
        inner = inner[1:]
    if inner.endswith("|") and not inner.endswith("\\|"):
        inner = inner[:-1]
    return tuple(cell.strip() for cell in CELL_SPLIT_RE.split(inner))


def _is_table_start(lines: List[str], i: int) -> bool:
    if i + 1 >= len(lines) or "|" not in lines[i]:
        return False
    sep = lines[i + 1]
    return "|" in sep and bool(TABLE_SEPARATOR_RE.match(sep))


def _in_spans(pos: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= pos < end for start, end in spans)


def _strip_angle(target: str) -> str:
    if target.startswith("<") and target.endswith(">"):
        return target[1:-1].strip()
    return target


def _scan_links(line: str, lineno: int) -> Iterator[Link]:
    """Yield inline and reference links on one line, left to right."""
    m = DEFINITION_RE.match(line)
    if m:
        yield Link(
            display_text=m.group("label"),
            target=_strip_angle(m.group("target")),
            start_line=lineno,
            kind="definition",
            label=m.group("label"),
        )
        return

    if "[" not in line:
        return
    spans = [(c.start(), c.end()) for c in CODE_SPAN_RE.finditer(line)]
    found: List[Tuple[int, Link]] = []
    taken: List[Tuple[int, int]] = []

    for m in INLINE_LINK_RE.finditer(line):
        if _in_spans(m.start(), spans):
            continue
        taken.append((m.start(), m.end()))
        found.append((m.start(), Link(
            display_text=m.group("text"),
            target=_strip_angle(m.group("target")),
            start_line=lineno,
        )))

    for m in REFERENCE_LINK_RE.finditer(line):
        if _in_spans(m.start(), spans) or _in_spans(m.start(), taken):
            continue
        label = m.group("label") or m.group("text")
        found.append((m.start(), Link(
            display_text=m.group("text"),
            target="",
            start_line=lineno,
            kind="reference",
            label=label,
        )))

    found.sort(key=lambda item: item[0])
    for _, link in found:
        yield link


def split_lines(text: str) -> List[str]:
    """Split on "\\n" only, so form feeds or U+2028 in prose keep line numbers intact."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [l[:-1] if l.endswith("\r") else l for l in lines]


def _dedent(line: str, indent: int) -> str:
    """Drop up to `indent` leading blanks (the list-item indent of the opening fence)."""
    n = 0
    while n < indent and n < len(line) and line[n] in " \t":
        n += 1
    return line[n:]


class _FenceCloser:
    """Finds closing fence lines, remembering which lengths can no longer close."""

    def __init__(self, lines: List[str]):
        self.lines = lines
        # length -> index after which no closing run of at least that length exists
        self._dead: Dict[int, int] = {}

    def find(self, start: int, length: int) -> Optional[int]:
        for dead_length, dead_from in self._dead.items():
            if length >= dead_length and start >= dead_from:
                return None
        for j in range(start, len(self.lines)):
            m = FENCE_CLOSE_RE.match(self.lines[j])
            if m and len(m.group(1)) >= length:
                return j
        self._dead[length] = start
        return None


def iter_blocks(text: str, path: str = "") -> Iterator[BlockOrFinding]:
    """
    Yield the blocks of one document in source order.

    Findings for malformed structure (an unterminated fence) are yielded
    inline with the blocks. Nothing inside a closed fence is scanned.
    """
    lines = split_lines(text)
    slugs = SlugRegistry()
    closer = _FenceCloser(lines)
    table_end = 0
    i = 0

    while i < len(lines):
        line = lines[i]
        lineno = i + 1
        in_table = i < table_end

        if not in_table:
            m = FENCE_OPEN_RE.match(line)
            if m:
                indent = len(m.group(1))
                ticks = len(m.group(2))
                close = closer.find(i + 1, ticks)
                if close is None:
                    yield Finding(
                        severity=Severity.ERROR,
                        category=Category.UNBALANCED_FENCE,
                        path=path,
                        line=lineno,
                        message=f"Code fence opened with {ticks} backticks is never closed.",
                    )
                    # the rest of the document is read as ordinary text
                    i += 1
                    continue
                yield CodeFence(
                    language_tag=_language_tag(m.group(3)),
                    content="\n".join(_dedent(l, indent) for l in lines[i + 1:close]),
                    start_line=lineno,
                    end_line=close + 1,
                    fence_length=ticks,
                )
                i = close + 1
                continue

            m = HEADING_RE.match(line)
            if m:
                title = _heading_text(m.group(2))
                if title:
                    yield Heading(
                        level=len(m.group(1)),
                        text=title,
                        slug=slugs.claim(slugify(title)),
                        line=lineno,
                    )

            elif _is_table_start(lines, i):
                rows = [_split_row(line)]
                j = i + 2
                while j < len(lines) and lines[j].strip() and "|" in lines[j]:
                    rows.append(_split_row(lines[j]))
                    j += 1
                table_end = j
                yield Table(rows=tuple(rows), start_line=lineno)

        yield from _scan_links(line, lineno)
        i += 1


class BlockStream:
    """Restartable view over a document's blocks; every iteration rescans the text."""

    def __init__(self, text: str, path: str = ""):
        self.text = text
        self.path = path

    def __iter__(self) -> Iterator[BlockOrFinding]:
        return iter_blocks(self.text, self.path)


def parse_document(path: str, text: str) -> Document:
    if text.startswith("\ufeff"):
        text = text[1:]
    blocks: List[Block] = []
    findings: List[Finding] = []
    for item in BlockStream(text, path):
        if isinstance(item, Finding):
            findings.append(item)
        else:
            blocks.append(item)
    return Document(path=path, text=text, blocks=tuple(blocks), findings=tuple(findings))
