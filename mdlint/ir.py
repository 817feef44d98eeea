from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple, Union


class Severity:
    ERROR = "error"
    WARNING = "warning"


class Category:
    UNRESOLVED_LINK = "UnresolvedLink"
    UNBALANCED_FENCE = "UnbalancedFence"
    UNKNOWN_LANGUAGE_TAG = "UnknownLanguageTag"
    EMPTY_CODE_BLOCK = "EmptyCodeBlock"


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    slug: str
    line: int


@dataclass(frozen=True)
class CodeFence:
    language_tag: str   # lower-cased first word of the info string, "" if none
    content: str
    start_line: int     # line of the opening backticks
    end_line: int       # line of the closing backticks
    fence_length: int = 3


@dataclass(frozen=True)
class Link:
    display_text: str
    target: str
    start_line: int
    kind: str = "inline"  # inline|reference|definition
    label: str = ""       # reference label for reference/definition kinds


@dataclass(frozen=True)
class Table:
    rows: Tuple[Tuple[str, ...], ...]
    start_line: int


Block = Union[Heading, CodeFence, Link, Table]


@dataclass(frozen=True)
class Finding:
    severity: str  # error|warning
    category: str
    path: str
    line: int
    message: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "line": self.line,
            "message": self.message,
            "path": self.path,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class Document:
    path: str   # POSIX path relative to the lint root
    text: str
    blocks: Tuple[Block, ...] = field(default_factory=tuple)
    findings: Tuple[Finding, ...] = field(default_factory=tuple)

    def headings(self) -> Tuple[Heading, ...]:
        return tuple(b for b in self.blocks if isinstance(b, Heading))

    def fences(self) -> Tuple[CodeFence, ...]:
        return tuple(b for b in self.blocks if isinstance(b, CodeFence))

    def links(self) -> Tuple[Link, ...]:
        return tuple(b for b in self.blocks if isinstance(b, Link))

    def tables(self) -> Tuple[Table, ...]:
        return tuple(b for b in self.blocks if isinstance(b, Table))
