"""
Code-Fence Validator

Best-effort syntactic sanity checks for fenced code blocks: language tag,
emptiness, and delimiter/quote balance. Embedded code is only scanned as
text; it is never executed or handed to an external tool.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from mdlint.ir import Category, CodeFence, Document, Finding, Severity
from mdlint.rules.load_rules import FenceRules, StringProfile

_CLOSERS = {")": "(", "]": "[", "}": "{"}
_OPENERS = "([{"
_PLAIN_QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class BalanceProblem:
    line_offset: int  # 0-based line within the fence content
    message: str


def _line_comment_at(content: str, i: int, profile: StringProfile) -> bool:
    for marker in profile.line_comments:
        if not content.startswith(marker, i):
            continue
        # "#" only starts a comment at line start or after whitespace ($#, ${#x})
        if marker == "#" and i > 0 and not content[i - 1].isspace():
            continue
        return True
    return False


def _check_stack(stack: List[Tuple[str, int]]) -> Optional[BalanceProblem]:
    if stack:
        ch, line = stack[-1]
        return BalanceProblem(line, f"'{ch}' is never closed.")
    return None


def _check_with_strings(content: str, profile: StringProfile) -> Optional[BalanceProblem]:
    """Delimiter check that skips string literals and comments."""
    stack: List[Tuple[str, int]] = []
    n = len(content)
    line = 0
    i = 0
    while i < n:
        ch = content[i]
        if ch == "\n":
            line += 1
            i += 1
            continue

        skipped = False
        for start, end in profile.block_comments:
            if content.startswith(start, i):
                close = content.find(end, i + len(start))
                if close == -1:
                    return BalanceProblem(line, f"Comment opened with '{start}' is never closed.")
                line += content.count("\n", i, close)
                i = close + len(end)
                skipped = True
                break
        if skipped:
            continue

        if _line_comment_at(content, i, profile):
            nl = content.find("\n", i)
            i = n if nl == -1 else nl
            continue

        if profile.triple_quotes and content.startswith(('"""', "'''"), i):
            quote = content[i:i + 3]
            j = i + 3
            while j < n and not content.startswith(quote, j):
                j += 2 if content[j] == "\\" else 1
            if j >= n:
                return BalanceProblem(line, f"String opened with {quote} is never closed.")
            line += content.count("\n", i, j)
            i = j + 3
            continue

        if ch in profile.quotes:
            j = i + 1
            while j < n and content[j] != ch:
                j += 2 if content[j] == "\\" else 1
            if j >= n:
                return BalanceProblem(line, f"String opened with {ch} is never closed.")
            line += content.count("\n", i, j)
            i = j + 1
            continue

        if ch in _OPENERS:
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if not stack or stack[-1][0] != _CLOSERS[ch]:
                return BalanceProblem(line, f"Unexpected '{ch}'.")
            stack.pop()
        i += 1
    return _check_stack(stack)


def _check_plain(content: str) -> Optional[BalanceProblem]:
    """Delimiter check for tags without a string profile: brackets stacked, quotes counted."""
    stack: List[Tuple[str, int]] = []
    open_quote_line = {q: -1 for q in _PLAIN_QUOTES}
    line = 0
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if ch == "\\":
            i += 1 if content[i + 1:i + 2] == "\n" else 2
            continue
        if ch == "\n":
            line += 1
        elif ch in open_quote_line:
            open_quote_line[ch] = line if open_quote_line[ch] < 0 else -1
        elif ch in _OPENERS:
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if not stack or stack[-1][0] != _CLOSERS[ch]:
                return BalanceProblem(line, f"Unexpected '{ch}'.")
            stack.pop()
        i += 1

    problem = _check_stack(stack)
    if problem:
        return problem
    for quote in _PLAIN_QUOTES:
        if open_quote_line[quote] >= 0:
            return BalanceProblem(open_quote_line[quote], f"Unmatched {quote} quote.")
    return None


def check_balance(content: str, profile: Optional[StringProfile] = None) -> Optional[BalanceProblem]:
    if profile is None:
        return _check_plain(content)
    return _check_with_strings(content, profile)


def validate_fence(
    fence: CodeFence,
    path: str,
    rules: FenceRules,
    ignore_unknown_tags: bool = False,
) -> List[Finding]:
    findings: List[Finding] = []
    tag = fence.language_tag

    if tag and tag not in rules.recognized_tags and not ignore_unknown_tags:
        findings.append(Finding(
            severity=Severity.WARNING,
            category=Category.UNKNOWN_LANGUAGE_TAG,
            path=path,
            line=fence.start_line,
            message=f"Unknown language tag '{tag}'.",
        ))

    if not fence.content.strip():
        label = f"{tag} code block" if tag else "code block"
        findings.append(Finding(
            severity=Severity.WARNING,
            category=Category.EMPTY_CODE_BLOCK,
            path=path,
            line=fence.start_line,
            message=f"Empty {label}.",
        ))
        return findings

    if tag in rules.balance_exempt_tags:
        return findings

    problem = check_balance(fence.content, rules.profile_for(tag))
    if problem:
        findings.append(Finding(
            severity=Severity.ERROR,
            category=Category.UNBALANCED_FENCE,
            path=path,
            line=fence.start_line + 1 + problem.line_offset,
            message=f"Unbalanced {tag or 'untagged'} code block: {problem.message}",
        ))
    return findings


def validate_document(
    document: Document,
    rules: FenceRules,
    ignore_unknown_tags: bool = False,
) -> List[Finding]:
    findings: List[Finding] = []
    for fence in document.fences():
        findings.extend(validate_fence(fence, document.path, rules, ignore_unknown_tags))
    return findings
