from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
import json
import textwrap

from mdlint.ir import Finding, Severity

FAIL_ON_CHOICES = ("error", "warning", "never")

_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1}


def _sort_key(f: Finding) -> Tuple[int, str, int, str, str]:
    return (_SEVERITY_RANK.get(f.severity, 2), f.path, f.line, f.category, f.message)


@dataclass(frozen=True)
class Report:
    findings: Tuple[Finding, ...] = field(default_factory=tuple)
    documents_checked: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[Finding], documents_checked: int = 0) -> "Report":
        return cls(findings=tuple(sorted(findings, key=_sort_key)), documents_checked=documents_checked)

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def has_errors(self) -> bool:
        return any(f.severity == Severity.ERROR for f in self.findings)

    def exceeds(self, fail_on: str) -> bool:
        """Whether any finding is at or above the --fail-on threshold."""
        if fail_on == "never":
            return False
        if fail_on == "warning":
            return bool(self.findings)
        return self.has_errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "summary": {"error_count": self.error_count, "warning_count": self.warning_count},
        }


def render_json(report: Report) -> str:
    return json.dumps(report.to_dict(), ensure_ascii=False, indent=2) + "\n"


def write_json(path: str, report: Report) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_json(report))


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" + ("" if n == 1 else "s")


def render_text(report: Report, width: Optional[int] = None) -> str:
    """
    Human-readable listing, one section per document.

    Errors come before warnings inside each section and each group is
    ordered by line. When a terminal width is given, long messages are
    shortened to fit it.
    """
    lines: List[str] = []
    by_path: Dict[str, List[Finding]] = {}
    for f in report.findings:
        by_path.setdefault(f.path, []).append(f)

    for path in sorted(by_path):
        lines.append(path)
        group = sorted(by_path[path], key=lambda f: (_SEVERITY_RANK.get(f.severity, 2), f.line))
        for f in group:
            prefix = f"  {f.line:>5}  {f.severity:<7}  {f.category:<18}  "
            message = f.message
            if width and len(prefix) + len(message) > width:
                message = textwrap.shorten(message, max(width - len(prefix), 12), placeholder="...")
            lines.append(prefix + message)
        lines.append("")

    summary = f"{_plural(report.error_count, 'error')}, {_plural(report.warning_count, 'warning')}"
    if report.documents_checked:
        summary += f" in {_plural(report.documents_checked, 'file')}"
    lines.append(summary + ".")
    return "\n".join(lines) + "\n"
