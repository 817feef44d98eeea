import json

from mdlint.ir import Category, Finding, Severity
from mdlint.report import Report, render_json, render_text, write_json


def _f(severity, category, path, line, message="m"):
    return Finding(severity=severity, category=category, path=path, line=line, message=message)


FINDINGS = [
    _f(Severity.WARNING, Category.EMPTY_CODE_BLOCK, "b.md", 2, "Empty php code block."),
    _f(Severity.ERROR, Category.UNRESOLVED_LINK, "b.md", 9, "Unresolved link 'x' -> c.md"),
    _f(Severity.ERROR, Category.UNBALANCED_FENCE, "a.md", 30, "never closed"),
    _f(Severity.WARNING, Category.UNKNOWN_LANGUAGE_TAG, "a.md", 4, "Unknown language tag 'go'."),
    _f(Severity.ERROR, Category.UNRESOLVED_LINK, "b.md", 3, "Unresolved link 'y' -> #nope"),
]


def test_findings_are_ordered_errors_first_then_path_and_line():
    report = Report.from_findings(FINDINGS)
    assert [(f.severity, f.path, f.line) for f in report.findings] == [
        ("error", "a.md", 30),
        ("error", "b.md", 3),
        ("error", "b.md", 9),
        ("warning", "a.md", 4),
        ("warning", "b.md", 2),
    ]
    assert report.error_count == 3
    assert report.warning_count == 2


def test_has_errors_ignores_warnings():
    warnings_only = Report.from_findings([f for f in FINDINGS if f.severity == Severity.WARNING])
    assert not warnings_only.has_errors
    assert Report.from_findings(FINDINGS).has_errors
    assert not Report().has_errors


def test_fail_on_thresholds():
    warnings_only = Report.from_findings([FINDINGS[0]])
    assert not warnings_only.exceeds("error")
    assert warnings_only.exceeds("warning")
    assert not Report.from_findings(FINDINGS).exceeds("never")
    assert not Report().exceeds("warning")


def test_json_shape():
    payload = json.loads(render_json(Report.from_findings(FINDINGS)))
    assert set(payload) == {"errors", "warnings", "summary"}
    assert payload["summary"] == {"error_count": 3, "warning_count": 2}
    assert payload["errors"][0] == {
        "category": "UnbalancedFence",
        "line": 30,
        "message": "never closed",
        "path": "a.md",
        "severity": "error",
    }
    assert [w["category"] for w in payload["warnings"]] == ["UnknownLanguageTag", "EmptyCodeBlock"]


def test_json_is_stable_regardless_of_input_order():
    assert render_json(Report.from_findings(FINDINGS)) == render_json(Report.from_findings(reversed(FINDINGS)))


def test_text_groups_by_document_with_errors_first():
    text = render_text(Report.from_findings(FINDINGS, documents_checked=3))
    lines = text.splitlines()
    assert lines[0] == "a.md"
    assert "UnbalancedFence" in lines[1]
    assert "UnknownLanguageTag" in lines[2]
    b_start = lines.index("b.md")
    b_lines = lines[b_start + 1:b_start + 4]
    assert ["error" in l for l in b_lines] == [True, True, False]
    assert "#nope" in b_lines[0]
    assert lines[-1] == "3 errors, 2 warnings in 3 files."


def test_text_shortens_messages_to_width():
    long = _f(Severity.ERROR, Category.UNRESOLVED_LINK, "a.md", 1, "Unresolved link " + "word " * 40)
    text = render_text(Report.from_findings([long]), width=80)
    assert all(len(l) <= 80 for l in text.splitlines())
    assert "..." in text


def test_empty_report_text():
    assert render_text(Report(documents_checked=1)) == "0 errors, 0 warnings in 1 file.\n"


def test_write_json(tmp_path):
    out = tmp_path / "report.json"
    report = Report.from_findings(FINDINGS)
    write_json(str(out), report)
    assert out.read_text(encoding="utf-8") == render_json(report)
