import pytest

from mdlint.ir import Category
from mdlint.pipeline import LintConfig, LintInputError, discover_files, lint_documents, run_lint
from mdlint.rules.load_rules import load_discovery_rules, load_rule_pack


def test_links_resolve_against_documents_read_later():
    texts = {
        "a.md": "[z](z.md#last)\n",
        "z.md": "# Last\n",
    }
    report = lint_documents(texts)
    assert report.findings == ()
    assert report.documents_checked == 2


def test_extraction_and_fence_findings_are_merged():
    texts = {"a.md": "```php\n\n```\n```js\nf(\n```\n```\nopen\n"}
    report = lint_documents(texts, LintConfig())
    assert sorted(f.category for f in report.findings) == [
        Category.EMPTY_CODE_BLOCK,
        Category.UNBALANCED_FENCE,
        Category.UNBALANCED_FENCE,
    ]


def test_discover_files_returns_relative_sorted_paths(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "b.md").write_text("x", encoding="utf-8")
    (tmp_path / "A.MD").write_text("x", encoding="utf-8")
    (tmp_path / "schema.sql").write_text("x", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD.md").write_text("x", encoding="utf-8")
    discovery = load_discovery_rules(load_rule_pack())
    markdown, known = discover_files(tmp_path, discovery)
    assert markdown == ["A.MD", "docs/b.md"]
    assert known == ["A.MD", "docs/b.md", "schema.sql"]


def test_run_lint_rejects_missing_root(tmp_path):
    with pytest.raises(LintInputError):
        run_lint(str(tmp_path / "missing"))


def test_byte_order_mark_does_not_hide_the_first_heading(tmp_path):
    (tmp_path / "a.md").write_bytes(b"\xef\xbb\xbf# Title\n\n[self](#title)\n")
    report = run_lint(str(tmp_path))
    assert report.findings == ()
