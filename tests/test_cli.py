import json

from mdlint.cli import main


def _write(root, files):
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _run_json(capsys, *argv):
    code = main([*argv, "--format", "json"])
    out = capsys.readouterr().out
    return code, json.loads(out)


def test_empty_php_fence_is_a_warning_and_exits_zero(tmp_path, capsys):
    _write(tmp_path, {
        "README.md": "# Interview Guides\n\n- [PHP OOP](README-php.md#classes)\n- [MySQL](README-mysql.md)\n",
        "README-php.md": "# PHP\n\n## Classes\n\n```php\n\n```\n",
        "README-mysql.md": "# MySQL\n\n```sql\nSELECT id, name FROM users WHERE id = 1;\n```\n",
    })
    code, payload = _run_json(capsys, str(tmp_path))
    assert code == 0
    assert payload["errors"] == []
    assert [w["category"] for w in payload["warnings"]] == ["EmptyCodeBlock"]
    assert payload["warnings"][0]["path"] == "README-php.md"
    assert payload["summary"] == {"error_count": 0, "warning_count": 1}


def test_prose_only_file_has_no_findings(tmp_path, capsys):
    _write(tmp_path, {"notes.md": "Traits let PHP classes share methods.\n\nThat is all.\n"})
    assert main([str(tmp_path)]) == 0
    assert capsys.readouterr().out == "0 errors, 0 warnings in 1 file.\n"


def test_unterminated_fence_fails_the_run(tmp_path, capsys):
    _write(tmp_path, {"a.md": "# A\n\n```js\nconsole.log(1)\n"})
    code, payload = _run_json(capsys, str(tmp_path))
    assert code == 1
    assert len(payload["errors"]) == 1
    assert payload["errors"][0]["category"] == "UnbalancedFence"
    assert payload["errors"][0]["line"] == 3


def test_broken_cross_reference(tmp_path, capsys):
    _write(tmp_path, {
        "a.md": "[link](b.md#missing)\n",
        "b.md": "## Section One\n",
    })
    code, payload = _run_json(capsys, str(tmp_path))
    assert code == 1
    assert [e["category"] for e in payload["errors"]] == ["UnresolvedLink"]
    assert "b.md#missing" in payload["errors"][0]["message"]


def test_fail_on_threshold(tmp_path, capsys):
    _write(tmp_path, {"a.md": "```php\n\n```\n"})
    assert main([str(tmp_path), "--fail-on", "warning"]) == 1
    _write(tmp_path, {"b.md": "[x](nowhere.md)\n"})
    assert main([str(tmp_path), "--fail-on", "never"]) == 0
    assert main([str(tmp_path)]) == 1
    capsys.readouterr()


def test_ignore_unknown_tags(tmp_path, capsys):
    _write(tmp_path, {"a.md": "```blade\n{{ $name }}\n```\n"})
    code, payload = _run_json(capsys, str(tmp_path))
    assert [w["category"] for w in payload["warnings"]] == ["UnknownLanguageTag"]
    code, payload = _run_json(capsys, str(tmp_path), "--ignore-unknown-tags")
    assert code == 0
    assert payload["warnings"] == []


def test_exclude_skips_matching_files(tmp_path, capsys):
    _write(tmp_path, {
        "README.md": "[draft](drafts/wip.md)\n",
        "drafts/wip.md": "[x](nowhere.md)\n",
    })
    code, payload = _run_json(capsys, str(tmp_path), "--exclude", "drafts/*")
    assert code == 0
    assert payload["errors"] == []


def test_skip_dirs_are_not_linted(tmp_path, capsys):
    _write(tmp_path, {
        "README.md": "# Home\n",
        "node_modules/pkg/README.md": "[x](nowhere.md)\n",
    })
    code, payload = _run_json(capsys, str(tmp_path))
    assert code == 0
    assert payload["summary"]["error_count"] == 0


def test_json_output_is_identical_across_runs(tmp_path, capsys):
    _write(tmp_path, {
        "a.md": "# A\n[b](b.md#nope)\n```go\nx(\n```\n",
        "b.md": "# B\n```php\n\n```\n[a](a.md#a)\n",
        "sub/c.md": "[up](../a.md)\n[gone](../zzz.md)\n",
    })
    main([str(tmp_path), "--format", "json"])
    first = capsys.readouterr().out
    main([str(tmp_path), "--format", "json"])
    second = capsys.readouterr().out
    assert first == second


def test_missing_root_is_fatal(tmp_path, capsys):
    assert main([str(tmp_path / "nope")]) == 2
    assert capsys.readouterr().out == ""


def test_root_without_markdown_is_fatal(tmp_path, capsys):
    _write(tmp_path, {"notes.txt": "not markdown\n"})
    assert main([str(tmp_path)]) == 2
    assert capsys.readouterr().out == ""


def test_root_that_is_a_file_is_fatal(tmp_path, capsys):
    _write(tmp_path, {"a.md": "# A\n"})
    assert main([str(tmp_path / "a.md")]) == 2
    assert capsys.readouterr().out == ""


def test_undecodable_file_is_fatal(tmp_path, capsys):
    (tmp_path / "bad.md").write_bytes(b"\xff\xfe\xfa broken")
    assert main([str(tmp_path)]) == 2
    assert capsys.readouterr().out == ""


def test_output_writes_the_json_report(tmp_path, capsys):
    _write(tmp_path, {"docs/a.md": "```php\n\n```\n"})
    out = tmp_path / "report.json"
    assert main([str(tmp_path / "docs"), "--output", str(out)]) == 0
    printed = capsys.readouterr().out
    assert printed.endswith("0 errors, 1 warning in 1 file.\n")
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["summary"] == {"error_count": 0, "warning_count": 1}
