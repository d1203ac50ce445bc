import json

from ompextractor import cli
from ompextractor.frontend import FrontendError
from ompextractor.nodes import SourceBuffer, SourceSpan
from ompextractor.report import entry_key, render_report, snippet_lines, source_snippet, write_report


def test_entry_key():
    assert entry_key("loop", 7) == "loop - object id : 7"
    assert entry_key("atomic capture", 2) == "atomic capture - object id : 2"


def test_snippet_extends_to_semicolon():
    buf = SourceBuffer("  x = y + 1;\n  z = 2;\n")
    span = SourceSpan("t.c", 1, 3, 1, 12)
    assert source_snippet(buf, span) == "x = y + 1;"
    assert source_snippet(buf, span, extend=False) == "x = y + 1"


def test_snippet_of_block_stops_at_closing_brace():
    buf = SourceBuffer("{\n  a;\n}\nb;")
    span = SourceSpan("t.c", 1, 1, 3, 2)
    assert snippet_lines(source_snippet(buf, span)) == ["{", "  a;", "}"]


def test_snippet_of_invalid_span_is_empty():
    assert source_snippet(SourceBuffer("x;"), SourceSpan("", 0, 0, 0, 0)) == ""
    assert snippet_lines("") == []


def test_render_keeps_insertion_order_and_unicode():
    text = render_report({"b": {"file": "é.c"}, "a": {"file": "x.c"}})
    assert text.index('"b"') < text.index('"a"')
    assert "é.c" in text
    assert json.loads(text)["a"]["file"] == "x.c"


def test_write_failure_is_reported_not_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    assert write_report(str(blocker / "t.c"), {}) is False


def test_cli_reports_frontend_failure(monkeypatch, capsys):
    def boom(path, options):
        raise FrontendError("no libclang")

    monkeypatch.setattr(cli, "parse_codebase", boom)
    assert cli.main(["--path", "src", "--no-snippet"]) == 1
    assert "[ERROR] no libclang" in capsys.readouterr().out


def test_cli_builds_options(monkeypatch):
    seen = {}

    def fake(path, options):
        seen["path"] = path
        seen["options"] = options
        return 0

    monkeypatch.setattr(cli, "parse_codebase", fake)
    assert cli.main(["--path", "src", "--std", "c11", "--no-snippet", "--", "-fopenmp", "-DN=4"]) == 0
    opts = seen["options"]
    assert seen["path"] == "src"
    assert opts.code_snippets is False
    assert opts.compile_args == ["-std=c11", "-fopenmp", "-DN=4"]
    assert opts.parse_args() == ["-std=c11", "-DN=4"]
