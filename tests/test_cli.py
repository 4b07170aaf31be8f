import io
import sys

from hostio.hostio_cli import main


def test_runs_file_and_prints_stack(tmp_path, capsys):
    script = tmp_path / "prog.lang"
    script.write_text('print "hello"\npush 1\npush "two"\nargs\n', encoding="utf-8")
    status = main([str(script), "a", "b"])
    out = capsys.readouterr().out.splitlines()
    assert status == 0
    assert out == ["hello", "1", "two", f"{[str(script), 'a', 'b']}"]


def test_error_exits_nonzero(tmp_path, capsys):
    script = tmp_path / "bad.lang"
    script.write_text('fail "nope"\n', encoding="utf-8")
    status = main([str(script)])
    captured = capsys.readouterr()
    assert status == 1
    assert "nope" in captured.err
    assert captured.err.startswith(f"Error in {script} on line 1:")


def test_missing_file_exits_nonzero(tmp_path, capsys):
    assert main([str(tmp_path / "missing.lang")]) == 1
    assert "LoadError" in capsys.readouterr().err


def test_repl_keeps_stack_between_lines(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("push 1\n\npush 2\nfrob\nadd\nexit\n"))
    assert main([]) == 0
    captured = capsys.readouterr()
    assert captured.out.startswith("hostio REPL v0.1")
    assert "3\n" in captured.out
    assert "Unknown instruction 'frob'" in captured.err


def test_repl_exits_on_eof(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    assert main([]) == 0
    assert "Exiting." in capsys.readouterr().out


def test_unknown_flag_prints_usage(capsys):
    assert main(["-x"]) == 2
    assert "usage: hostio" in capsys.readouterr().err


def test_help_flag_prints_usage(capsys):
    assert main(["--help"]) == 0
    assert "usage: hostio" in capsys.readouterr().out
