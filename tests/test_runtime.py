import json

from hostio.hostio_backend import CapturedIo, StdIo
from hostio.hostio_runtime import ExecutionResult, ScriptRunner


def test_run_source_success_returns_stack():
    runner = ScriptRunner(CapturedIo())
    res = runner.run_source("push 1\npush 2\nadd")
    assert res.status == 'success'
    assert res.value == [3]
    assert res.meta['steps'] == 3
    assert res.format_error() == ""


def test_runtime_error_includes_source_context():
    runner = ScriptRunner(CapturedIo())
    res = runner.run_source('push 1\nfail "bad thing"\npush 2')
    assert res.status == 'error'
    assert res.error_token == {'path': "<script>", 'line': 2, 'text': 'fail "bad thing"'}
    assert res.error_message.startswith("HostError: bad thing")
    assert '> 2 | fail "bad thing"' in res.error_message
    assert "  1 | push 1" in res.error_message
    assert res.format_error().startswith("Error in <script> on line 2: HostError: bad thing")


def test_load_error_is_reported_not_raised():
    res = ScriptRunner(CapturedIo()).run_source("push 1\nnope")
    assert res.status == 'error'
    assert res.error_message.startswith("LoadError: Unknown instruction 'nope'")
    assert "> 2 | nope" in res.error_message


def test_run_file_missing(tmp_path):
    res = ScriptRunner(StdIo()).run_file(str(tmp_path / "missing.lang"))
    assert res.status == 'error'
    assert res.error_message.startswith("LoadError:")


def test_run_file_executes_with_path_attribution(tmp_path, capsys):
    main = tmp_path / "main.lang"
    main.write_text('print "from file"\npush 7\nfail\n', encoding="utf-8")
    res = ScriptRunner(StdIo()).run_file(str(main))
    assert capsys.readouterr().out == "from file\n"
    assert res.status == 'error'
    assert res.error_token['path'] == str(main)
    assert res.error_token['line'] == 3
    assert "> 3 | fail" in res.error_message


def test_import_failure_is_attributed_to_importing_line(tmp_path):
    lib = tmp_path / "lib.lang"
    lib.write_text("push 1\nfail \"inside lib\"\n", encoding="utf-8")
    src = f"push 0\nimport {json.dumps(str(lib))}\n"
    res = ScriptRunner(StdIo()).run_source(src, path="main.lang")
    assert res.status == 'error'
    assert res.error_message.startswith("ImportError: Error while running import")
    assert "inside lib" in res.error_message
    assert res.error_token['path'] == "main.lang"
    assert res.error_token['line'] == 2
    assert "> 2 | import" in res.error_message


def test_keep_stack_carries_values_between_runs():
    runner = ScriptRunner(CapturedIo())
    assert runner.run_source("push 1", keep_stack=True).status == 'success'
    assert runner.run_source("push 2", keep_stack=True).status == 'success'
    failed = runner.run_source("add\nfail", keep_stack=True)
    assert failed.status == 'error'
    # A failed line leaves the carried stack as it was
    assert runner.stack == [1, 2]
    assert runner.run_source("add", keep_stack=True).value == [3]
    assert runner.stack == [3]


def test_runner_backend_persists_import_cache(tmp_path, capsys):
    lib = tmp_path / "lib.lang"
    lib.write_text('print "loaded"\npush 1\n', encoding="utf-8")
    runner = ScriptRunner(StdIo())
    for _ in range(3):
        assert runner.run_source(f"import {json.dumps(str(lib))}").value == [1]
    assert capsys.readouterr().out == "loaded\n"


def test_format_error_without_location():
    res = ExecutionResult(status='error', error_message="LoadError: gone")
    assert res.format_error() == "LoadError: gone"
