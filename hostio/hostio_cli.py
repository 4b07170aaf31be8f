import sys
from typing import List, Optional

from hostio.hostio_assembly import format_value
from hostio.hostio_backend import StdIo
from hostio.hostio_runtime import ScriptRunner

USAGE = "usage: hostio [FILE [ARGS...]]"


def _print_stack(stack):
    for value in stack:
        print(format_value(value))


def run_script_file(file_path: str, args: List[str]) -> int:
    """Run an assembly file non-interactively and return the exit status."""
    runner = ScriptRunner(StdIo(args=[file_path, *args]))
    result = runner.run_file(file_path)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1
    _print_stack(result.value)
    return 0


def repl() -> int:
    print("hostio REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")
    runner = ScriptRunner(StdIo(args=[]))
    while True:
        sys.stdout.write(">> ")
        sys.stdout.flush()
        raw = sys.stdin.readline()
        if raw == "":
            print("\nExiting.")
            return 0
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            return 0
        result = runner.run_source(line, path="<repl>", keep_stack=True)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        _print_stack(runner.stack)


def main(argv: Optional[List[str]] = None) -> int:
    """Run a file when one is given, otherwise start the interactive REPL."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and not argv[0].startswith("-"):
        return run_script_file(argv[0], argv[1:])
    if argv and argv[0] in ("-h", "--help"):
        print(USAGE)
        return 0
    if argv:
        print(USAGE, file=sys.stderr)
        return 2
    try:
        return repl()
    except KeyboardInterrupt:
        print("\nExiting.")
        return 0
