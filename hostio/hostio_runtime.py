import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from hostio.hostio_assembly import Assembly
from hostio.hostio_backend import IoBackend, StdIo
from hostio.hostio_errors import HostError, ImportFailure, LoadError

Token = Dict[str, Any]


@dataclass
class ExecutionResult:
    """The structured result of running an assembly."""
    status: Literal['success', 'error']
    value: List[Any] = field(default_factory=list)
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def format_error(self) -> str:
        """Formats an error message with file and line if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            where = self.error_token.get('path') or "<script>"
            prefix = f"Error in {where} on line {self.error_token['line']}: "
            if not msg.startswith("Error in "):
                return prefix + msg
        return msg


class ScriptRunner:
    """Loads and runs assemblies against one backend, reporting failures as results.

    The backend (and so its import cache) lives as long as the runner, which
    lets a REPL keep imported modules between lines.
    """

    def __init__(self, backend: Optional[IoBackend] = None):
        self.backend = backend if backend is not None else StdIo()
        # Stack carried between run_source calls when keep_stack is used
        self.stack: List[Any] = []

    def _dbg(self, *parts):
        if os.environ.get("HOSTIO_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _source_context(self, source: str, line: int, radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            out.append(f"{prefix} {str(i).rjust(width)} | {lines[i - 1]}")
        return "\n".join(out)

    def _format_runtime_error(self, e: HostError, source: Optional[str]) -> tuple[str, Optional[Token]]:
        match e:
            case LoadError():
                msg = f"LoadError: {e.message}"
            case ImportFailure():
                msg = f"ImportError: {e.message}"
            case _:
                msg = f"{type(e).__name__}: {e.message}"
        token = dict(e.location) if e.location else None
        line = (token or {}).get('line')
        if source and line is not None:
            context = self._source_context(source, line)
            if context:
                msg = f"{msg}\n{context}"
        return msg, token

    def run_file(self, path: str) -> ExecutionResult:
        try:
            assembly = Assembly.load_file(path)
        except LoadError as e:
            msg, token = self._format_runtime_error(e, None)
            return ExecutionResult(status='error', error_message=msg, error_token=token)
        return self._run(assembly, keep_stack=False)

    def run_source(self, source: str, path: str = "<script>", keep_stack: bool = False) -> ExecutionResult:
        try:
            assembly = Assembly.from_source(source, path=path)
        except LoadError as e:
            msg, token = self._format_runtime_error(e, source)
            return ExecutionResult(status='error', error_message=msg, error_token=token)
        return self._run(assembly, keep_stack=keep_stack)

    def _run(self, assembly: Assembly, keep_stack: bool) -> ExecutionResult:
        self._dbg("RUN", assembly.path, "instructions", len(assembly))
        # Work on a copy so a failing line leaves the carried stack untouched
        start = list(self.stack) if keep_stack else []
        try:
            stack, meta = assembly.run_with_backend(self.backend, start)
        except HostError as e:
            # Only quote source lines that belong to the script being run
            source = assembly.source
            loc_path = (e.location or {}).get('path')
            if loc_path is not None and loc_path != assembly.path:
                source = None
            msg, token = self._format_runtime_error(e, source)
            return ExecutionResult(status='error', error_message=msg, error_token=token)
        if keep_stack:
            self.stack = stack
        return ExecutionResult(status='success', value=list(stack), meta=meta)
