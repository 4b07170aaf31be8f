"""
Loader and executor for hostio assembly, a line-oriented stack language.

Each non-blank line that does not start with '#' is one instruction:

    OPCODE [OPERAND]

The operand is a YAML flow value, so `push "hi"`, `push 1`, `push [1, 2]`
and `import lib/a.asm` all parse. Every observable effect goes through the
IoBackend handed to `run_with_backend`; the engine itself never touches the
process.
"""

import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import yaml

from hostio.hostio_env import Env
from hostio.hostio_errors import LoadError

# Operand rule per opcode: 'none', 'optional' or 'required'.
OPCODES: Dict[str, str] = {
    'push': 'required',
    'pop': 'none',
    'dup': 'none',
    'swap': 'none',
    'add': 'none',
    'print': 'optional',
    'printn': 'optional',
    'rand': 'none',
    'scan': 'none',
    'var': 'optional',
    'args': 'none',
    'exists': 'optional',
    'isfile': 'optional',
    'listdir': 'optional',
    'read': 'optional',
    'write': 'optional',
    'encode': 'none',
    'decode': 'none',
    'import': 'optional',
    'fail': 'optional',
}


class Instruction:
    __slots__ = ('op', 'operand', 'has_operand', 'line', 'text')

    def __init__(self, op: str, operand: Any, has_operand: bool, line: int, text: str):
        self.op = op
        self.operand = operand
        self.has_operand = has_operand
        self.line = line
        self.text = text

    def __repr__(self) -> str:
        return f"<Instruction {self.text!r} line={self.line}>"


def format_value(value: Any) -> str:
    """Text used when a value is printed."""
    match value:
        case None:
            return "none"
        case bool():
            return "true" if value else "false"
        case str():
            return value
        case bytes() | bytearray():
            return bytes(value).decode('utf-8', errors='replace')
        case _:
            return str(value)


def _parse_line(raw: str, lineno: int, path: Optional[str]) -> Optional[Instruction]:
    text = raw.strip()
    if not text or text.startswith('#'):
        return None
    parts = text.split(None, 1)
    op = parts[0]
    loc = {'path': path, 'line': lineno, 'text': text}
    rule = OPCODES.get(op)
    if rule is None:
        raise LoadError(f"Unknown instruction {op!r}", loc)
    has_operand = len(parts) > 1
    operand = None
    if has_operand:
        if rule == 'none':
            raise LoadError(f"Instruction {op!r} takes no operand", loc)
        try:
            operand = yaml.safe_load(parts[1])
        except yaml.YAMLError as e:
            problem = getattr(e, 'problem', None) or str(e)
            raise LoadError(f"Invalid operand for {op!r}: {problem}", loc) from e
    elif rule == 'required':
        raise LoadError(f"Instruction {op!r} needs an operand", loc)
    return Instruction(op, operand, has_operand, lineno, text)


class Assembly:
    """A loaded, runnable unit of hostio assembly."""

    def __init__(self, instructions: List[Instruction], path: Optional[str] = None, source: Optional[str] = None):
        self.instructions = list(instructions)
        self.path = path
        self.source = source

    @classmethod
    def from_source(cls, source: str, path: Optional[str] = None) -> 'Assembly':
        instructions = []
        for lineno, raw in enumerate(source.splitlines(), start=1):
            ins = _parse_line(raw, lineno, path)
            if ins is not None:
                instructions.append(ins)
        return cls(instructions, path=path, source=source)

    @classmethod
    def load_file(cls, path: str) -> 'Assembly':
        loc = {'path': path, 'line': None, 'text': None}
        try:
            with open(path, "rb") as f:
                data = f.read()
        except (OSError, ValueError) as e:
            raise LoadError(str(e), loc) from e
        try:
            source = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise LoadError(f"{path} is not valid UTF-8: {e.reason}", loc) from e
        return cls.from_source(source, path=path)

    def run_with_backend(self, backend, stack: Optional[List[Any]] = None) -> Tuple[List[Any], Dict[str, Any]]:
        """Run to completion and return (final stack, metadata).

        Runtime failures raise HostError subclasses. When `stack` is given it is
        used, and mutated, as the starting stack.
        """
        return Evaluator(backend).run(self, stack)

    def __len__(self) -> int:
        return len(self.instructions)

    def __repr__(self) -> str:
        return f"<Assembly path={self.path!r} instructions={len(self.instructions)}>"


class Evaluator:
    """Executes instructions against a stack, one IoBackend call per effect."""

    def __init__(self, backend):
        self.backend = backend
        self.stack: List[Any] = []
        self.current: Optional[Instruction] = None

    def _dbg(self, *parts):
        if os.environ.get("HOSTIO_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def run(self, assembly: Assembly, stack: Optional[List[Any]] = None) -> Tuple[List[Any], Dict[str, Any]]:
        self.stack = stack if stack is not None else []
        steps = 0
        for ins in assembly.instructions:
            self.current = ins
            env = Env(assembly.path, ins.line, ins.text)
            self._dbg("STEP", assembly.path, ins.line, ins.text, "depth", len(self.stack))
            self._step(ins, env)
            steps += 1
        self.current = None
        meta = {'path': assembly.path, 'instructions': len(assembly.instructions), 'steps': steps}
        return self.stack, meta

    # --- stack helpers ---
    def _pop(self, ins: Instruction, env: Env) -> Any:
        if not self.stack:
            raise env.error(f"Stack was empty when evaluating {ins.op}")
        return self.stack.pop()

    def _operand_or_pop(self, ins: Instruction, env: Env) -> Any:
        return ins.operand if ins.has_operand else self._pop(ins, env)

    def _path(self, ins: Instruction, env: Env) -> str:
        path = self._operand_or_pop(ins, env)
        if not isinstance(path, str):
            raise env.error(f"{ins.op} expects a path string, got {type(path).__name__}")
        return path

    def _step(self, ins: Instruction, env: Env) -> None:
        backend = self.backend
        stack = self.stack
        match ins.op:
            case 'push':
                stack.append(ins.operand)
            case 'pop':
                self._pop(ins, env)
            case 'dup':
                value = self._pop(ins, env)
                stack.extend([value, value])
            case 'swap':
                b = self._pop(ins, env)
                a = self._pop(ins, env)
                stack.extend([b, a])
            case 'add':
                b = self._pop(ins, env)
                a = self._pop(ins, env)
                try:
                    stack.append(a + b)
                except TypeError:
                    raise env.error(f"Cannot add {type(a).__name__} and {type(b).__name__}") from None
            case 'print':
                backend.print_str(format_value(self._operand_or_pop(ins, env)) + "\n")
            case 'printn':
                backend.print_str(format_value(self._operand_or_pop(ins, env)))
            case 'rand':
                stack.append(backend.rand())
            case 'scan':
                stack.append(backend.scan_line())
            case 'var':
                name = self._operand_or_pop(ins, env)
                if not isinstance(name, str):
                    raise env.error(f"var expects a variable name string, got {type(name).__name__}")
                stack.append(backend.var(name))
            case 'args':
                stack.append(backend.args())
            case 'exists':
                stack.append(backend.file_exists(self._path(ins, env)))
            case 'isfile':
                stack.append(backend.is_file(self._path(ins, env), env))
            case 'listdir':
                stack.append(backend.list_dir(self._path(ins, env), env))
            case 'read':
                stack.append(backend.read_file(self._path(ins, env), env))
            case 'write':
                contents = self._pop(ins, env)
                path = self._path(ins, env)
                if isinstance(contents, str):
                    contents = contents.encode('utf-8')
                if not isinstance(contents, (bytes, bytearray)):
                    raise env.error(f"write expects bytes or a string, got {type(contents).__name__}")
                backend.write_file(path, bytes(contents), env)
            case 'encode':
                value = self._pop(ins, env)
                if not isinstance(value, str):
                    raise env.error(f"encode expects a string, got {type(value).__name__}")
                stack.append(value.encode('utf-8'))
            case 'decode':
                value = self._pop(ins, env)
                if not isinstance(value, (bytes, bytearray)):
                    raise env.error(f"decode expects bytes, got {type(value).__name__}")
                try:
                    stack.append(bytes(value).decode('utf-8'))
                except UnicodeDecodeError as e:
                    raise env.error(f"Invalid UTF-8: {e.reason}") from None
            case 'import':
                path = self._path(ins, env)
                self._dbg("IMPORT", path)
                stack.extend(backend.import_(path, env))
            case 'fail':
                message = self._operand_or_pop(ins, env) if (ins.has_operand or stack) else "fail"
                raise env.error(format_value(message))
