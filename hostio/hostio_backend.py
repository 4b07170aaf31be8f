"""
The capability set through which interpreted programs reach the host.

IoBackend is the contract. print_str and rand are mandatory; every other
operation has a default so a restricted host only implements what it
supports. The defaults split in two: presence checks (scan_line, var, args,
file_exists) succeed with an empty or negative answer, while import and file
access raise UnsupportedCapability through the caller's Env.

BorrowedBackend lends a backend to a nested run without handing over its
state. StdIo is the real operating-system backend and owns the import cache.
CapturedIo is an in-memory backend for tests and embeddings.
"""

import collections
import copy
import os
import random
import stat
import sys
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from hostio.hostio_env import Env
from hostio.hostio_errors import (
    BorrowReleased, HostError, HostIOFailure, ImportCycleError, LoadError,
    ModuleLoadError, ModuleRunError, UnsupportedCapability,
)

IMPORT_UNSUPPORTED = "Import not supported in this environment"
FILE_IO_UNSUPPORTED = "File IO not supported in this environment"


def _time_seed() -> int:
    return time.time_ns()

# ===================================================================
# 1. Capability Interface
# ===================================================================


class IoBackend(ABC):
    """Base class for every capability set handed to the execution engine."""

    @abstractmethod
    def print_str(self, text: str) -> None: raise NotImplementedError
    @abstractmethod
    def rand(self) -> float: raise NotImplementedError

    def scan_line(self) -> str:
        return ""

    def import_(self, path: str, env: Env) -> List[Any]:
        raise env.error(IMPORT_UNSUPPORTED, UnsupportedCapability)

    def var(self, name: str) -> Optional[str]:
        return None

    def args(self) -> List[str]:
        return []

    def file_exists(self, path: str) -> bool:
        return False

    def list_dir(self, path: str, env: Env) -> List[str]:
        raise env.error(FILE_IO_UNSUPPORTED, UnsupportedCapability)

    def is_file(self, path: str, env: Env) -> bool:
        raise env.error(FILE_IO_UNSUPPORTED, UnsupportedCapability)

    def read_file(self, path: str, env: Env) -> bytes:
        raise env.error(FILE_IO_UNSUPPORTED, UnsupportedCapability)

    def write_file(self, path: str, contents: bytes, env: Env) -> None:
        raise env.error(FILE_IO_UNSUPPORTED, UnsupportedCapability)

# ===================================================================
# 2. Delegating Adapter
# ===================================================================


class BorrowedBackend(IoBackend):
    """Forwards every operation to the backend it was built from.

    Holds nothing but the reference: no buffering, no defaults of its own.
    Results, defaults and errors are the inner backend's.
    """

    def __init__(self, inner: IoBackend):
        self._inner: Optional[IoBackend] = inner

    def _target(self) -> IoBackend:
        inner = self._inner
        if inner is None:
            raise BorrowReleased("borrowed backend used after its borrow ended")
        return inner

    def release(self) -> None:
        self._inner = None

    @property
    def released(self) -> bool:
        return self._inner is None

    def print_str(self, text: str) -> None:
        self._target().print_str(text)

    def rand(self) -> float:
        return self._target().rand()

    def scan_line(self) -> str:
        return self._target().scan_line()

    def import_(self, path: str, env: Env) -> List[Any]:
        return self._target().import_(path, env)

    def var(self, name: str) -> Optional[str]:
        return self._target().var(name)

    def args(self) -> List[str]:
        return self._target().args()

    def file_exists(self, path: str) -> bool:
        return self._target().file_exists(path)

    def list_dir(self, path: str, env: Env) -> List[str]:
        return self._target().list_dir(path, env)

    def is_file(self, path: str, env: Env) -> bool:
        return self._target().is_file(path, env)

    def read_file(self, path: str, env: Env) -> bytes:
        return self._target().read_file(path, env)

    def write_file(self, path: str, contents: bytes, env: Env) -> None:
        self._target().write_file(path, contents, env)

    def __repr__(self) -> str:
        return f"<BorrowedBackend of {self._inner!r}>" if self._inner is not None else "<BorrowedBackend released>"


@contextmanager
def borrow(backend: IoBackend) -> Iterator[BorrowedBackend]:
    """Lend `backend` for the duration of the with-block."""
    lent = BorrowedBackend(backend)
    try:
        yield lent
    finally:
        lent.release()

# ===================================================================
# 3. Standard Backend
# ===================================================================


class StdIo(IoBackend):
    """Capability set backed by the real process: stdio, environment, filesystem.

    One instance per top-level run. It owns the RNG and the import cache, and
    lends itself (through a borrow) to every module it imports.
    """

    def __init__(self, args: Optional[Iterable[str]] = None, seed: Optional[int] = None,
                 loader: Optional[Callable[[str], Any]] = None):
        self._args = list(args) if args is not None else None
        self._rng = random.Random(_time_seed() if seed is None else seed)
        self._loader = loader
        self._imports: Dict[str, List[Any]] = {}
        # Paths whose first import is still running, outermost first
        self._importing: List[str] = []

    def print_str(self, text: str) -> None:
        out = sys.stdout
        out.write(text)
        out.flush()

    def rand(self) -> float:
        return self._rng.random()

    def scan_line(self) -> str:
        try:
            line = sys.stdin.readline()
        except (OSError, ValueError):
            return ""
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        return line

    def _load(self, path: str):
        if self._loader is not None:
            return self._loader(path)
        # Imported lazily; hosts passing their own loader never need the engine
        from hostio.hostio_assembly import Assembly
        return Assembly.load_file(path)

    def import_(self, path: str, env: Env) -> List[Any]:
        if path not in self._imports:
            if path in self._importing:
                chain = self._importing[self._importing.index(path):] + [path]
                raise ImportCycleError(chain, env.location)
            try:
                assembly = self._load(path)
            except LoadError as e:
                raise ModuleLoadError(path, e, env.location) from e
            self._importing.append(path)
            try:
                with borrow(self) as lent:
                    stack, _meta = assembly.run_with_backend(lent)
            except HostError as e:
                raise ModuleRunError(path, e, env.location) from e
            finally:
                self._importing.pop()
            self._imports[path] = copy.deepcopy(stack)
        return copy.deepcopy(self._imports[path])

    def cached_imports(self) -> tuple:
        return tuple(sorted(self._imports))

    def forget(self, path: str) -> bool:
        """Drop a cached module so the next import runs it again."""
        return self._imports.pop(path, None) is not None

    def var(self, name: str) -> Optional[str]:
        return os.environ.get(name)

    def args(self) -> List[str]:
        return list(self._args) if self._args is not None else list(sys.argv)

    def file_exists(self, path: str) -> bool:
        try:
            os.stat(path)
        except (OSError, ValueError):
            return False
        return True

    def is_file(self, path: str, env: Env) -> bool:
        try:
            return stat.S_ISREG(os.stat(path).st_mode)
        except (OSError, ValueError) as e:
            raise env.error(str(e), HostIOFailure) from e

    def list_dir(self, path: str, env: Env) -> List[str]:
        try:
            with os.scandir(path) as entries:
                return [entry.path for entry in entries]
        except (OSError, ValueError) as e:
            raise env.error(str(e), HostIOFailure) from e

    def read_file(self, path: str, env: Env) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except (OSError, ValueError) as e:
            raise env.error(str(e), HostIOFailure) from e

    def write_file(self, path: str, contents: bytes, env: Env) -> None:
        try:
            with open(path, "wb") as f:
                f.write(bytes(contents))
        except (OSError, ValueError) as e:
            raise env.error(str(e), HostIOFailure) from e

# ===================================================================
# 4. Headless Backend
# ===================================================================


class CapturedIo(IoBackend):
    """In-memory capability set: output is collected, input is scripted.

    Import and file access are left at their defaults, so programs run under
    it get UnsupportedCapability errors for those.
    """

    def __init__(self, inputs: Iterable[str] = (), env: Optional[Dict[str, str]] = None,
                 args: Iterable[str] = (), seed: Optional[int] = None):
        self.output: List[str] = []
        self._inputs = collections.deque(inputs)
        self._env = dict(env or {})
        self._args = list(args)
        self._rng = random.Random(_time_seed() if seed is None else seed)

    @property
    def text(self) -> str:
        return "".join(self.output)

    def print_str(self, text: str) -> None:
        self.output.append(text)

    def rand(self) -> float:
        return self._rng.random()

    def scan_line(self) -> str:
        return self._inputs.popleft() if self._inputs else ""

    def var(self, name: str) -> Optional[str]:
        return self._env.get(name)

    def args(self) -> List[str]:
        return list(self._args)
