from hostio.hostio_errors import (
    BorrowReleased, HostError, HostIOFailure, ImportCycleError, ImportFailure,
    LoadError, ModuleLoadError, ModuleRunError, UnsupportedCapability,
)
from hostio.hostio_env import Env
from hostio.hostio_backend import BorrowedBackend, CapturedIo, IoBackend, StdIo, borrow
from hostio.hostio_assembly import Assembly
from hostio.hostio_runtime import ExecutionResult, ScriptRunner
