"""
Error types raised across the hostio capability boundary.

Every interpreter-level failure derives from HostError, so a host can catch a
single class and report it. Location is the dict built by Env (path, line,
text) or None when the failure has no source attribution.
"""

from typing import Any, Dict, Optional


class HostError(Exception):
    """A recoverable runtime error attributed to a point in the running program."""
    def __init__(self, message: str, location: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class UnsupportedCapability(HostError):
    """An optional capability was called on a backend that does not provide it."""
    pass


class HostIOFailure(HostError):
    """The host operating system rejected a filesystem call."""
    pass


class LoadError(HostError):
    """An assembly could not be read or compiled."""
    pass


class ImportFailure(HostError):
    """Base class for failures raised while importing a module."""
    def __init__(self, path: str, message: str, location: Optional[Dict[str, Any]] = None):
        super().__init__(message, location)
        self.path = path


class ModuleLoadError(ImportFailure):
    def __init__(self, path: str, cause: HostError, location: Optional[Dict[str, Any]] = None):
        super().__init__(path, f"Failed to load import {path!r}: {cause.message}", location)
        self.cause = cause


class ModuleRunError(ImportFailure):
    def __init__(self, path: str, cause: HostError, location: Optional[Dict[str, Any]] = None):
        super().__init__(path, f"Error while running import {path!r}: {cause.message}", location)
        self.cause = cause


class ImportCycleError(ImportFailure):
    def __init__(self, chain, location: Optional[Dict[str, Any]] = None):
        chain = list(chain)
        super().__init__(chain[-1], "Cyclic import: " + " -> ".join(chain), location)
        self.chain = chain


class BorrowReleased(Exception):
    """A borrowed backend was used after its borrow ended. This is a host bug,
    not an interpreter error, so it does not derive from HostError."""
    pass
