from typing import Any, Dict, Optional, Type

from hostio.hostio_errors import HostError


class Env:
    """Handle passed to capability calls so errors can be attributed to the
    instruction that caused them. Backends must not keep a reference."""

    def __init__(self, path: Optional[str] = None, line: Optional[int] = None, text: Optional[str] = None):
        self.path = path
        self.line = line
        self.text = text

    @property
    def location(self) -> Optional[Dict[str, Any]]:
        if self.path is None and self.line is None:
            return None
        return {'path': self.path, 'line': self.line, 'text': self.text}

    def error(self, message: str, kind: Type[HostError] = HostError) -> HostError:
        return kind(str(message), self.location)

    def __repr__(self) -> str:
        return f"<Env path={self.path!r} line={self.line!r}>"
