"""Exceptions raised by paramfile."""

from typing import Optional


class ParametersError(Exception):
    """Base exception for paramfile errors."""

    pass


class FileOpenError(ParametersError):
    """Raised when a parameters file cannot be opened for reading or writing."""

    def __init__(self, path: str, mode: str = 'reading'):
        self.path = path
        self.mode = mode
        super().__init__(f"Cannot open file for {mode}: {path}")


class MalformedLineError(ParametersError):
    """Raised when an assignment line has no '=' or an empty key or value."""

    def __init__(self, line: str, section: str, reason: str = 'malformed expression line',
                 path: Optional[str] = None, lineno: Optional[int] = None,
                 expression: Optional[str] = None):
        self.line = line
        self.section = section
        self.reason = reason
        self.path = path
        self.lineno = lineno
        location = f"{path}:{lineno}: " if path is not None and lineno is not None else ''
        shown = line if expression is None else expression
        super().__init__(f"{location}Under section '{section}', {reason}: '{shown}'")


class KeyNotFoundError(ParametersError, KeyError):
    """Raised when a composite key is not present in the store."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Could not find key: '{key}'")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class TypeConversionError(ParametersError, ValueError):
    """Raised when a stored value does not parse as the requested type."""

    def __init__(self, key: str, raw: str, type_: type):
        self.key = key
        self.raw = raw
        self.type = type_
        super().__init__(
            f"Cannot convert value {raw!r} of key '{key}' to {type_.__name__}"
        )
