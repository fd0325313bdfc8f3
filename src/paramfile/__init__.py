"""
paramfile - Sectioned key-value parameter files for Python applications
"""

from .parameters import Parameters, _parse_args
from .exceptions import (
    ParametersError,
    FileOpenError,
    MalformedLineError,
    KeyNotFoundError,
    TypeConversionError,
)

__version__ = "0.1.0"
__all__ = [
    "Parameters",
    "ParametersError",
    "FileOpenError",
    "MalformedLineError",
    "KeyNotFoundError",
    "TypeConversionError",
]
