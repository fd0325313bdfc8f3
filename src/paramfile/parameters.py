"""
Parameters File Module

This module provides a small store for sectioned key-value parameter files
with the following features:
- INI-like text format with `[section]` headers and `key = value` lines
- '#' comments anywhere on a line
- Flat store keyed by 'section/key' composite keys, always sorted
- Typed get/set for str, int, float and bool values
- Merging of several files (later files override earlier ones)
- Command line arguments support ('--section/key=value')
- Environment variables support
    (use '__' instead of '/' in env variables to separate section and key)
- Section projection into a dict or a standalone store
- Saving back to the sectioned format, YAML/JSON export
- Rich formatting output

File format:
    ```
    [time]
    dt = 0.1      # timestep
    steps = 10

    [output]
    path = /tmp
    ```

Example:
    ```python
    from paramfile import Parameters

    params = Parameters('input.ini')
    dt = params.get('time/dt', float)
    params.set('time/dt', 2.4)
    params.save('output.ini')

    # Several files and runtime overrides
    params = Parameters(['base.ini', 'override.ini'], args=['--time/steps=20'])
    ```
"""

import json
import logging
import os
import re
import sys
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, TextIO, Tuple, Union

import yaml

from .exceptions import (
    FileOpenError,
    KeyNotFoundError,
    MalformedLineError,
    TypeConversionError,
)

KEY_COLOR = 'wheat1'
SECTION_COLOR = 'light_sky_blue3'

COMMENT_MARKER = '#'
SEPARATOR = '/'

log = logging.getLogger(__name__)


def _trim(text: str) -> str:
    # Only ASCII spaces, tabs are part of the value
    return text.strip(' ')


def _normalize_line(line: str) -> str:
    """
    Strip a comment and surrounding spaces from one raw line

    Args:
        line: Raw line without its line terminator

    Returns:
        Cleaned line, empty if the line carries nothing
    """
    found = line.find(COMMENT_MARKER)
    if found != -1:
        line = line[:found]
    return _trim(line)


def _split_key(full_key: str) -> Tuple[str, str]:
    """Split a composite key into (section, key) at the first separator"""
    section, _, key = full_key.partition(SEPARATOR)
    return section, key


def _full_key(key: str) -> str:
    """Composite form of a key, a bare key belongs to the empty section"""
    return key if SEPARATOR in key else SEPARATOR + key


def _parse_lines(lines: Iterable[str], path: Optional[str] = None) -> Dict[str, str]:
    """
    Build composite key entries from raw lines

    Args:
        lines: Raw lines in file order
        path: Source file, used only for error messages

    Returns:
        Dictionary of 'section/key' -> value, later lines overriding earlier ones

    Raises:
        MalformedLineError: If an assignment has no '=' or an empty key or value
    """
    entries = {}
    section = ''
    for lineno, raw in enumerate(lines, start=1):
        line = _normalize_line(raw.rstrip('\r\n'))
        if not line:
            continue

        if line[0] == '[' and line[-1] == ']':
            section = _trim(line[1:-1])
            continue

        if '=' not in line:
            raise MalformedLineError(line, section, 'malformed expression line',
                                     path=path, lineno=lineno)
        key, value = line.split('=', 1)
        key, value = _trim(key), _trim(value)
        if not key or not value:
            raise MalformedLineError(line, section, 'missing key or value',
                                     path=path, lineno=lineno, expression=f"{key}={value}")
        entries[section + SEPARATOR + key] = value
    return entries


def _format_entries(entries: Iterable[Tuple[str, str]]) -> Iterator[str]:
    """
    Produce the sectioned text lines for sorted composite key entries

    A blank line and a header are emitted each time the section changes.
    """
    current_section = None
    for full_key, value in entries:
        section, key = _split_key(full_key)
        if section != current_section:
            yield ''
            yield f'[{section}]'
            current_section = section
        yield f'{key} = {value}'


INT_PATTERN = re.compile(r'[+-]?[0-9]+')
FLOAT_PATTERN = re.compile(
    r'[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|nan)',
    re.IGNORECASE,
)

TRUE_STRINGS = ('true', 'yes', 'y', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'n', 'off', '0')


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _parse_int(text: str) -> int:
    if not INT_PATTERN.fullmatch(text):
        raise ValueError(f"not a decimal integer: {text!r}")
    return int(text)


def _parse_float(text: str) -> float:
    if not FLOAT_PATTERN.fullmatch(text):
        raise ValueError(f"not a floating point literal: {text!r}")
    return float(text)


def _format_float(value: float) -> str:
    return repr(float(value))


def _format_bool(value: bool) -> str:
    return 'true' if value else 'false'


# type -> (parse from text, format to text)
_CONVERTERS: Dict[type, Tuple[Callable[[str], Any], Callable[[Any], str]]] = {
    str: (str, str),
    int: (_parse_int, str),
    float: (_parse_float, _format_float),
    bool: (_parse_bool, _format_bool),
}


def _converter_for(type_: type) -> Tuple[Callable[[str], Any], Callable[[Any], str]]:
    try:
        return _CONVERTERS[type_]
    except KeyError:
        supported = ', '.join(t.__name__ for t in _CONVERTERS)
        raise TypeError(
            f"Unsupported parameter type {getattr(type_, '__name__', type_)!r}, "
            f"expected one of: {supported}"
        ) from None


def _format_value(value: Any) -> str:
    """
    Convert a scalar value to its canonical text form

    Args:
        value: str, int, float or bool value

    Returns:
        Text stored in the parameters file
    """
    # bool before int, bool is an int subclass
    for type_ in (bool, str, int, float):
        if isinstance(value, type_):
            return _converter_for(type_)[1](value)
    raise TypeError(f"Cannot store value of type {type(value).__name__}: {value!r}")


def _parse_args(args: List[str]) -> Dict[str, str]:
    """
    Parse command line arguments into composite key overrides

    Args:
        args: List of command line arguments, e.g. '--time/dt=0.5' or '--verbose'

    Returns:
        Dictionary of 'section/key' -> value
    """
    result = {}
    for arg in args:
        if arg.startswith('--'):
            if '=' in arg:
                key, value = arg[2:].split('=', 1)
                result[key] = value
            else:
                result[arg[2:]] = _format_bool(True)
        elif arg.startswith('-') and len(arg) > 1:
            result[arg[1:]] = _format_bool(True)
    return result


class Parameters:
    """
    Sectioned key-value parameter store.

    Values are kept as strings under 'section/key' composite keys and converted
    on access. Keys that appear before any `[section]` header belong to the
    empty section and are stored as '/key'. Accessors take a key without
    a '/' as a key of the empty section, so `get('k')` reads '/k'.

    Features:
    - Loading one or several files, later files and loads override earlier ones
    - Environment variables and command line arguments overrides
    - Typed access with explicit conversion errors
    - Sorted iteration and sectioned saving
    - Section projection
    - Rich formatting for parameters display

    Args:
        file (Union[str, List[str]]): Path(s) to parameters file(s). Later files override earlier ones.
        args (List[str], optional): Command line arguments to parse and apply.
        env_prefix (str, optional): Apply environment variables starting with this prefix.

    Raises:
        FileOpenError: If a file cannot be opened
        MalformedLineError: If a file contains a malformed assignment

    Example:
        ```python
        params = Parameters('input.ini', args=['--time/dt=0.5'])
        dt = params.get('time/dt', float)
        for key, value in params.items():
            print(key, value)
        ```

    Note:
        Instances are not thread safe. Share one between threads only
        with external synchronization.
    """

    def __init__(self, file: Union[str, List[str]] = '',
                 args: Optional[List[str]] = None,
                 env_prefix: Optional[str] = None):
        self._parameters: Dict[str, str] = {}

        self.files = [file] if isinstance(file, str) and file else \
                    list(file) if file else []
        for f in self.files:
            self.load(f)

        if env_prefix:
            self.load_env(env_prefix)

        if args:
            self.load_args(args)

    def load(self, filename: str) -> None:
        """
        Merge the parameters of a file into the store.

        The store is left untouched if the file cannot be read or parsed.

        Args:
            filename: Path to the parameters file

        Raises:
            FileOpenError: If the file cannot be opened for reading
            MalformedLineError: If an assignment line is malformed
        """
        try:
            f = open(filename, 'r')
        except OSError as e:
            raise FileOpenError(filename, 'reading') from e
        with f:
            new_data = _parse_lines(f, path=filename)
        self._parameters.update(new_data)
        if filename not in self.files:
            self.files.append(filename)
        log.debug(f"Loaded {len(new_data)} parameters from {filename}")

    def load_args(self, args: Union[str, List[str]]) -> None:
        """Apply '--section/key=value' command line overrides"""
        if isinstance(args, str):
            args = [args,]
        overrides = {_full_key(k): v for k, v in _parse_args(args).items()}
        self._parameters.update(overrides)
        log.debug(f"Applied {len(overrides)} overrides from CLI args")

    def load_env(self, prefix: str) -> None:
        """
        Apply overrides from environment variables.

        'APP_TIME__DT=0.2' with prefix 'APP_' sets 'time/dt' to '0.2'.
        """
        overrides = {}
        for key, value in os.environ.items():
            if key.startswith(prefix) and len(key) > len(prefix):
                full_key = key[len(prefix):].lower().replace('__', SEPARATOR)
                overrides[_full_key(full_key)] = value
        self._parameters.update(overrides)
        log.debug(f"Applied {len(overrides)} overrides from environment ({prefix}*)")

    def save(self, filename: str) -> None:
        """
        Save the parameters to a file, grouped by section.

        Raises:
            FileOpenError: If the file cannot be opened for writing
        """
        try:
            f = open(filename, 'w')
        except OSError as e:
            raise FileOpenError(filename, 'writing') from e
        with f:
            for line in _format_entries(self.items()):
                f.write(line + '\n')
        log.info(f"Parameters successfully saved to {filename}")

    def export(self, filename: str, format: str = 'yaml') -> None:
        """
        Export the parameters as a nested {section: {key: value}} mapping.

        Args:
            filename: Destination path
            format: 'yaml' or 'json'

        Raises:
            ValueError: If the format is unknown
            FileOpenError: If the file cannot be opened for writing
        """
        if format not in ('yaml', 'json'):
            raise ValueError(f"Unknown export format: {format}")
        nested = self.to_nested_dict()
        try:
            f = open(filename, 'w')
        except OSError as e:
            raise FileOpenError(filename, 'writing') from e
        with f:
            if format == 'yaml':
                yaml.safe_dump(nested, f, default_flow_style=False, allow_unicode=True)
            else:
                json.dump(nested, f, indent=4)
        log.info(f"Parameters successfully exported to {filename}")

    def get(self, key: str, type_: type = str) -> Any:
        """
        Return the value of a composite key converted to `type_`.

        Args:
            key: Composite key, e.g. 'time/dt'
            type_: One of str, int, float, bool

        Raises:
            KeyNotFoundError: If the key is absent
            TypeConversionError: If the stored text does not parse as `type_`
            TypeError: If `type_` is not supported
        """
        parse, _ = _converter_for(type_)
        try:
            raw = self._parameters[_full_key(key)]
        except KeyError:
            raise KeyNotFoundError(key) from None
        try:
            return parse(raw)
        except ValueError as e:
            raise TypeConversionError(key, raw, type_) from e

    def set(self, key: str, value: Any) -> None:
        """Store the canonical text form of a scalar value under a composite key"""
        self._parameters[_full_key(key)] = _format_value(value)

    def remove(self, key: str) -> None:
        """Remove a composite key from the store"""
        try:
            del self._parameters[_full_key(key)]
        except KeyError:
            raise KeyNotFoundError(key) from None

    def get_section(self, section_name: str) -> Dict[str, str]:
        """
        Return a detached mapping of bare key -> value for one section.

        Returns an empty dict if the section has no entries.
        """
        section_map = {}
        for full_key, value in self.items():
            section, key = _split_key(full_key)
            if section == section_name:
                section_map[key] = value
        return section_map

    def get_section_store(self, section_name: str) -> 'Parameters':
        """
        Return the entries of one section as a new store.

        The entries land in the empty section of the new store, so they are
        reached by bare key and saved under a `[]` header.
        """
        store = Parameters()
        for key, value in self.get_section(section_name).items():
            store._parameters[_full_key(key)] = value
        return store

    def sections(self) -> List[str]:
        """Return the distinct section names in sorted order"""
        names = []
        for full_key in self:
            section, _ = _split_key(full_key)
            if not names or names[-1] != section:
                names.append(section)
        return names

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield (composite key, value) pairs in sorted key order"""
        for key in sorted(self._parameters):
            yield key, self._parameters[key]

    def to_dict(self) -> Dict[str, str]:
        """Return a flat copy of the store"""
        return dict(self.items())

    def to_nested_dict(self) -> Dict[str, Dict[str, str]]:
        """Return the store as {section: {key: value}}"""
        nested: Dict[str, Dict[str, str]] = {}
        for full_key, value in self.items():
            section, key = _split_key(full_key)
            nested.setdefault(section, {})[key] = value
        return nested

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._parameters))

    def __len__(self) -> int:
        return len(self._parameters)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _full_key(key) in self._parameters

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parameters):
            return NotImplemented
        return self._parameters == other._parameters

    def __repr__(self) -> str:
        return f'<Parameters sections={len(self.sections())} entries={len(self)}>'

    def dump(self, stream: Optional[TextIO] = None) -> None:
        """Write every 'key: value' pair to a text stream (stdout by default)"""
        if stream is None:
            stream = sys.stdout
        stream.write("*** Parameters ***\n")
        for key, value in self.items():
            stream.write(f"{key}: {value}\n")
        stream.write("\n")

    def format_parameters(self) -> str:
        """
        Returns a nicely formatted tree of all sections and their values.

        Returns:
            str: Formatted representation of the parameters
        """
        from rich.console import Console
        from rich.markup import escape
        from rich.tree import Tree

        console = Console(record=True)
        tree = Tree(f"📄 [bold {SECTION_COLOR}]Parameters[/bold {SECTION_COLOR}] ┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄")

        for section, pairs in self.to_nested_dict().items():
            branch = tree.add(f"[bold][{SECTION_COLOR}]\\[{escape(section)}][/{SECTION_COLOR}][/bold]")
            for key, value in pairs.items():
                branch.add(f"[{KEY_COLOR}]{escape(key)}[/{KEY_COLOR}] = {escape(value)}")
        tree.add(f"[dim]Parameters files:[/dim] {self.files}")

        console.print(tree)
        return console.export_text()

    def print_config(self) -> None:
        """Prints the parameters to the console in a nice format."""
        self.format_parameters()

    def get_table_view(self) -> str:
        """
        Returns the parameters as a table.

        Returns:
            str: Tabular representation of the parameters
        """
        from rich.console import Console
        from rich.table import Table

        console = Console(record=True)
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Section", style="dim")
        table.add_column("Key", style="yellow")
        table.add_column("Value", style="green")

        for full_key, value in self.items():
            section, key = _split_key(full_key)
            table.add_row(section, key, value)

        console.print(table)
        return console.export_text()
