"""Load a parameters file, apply overrides and print it.

Usage:
    python -m paramfile input.ini [--section/key=value ...] [--save=output.ini]
"""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .exceptions import ParametersError
from .parameters import Parameters

log = logging.getLogger('paramfile')


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    console = Console(stderr=True)
    if not argv or argv[0].startswith('-'):
        console.print("[red]Please provide an input filename[/red]")
        return 2

    filename, overrides = argv[0], argv[1:]
    save_to = None
    for arg in list(overrides):
        if arg.startswith('--save='):
            save_to = arg.split('=', 1)[1]
            overrides.remove(arg)

    try:
        params = Parameters(filename, args=overrides)
        params.print_config()
        if save_to:
            params.save(save_to)
    except ParametersError as e:
        log.error(e)
        return 1
    return 0


if __name__ == '__main__':
    logging.basicConfig(
        level="INFO",
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False, show_path=False)],
    )
    sys.exit(main())
