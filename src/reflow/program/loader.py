"""Program loader: import a Python file and collect its cells.

A program is a plain module whose top-level ``Cell`` objects (usually
made with the ``@cell`` decorator) form the program, in definition order::

    # counter.py
    from reflow import Behaviors, cell

    @cell
    def tick():
        return Behaviors.timer(100)

    @cell
    def label(tick):
        return f"t={tick:g}"

Every call re-executes the file, so a changed file yields freshly compiled
cells whose ``code`` reflects the new source.
"""

import importlib.util
import sys
from pathlib import Path

from reflow._errors import ProgramError
from reflow.reactive.cell import Cell

_MODULE_PREFIX = "reflow_program."


def load_program(path: Path) -> tuple[Cell, ...]:
    """Import *path* in isolation and return its cells in definition order.

    A cell bound to several module names is returned once.

    Raises:
        ProgramError: If the file is missing, fails to import, or defines
            no cells.

    """
    module = _load_module(path)
    cells: list[Cell] = []
    seen: set[int] = set()
    for value in vars(module).values():
        if isinstance(value, Cell) and id(value) not in seen:
            seen.add(id(value))
            cells.append(value)
    if not cells:
        msg = f"Program {path} defines no cells"
        raise ProgramError(msg)
    return tuple(cells)


def _load_module(path: Path) -> object:
    """Execute a Python file as a fresh module without touching ``sys.path``."""
    if not path.is_file():
        msg = f"Program file not found: {path}"
        raise ProgramError(msg)

    module_name = _MODULE_PREFIX + path.stem
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        msg = f"Cannot import program {path}"
        raise ProgramError(msg)

    try:
        module = importlib.util.module_from_spec(spec)
        # Registered so decorators and dataclasses can resolve the module
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        msg = f"Failed to load program {path}: {exc}"
        raise ProgramError(msg) from exc

    return module
