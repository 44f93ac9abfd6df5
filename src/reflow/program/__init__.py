"""Program layer: Python files as reactive programs.

Handles loading program files into cells, diffing program versions, and
watching the project directory for hot reload.
"""

from reflow.program.differ import CellChange, diff_cells
from reflow.program.loader import load_program
from reflow.program.watcher import ChangeEvent, ProgramWatcher

__all__ = [
    "CellChange",
    "ChangeEvent",
    "ProgramWatcher",
    "diff_cells",
    "load_program",
]
